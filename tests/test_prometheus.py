from message_dispatch.prometheus import DispatchMetrics


def test_dispatch_metrics_counters():
    metrics = DispatchMetrics()

    metrics.inc_sent("email")
    metrics.inc_sent("email")
    metrics.inc_failed("sms")
    metrics.inc_blocked("email", "rate_limited")
    metrics.inc_retried("sms")
    metrics.inc_webhook_event("email", "")

    output = metrics.generate_latest()
    assert b'mds_sent_total{channel="email"} 2.0' in output
    assert b'mds_failed_total{channel="sms"} 1.0' in output
    assert b'mds_blocked_total{channel="email",reason="rate_limited"} 1.0' in output
    assert b'mds_retried_total{channel="sms"} 1.0' in output
    assert b'mds_webhook_events_total{channel="email",status="unknown"} 1.0' in output


def test_instances_use_separate_registries():
    first = DispatchMetrics()
    second = DispatchMetrics()
    first.inc_sent("email")

    assert second.registry.get_sample_value("mds_sent_total", {"channel": "email"}) is None
