# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the message dispatcher.

All metrics use the ``mds_`` prefix (message-dispatch).

Metrics exposed:
    - ``mds_sent_total``: Counter of successful sends per channel.
    - ``mds_failed_total``: Counter of transport failures per channel.
    - ``mds_blocked_total``: Counter of sends refused before any record was
      written, per channel and reason.
    - ``mds_retried_total``: Counter of retry attempts per channel.
    - ``mds_webhook_events_total``: Counter of provider status callbacks.

Example:
    Accessing metrics via the REST API::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest


class DispatchMetrics:
    """Prometheus metrics collector for the dispatcher.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        sent: Counter tracking successful transport calls.
        failed: Counter tracking transport failures.
        blocked: Counter tracking sends refused before persistence.
        retried: Counter tracking retry attempts.
        webhook_events: Counter tracking provider callbacks by mapped status.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics with an optional custom registry.

        Args:
            registry: Optional Prometheus CollectorRegistry. A new one is
                created when omitted, which keeps test instances isolated.
        """
        self.registry = registry or CollectorRegistry()
        self.sent = Counter(
            "mds_sent_total",
            "Total messages accepted by the provider",
            ["channel"],
            registry=self.registry,
        )
        self.failed = Counter(
            "mds_failed_total",
            "Total messages failed at the provider",
            ["channel"],
            registry=self.registry,
        )
        self.blocked = Counter(
            "mds_blocked_total",
            "Total sends refused before a record was written",
            ["channel", "reason"],
            registry=self.registry,
        )
        self.retried = Counter(
            "mds_retried_total",
            "Total retry attempts of failed messages",
            ["channel"],
            registry=self.registry,
        )
        self.webhook_events = Counter(
            "mds_webhook_events_total",
            "Total provider status callbacks",
            ["channel", "status"],
            registry=self.registry,
        )

    def inc_sent(self, channel: str) -> None:
        self.sent.labels(channel=channel).inc()

    def inc_failed(self, channel: str) -> None:
        self.failed.labels(channel=channel).inc()

    def inc_blocked(self, channel: str, reason: str) -> None:
        """Increment the blocked counter.

        Args:
            channel: "email" or "sms".
            reason: Error code of the refusal (not_configured, rate_limited,
                template_not_found, template_inactive, preference_denied).
        """
        self.blocked.labels(channel=channel, reason=reason).inc()

    def inc_retried(self, channel: str) -> None:
        self.retried.labels(channel=channel).inc()

    def inc_webhook_event(self, channel: str, status: str) -> None:
        self.webhook_events.labels(channel=channel, status=status or "unknown").inc()

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)


__all__ = ["DispatchMetrics"]
