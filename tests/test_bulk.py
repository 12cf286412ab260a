import pytest

from message_dispatch import bulk
from message_dispatch.models import (
    MessageStatus,
    SendEmailOptions,
    SendSmsOptions,
    SendTemplatedEmailOptions,
)
from message_dispatch.transports import TransportReply


@pytest.fixture
def sleeps(monkeypatch):
    calls = []

    async def fake_sleep(seconds):
        calls.append(seconds)

    monkeypatch.setattr(bulk.asyncio, "sleep", fake_sleep)
    return calls


def email(n):
    return SendEmailOptions(to=f"user{n}@example.com", subject=f"S{n}", html="<p>x</p>")


def failed_reply():
    return TransportReply(error_code="500", error_message="upstream unavailable")


@pytest.mark.asyncio
async def test_bulk_continues_after_failures_in_order(configured, email_transport, sleeps):
    email_transport.replies.extend([TransportReply(message_id="a"), failed_reply()])

    result = await configured.send_bulk_emails([email(1), email(2), email(3)])

    assert (result.total, result.sent, result.failed) == (3, 2, 1)
    assert [r.success for r in result.results] == [True, False, True]
    assert result.results[0].message_id == "a"
    assert [p["to"] for p in email_transport.sent] == [
        "user1@example.com",
        "user2@example.com",
        "user3@example.com",
    ]
    # pause between items only
    assert sleeps == [0.1, 0.1]


@pytest.mark.asyncio
async def test_bulk_sms_default_delay_and_custom_delay(configured, sleeps):
    messages = [SendSmsOptions(to="+15550000001", body="a"), SendSmsOptions(to="+15550000002", body="b")]

    await configured.send_bulk_sms(messages)
    assert sleeps == [0.2]

    sleeps.clear()
    await configured.send_bulk_sms(messages, delay_ms=0)
    assert sleeps == []


@pytest.mark.asyncio
async def test_bulk_routes_templated_requests(configured, email_transport, sleeps):
    await configured.email_templates.create(
        {"slug": "digest", "name": "Digest", "subject": "Digest for {{name}}", "html_content": "<p>.</p>"}
    )

    result = await configured.send_bulk_emails(
        [
            SendTemplatedEmailOptions(to="a@example.com", template_slug="digest", variables={"name": "A"}),
            SendTemplatedEmailOptions(to="b@example.com", template_slug="missing"),
        ]
    )

    assert (result.sent, result.failed) == (1, 1)
    assert result.results[1].error == "Template 'missing' not found"
    assert email_transport.sent[0]["subject"] == "Digest for A"


@pytest.mark.asyncio
async def test_retry_resends_failed_records_in_place(configured, email_transport, sleeps):
    email_transport.replies.append(failed_reply())
    await configured.send_email(email(1))
    [failed] = await configured.db.email_messages.select()

    retried = await configured.retry_failed_emails()

    assert retried == 1
    record = await configured.db.email_messages.get(failed["id"])
    assert record["status"] == MessageStatus.SENT.value
    assert record["resend_id"] == "re-1"
    assert record["retry_count"] == 1
    assert await configured.db.email_messages.count() == 1
    assert configured.metrics.registry.get_sample_value("mds_retried_total", {"channel": "email"}) == 1


@pytest.mark.asyncio
async def test_retry_skips_exhausted_records(configured, email_transport, sleeps):
    email_transport.error = RuntimeError("down")
    await configured.send_email(email(1))
    for _ in range(2):
        assert await configured.retry_failed_emails(max_retries=3) == 0

    [record] = await configured.db.email_messages.select()
    assert record["retry_count"] == 3

    email_transport.error = None
    assert await configured.retry_failed_emails(max_retries=3) == 0
    assert len(email_transport.sent) == 3


@pytest.mark.asyncio
async def test_retry_not_configured_returns_zero(service):
    await service.db.email_messages.add(
        {"to_email": "a@example.com", "subject": "s", "html_content": "h", "status": "FAILED", "retry_count": 1}
    )
    assert await service.retry_failed_emails() == 0


@pytest.mark.asyncio
async def test_retry_stops_at_rate_limit(configured, email_transport, sleeps):
    await configured.update_settings({"email_rate_limit_per_hour": 2})
    for n in range(3):
        await configured.db.email_messages.add(
            {
                "to_email": f"user{n}@example.com",
                "subject": "s",
                "html_content": "h",
                "status": "FAILED",
                "retry_count": 1,
                "created_ts": 1000 + n,
            }
        )

    assert await configured.retry_failed_emails() == 2
    statuses = [r["status"] for r in await configured.db.email_messages.select(order_by="created_ts")]
    assert statuses == ["SENT", "SENT", "FAILED"]


def test_retry_batch_size():
    assert bulk.RETRY_BATCH_SIZE == 50


@pytest.mark.asyncio
async def test_retry_uses_stored_snapshot_not_live_template(configured, email_transport, sleeps):
    template = await configured.email_templates.create(
        {"slug": "notice", "name": "Notice", "subject": "Old {{n}}", "html_content": "<p>old</p>"}
    )
    email_transport.replies.append(failed_reply())
    await configured.send_templated_email(
        SendTemplatedEmailOptions(to="a@example.com", template_slug="notice", variables={"n": "1"})
    )
    await configured.email_templates.update(template["id"], {"subject": "New {{n}}", "html_content": "<p>new</p>"})

    assert await configured.retry_failed_emails() == 1

    retried = email_transport.sent[-1]
    assert (retried["subject"], retried["html"]) == ("Old 1", "<p>old</p>")


@pytest.mark.asyncio
async def test_successful_retry_clears_previous_error(configured, email_transport, sleeps):
    email_transport.replies.append(failed_reply())
    await configured.send_email(email(1))

    await configured.retry_failed_emails()

    [record] = await configured.db.email_messages.select()
    assert record["status"] == "SENT"
    assert record["error_code"] is None
    assert record["error_message"] is None
