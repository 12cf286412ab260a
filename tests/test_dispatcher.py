"""Send pipeline tests through MessagingService with fake transports."""

import pytest
from twilio.base.exceptions import TwilioRestException

from message_dispatch.channels import EmailChannel, SmsChannel
from message_dispatch.config import DispatchConfig
from message_dispatch.errors import ConfigurationError, RateLimitExceeded, TransportError
from message_dispatch.models import (
    SendEmailOptions,
    SendSmsOptions,
    SendTemplatedEmailOptions,
    SendTemplatedSmsOptions,
)
from message_dispatch.transports import TransportReply


def raw_email(**overrides):
    data = {"to": " ana@example.com ", "subject": "Hello", "html": "<p>Hi</p>"}
    data.update(overrides)
    return SendEmailOptions(**data)


async def add_welcome_template(service, **overrides):
    data = {
        "slug": "welcome-email",
        "name": "Welcome",
        "subject": "Welcome {{name}}!",
        "html_content": "<p>Hi {{name}}, {{course}} starts soon</p>",
        "text_content": "Hi {{name}}",
    }
    data.update(overrides)
    return await service.email_templates.create(data)


def blocked_count(service, channel, reason):
    return service.metrics.registry.get_sample_value(
        "mds_blocked_total", {"channel": channel, "reason": reason}
    )


@pytest.mark.asyncio
async def test_not_configured_writes_no_record(service, email_transport):
    result = await service.send_email(raw_email())

    assert result.success is False
    assert result.error == "Email service not configured"
    assert await service.db.email_messages.count() == 0
    assert email_transport.created == []
    assert blocked_count(service, "email", "not_configured") == 1


@pytest.mark.asyncio
async def test_raw_email_success(configured, email_transport):
    result = await configured.send_email(raw_email(user_id="u1", reference_type="course", reference_id="c9"))

    assert result.success is True
    assert result.message_id == "re-1"

    payload = email_transport.sent[0]
    assert payload["from"] == "Academy <noreply@academy.example>"
    assert payload["to"] == "ana@example.com"
    assert payload["subject"] == "Hello"

    [record] = await configured.db.email_messages.select()
    assert record["status"] == "SENT"
    assert record["resend_id"] == "re-1"
    assert record["sent_ts"] is not None
    assert record["reference_type"] == "course"
    assert record["retry_count"] == 0
    assert await configured.rate_limiter.sends_in_window(configured.email.channel.kind) == 1


@pytest.mark.asyncio
async def test_provider_error_reply_marks_failed(configured, email_transport):
    email_transport.replies.append(
        TransportReply(error_code="validation_error", error_message="Invalid `to` field")
    )

    result = await configured.send_email(raw_email())

    assert result.success is False
    assert result.error == "Invalid `to` field"
    [record] = await configured.db.email_messages.select()
    assert record["status"] == "FAILED"
    assert record["error_code"] == "validation_error"
    assert record["retry_count"] == 1
    assert record["failed_ts"] is not None


@pytest.mark.asyncio
async def test_transport_exception_marks_failed(configured, email_transport):
    email_transport.error = ConnectionError("connection reset")

    result = await configured.send_email(raw_email())

    assert result.success is False
    assert result.error == "connection reset"
    [record] = await configured.db.email_messages.select()
    assert record["status"] == "FAILED"
    assert record["error_code"] == "ConnectionError"


@pytest.mark.asyncio
async def test_templated_email_stores_resolved_snapshot(configured, email_transport):
    template = await add_welcome_template(configured)

    result = await configured.send_templated_email(
        SendTemplatedEmailOptions(
            to="ana@example.com", template_slug="welcome-email", variables={"name": "Ana"}, user_id="u1"
        )
    )

    assert result.success is True
    [record] = await configured.db.email_messages.select()
    assert record["subject"] == "Welcome Ana!"
    assert record["html_content"] == "<p>Hi Ana, {{course}} starts soon</p>"
    assert record["text_content"] == "Hi Ana"
    assert record["template_id"] == template["id"]
    assert record["template_variables"] == {"name": "Ana"}
    assert email_transport.sent[0]["subject"] == "Welcome Ana!"
    assert (await configured.email_templates.get(template["id"]))["sent_count"] == 1


@pytest.mark.asyncio
async def test_templated_email_unknown_or_inactive_template(configured):
    await add_welcome_template(configured, slug="retired", is_active=False)

    missing = await configured.send_templated_email(
        SendTemplatedEmailOptions(to="ana@example.com", template_slug="nope")
    )
    inactive = await configured.send_templated_email(
        SendTemplatedEmailOptions(to="ana@example.com", template_slug="retired")
    )

    assert missing.error == "Template 'nope' not found"
    assert inactive.error == "Template 'retired' is not active"
    assert await configured.db.email_messages.count() == 0


@pytest.mark.asyncio
async def test_templated_email_denied_by_preferences(configured, email_transport):
    await add_welcome_template(configured, slug="promo", category="MARKETING")
    await configured.get_preferences("u1")

    denied = await configured.send_templated_email(
        SendTemplatedEmailOptions(to="ana@example.com", template_slug="promo", user_id="u1")
    )
    anonymous = await configured.send_templated_email(
        SendTemplatedEmailOptions(to="ana@example.com", template_slug="promo")
    )

    assert denied.success is False
    assert denied.error == "User has not opted in to marketing emails"
    assert anonymous.success is True
    assert await configured.db.email_messages.count() == 1
    assert blocked_count(configured, "email", "preference_denied") == 1


@pytest.mark.asyncio
async def test_raw_send_bypasses_preferences(configured):
    await configured.update_preferences("u1", {"email_enabled": False})

    result = await configured.send_email(raw_email(user_id="u1"))
    assert result.success is True


@pytest.mark.asyncio
async def test_hourly_rate_limit(configured, email_transport):
    await configured.update_settings({"email_rate_limit_per_hour": 1})

    first = await configured.send_email(raw_email())
    second = await configured.send_email(raw_email())

    assert first.success is True
    assert second.success is False
    assert second.error == "Email rate limit exceeded (1/hour)"
    assert blocked_count(configured, "email", "rate_limited") == 1
    assert len(email_transport.sent) == 1
    assert await configured.db.email_messages.count() == 1


@pytest.mark.asyncio
async def test_transport_recreated_when_credentials_change(configured, email_transport):
    await configured.send_email(raw_email())
    await configured.send_email(raw_email())
    assert len(email_transport.created) == 1

    await configured.update_settings({"resend_api_key": "re_rotated_9999"})
    await configured.send_email(raw_email())

    assert len(email_transport.created) == 2
    assert email_transport.created[0].closed is True
    assert email_transport.created[1].credentials == {"api_key": "re_rotated_9999"}


@pytest.mark.asyncio
async def test_sms_send_normalizes_and_counts_segments(configured, sms_transport):
    result = await configured.send_sms(SendSmsOptions(to="(555) 123-4567", body="x" * 161))

    assert result.success is True
    assert result.message_sid == "SM-1"
    payload = sms_transport.sent[0]
    assert payload["to"] == "+15551234567"
    assert payload["from_"] == "+15550001111"
    assert payload["status_callback"] == "https://lms.example.com/messaging/webhooks/twilio"

    [record] = await configured.db.sms_messages.select()
    assert record["to_phone"] == "+15551234567"
    assert record["segments"] == 2
    assert record["twilio_sid"] == "SM-1"
    assert record["status"] == "SENT"


@pytest.mark.asyncio
async def test_sms_twilio_exception_is_mapped(configured, sms_transport):
    sms_transport.error = TwilioRestException(
        400, "https://api.twilio.com/Messages.json", msg="The 'To' number is not valid", code=21211
    )

    result = await configured.send_sms(SendSmsOptions(to="+15550002222", body="Hi"))

    assert result.success is False
    assert result.error == "The 'To' number is not valid"
    [record] = await configured.db.sms_messages.select()
    assert record["error_code"] == "21211"
    assert record["status"] == "FAILED"


@pytest.mark.asyncio
async def test_templated_sms(configured, sms_transport):
    await configured.sms_templates.create(
        {"slug": "class-reminder", "name": "Reminder", "content": "{{course}} at {{time}}"}
    )

    result = await configured.send_templated_sms(
        SendTemplatedSmsOptions(
            to="+15550002222", template_slug="class-reminder", variables={"course": "Math", "time": "9:00"}
        )
    )

    assert result.success is True
    assert sms_transport.sent[0]["body"] == "Math at 9:00"


@pytest.mark.asyncio
async def test_sms_not_configured(service):
    result = await service.send_sms(SendSmsOptions(to="+15550002222", body="Hi"))
    assert result.success is False
    assert result.error == "SMS service not configured"


@pytest.mark.asyncio
async def test_record_persisted_before_provider_call(configured, email_transport, monkeypatch):
    table = configured.db.email_messages
    inserted = []
    original_add = table.add

    async def add(record):
        stored = await original_add(record)
        inserted.append((await table.get(stored["id"]))["status"])
        return stored

    monkeypatch.setattr(table, "add", add)

    during_send = []

    async def inspect(payload):
        [record] = await table.select()
        during_send.append((record["status"], record["subject"]))

    email_transport.on_send = inspect

    result = await configured.send_email(raw_email())

    assert result.success is True
    assert inserted == ["QUEUED"]
    assert during_send == [("SENDING", "Hello")]


@pytest.mark.asyncio
async def test_record_survives_raising_transport(configured, email_transport):
    async def explode(payload):
        [record] = await configured.db.email_messages.select()
        assert record["status"] == "SENDING"
        raise TimeoutError("provider timed out")

    email_transport.on_send = explode

    result = await configured.send_email(raw_email())

    assert result.success is False
    [record] = await configured.db.email_messages.select()
    assert record["status"] == "FAILED"
    assert record["error_code"] == "TimeoutError"
    assert record["error_message"] == "provider timed out"


@pytest.mark.asyncio
async def test_check_ready_refuses_unconfigured_channel(service):
    with pytest.raises(ConfigurationError) as not_configured:
        await service.sms.check_ready()
    assert not_configured.value.code == "not_configured"


@pytest.mark.asyncio
async def test_check_ready_refuses_over_hourly_limit(configured):
    await configured.update_settings({"sms_rate_limit_per_hour": 1})
    await configured.send_sms(SendSmsOptions(to="+15550002222", body="Hi"))
    with pytest.raises(RateLimitExceeded, match=r"SMS rate limit exceeded \(1/hour\)"):
        await configured.sms.check_ready()


def test_channels_map_provider_errors_to_transport_error():
    config = DispatchConfig()
    twilio_error = TwilioRestException(400, "https://api.twilio.com", msg="Invalid number", code=21211)

    sms_error = SmsChannel(config).map_transport_error(twilio_error)
    generic = EmailChannel(config).map_transport_error(ConnectionError())

    assert isinstance(sms_error, TransportError)
    assert (sms_error.code, str(sms_error)) == ("21211", "Invalid number")
    assert (generic.code, str(generic)) == ("ConnectionError", "ConnectionError")
    assert TransportError(None, "").code == "transport_error"
    assert str(TransportError(None, "")) == "Unknown error"
