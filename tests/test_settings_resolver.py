import pytest

from message_dispatch.config import DispatchConfig
from message_dispatch.models import Channel
from message_dispatch.settings_resolver import (
    SettingsResolver,
    is_masked,
    mask_secret,
    mask_settings,
)

from conftest import EMAIL_SETTINGS, SMS_SETTINGS


@pytest.mark.asyncio
async def test_nothing_configured(db):
    resolver = SettingsResolver(db, DispatchConfig())

    email = await resolver.get_settings(Channel.EMAIL)
    sms = await resolver.get_settings(Channel.SMS)

    assert not email.enabled and not email.ready
    assert not sms.ready
    assert email.source == "none"


@pytest.mark.asyncio
async def test_record_wins_with_default_limits(db):
    await db.settings.save({**EMAIL_SETTINGS, **SMS_SETTINGS, "reply_to_email": "help@academy.example"})
    resolver = SettingsResolver(db, DispatchConfig(resend_api_key="re_config"))

    email = await resolver.get_settings(Channel.EMAIL)
    assert email.source == "settings"
    assert email.credentials == {"api_key": "re_test_key_1234"}
    assert email.from_name == "Academy"
    assert email.reply_to == "help@academy.example"
    assert email.rate_limit_per_hour == 100

    sms = await resolver.get_settings(Channel.SMS)
    assert sms.ready
    assert sms.from_address == "+15550001111"
    assert sms.rate_limit_per_hour == 50


@pytest.mark.asyncio
async def test_disabled_record_falls_back_to_config(db):
    await db.settings.save({**EMAIL_SETTINGS, "email_enabled": False})
    config = DispatchConfig(resend_api_key="re_config", from_email="cfg@example.com")
    resolver = SettingsResolver(db, config)

    email = await resolver.get_settings(Channel.EMAIL)
    assert email.source == "config"
    assert email.credentials == {"api_key": "re_config"}
    assert email.from_address == "cfg@example.com"
    assert email.rate_limit_per_hour == 0


@pytest.mark.asyncio
async def test_sms_without_number_is_not_ready(db):
    config = DispatchConfig(twilio_account_sid="AC1", twilio_auth_token="tok")
    sms = await SettingsResolver(db, config).get_settings(Channel.SMS)

    assert sms.enabled
    assert not sms.ready


@pytest.mark.asyncio
async def test_unreadable_record_uses_config(db, monkeypatch):
    async def broken():
        raise RuntimeError("disk I/O error")

    monkeypatch.setattr(db.settings, "get", broken)
    resolver = SettingsResolver(db, DispatchConfig(resend_api_key="re_config"))

    email = await resolver.get_settings(Channel.EMAIL)
    assert email.source == "config"
    assert await resolver.get_default_opt_in() == (True, False)


@pytest.mark.asyncio
async def test_default_opt_in_from_record(db):
    await db.settings.save({"default_email_opt_in": False, "default_sms_opt_in": True})
    assert await SettingsResolver(db, DispatchConfig()).get_default_opt_in() == (False, True)


def test_masking():
    assert mask_secret("re_1234567890") == "***7890"
    assert mask_secret(None) is None

    masked = mask_settings(
        {"resend_api_key": "re_abcdef", "twilio_account_sid": "AC99998888", "twilio_auth_token": "tok"}
    )
    assert masked == {
        "resend_api_key": "***cdef",
        "twilio_account_sid": "***8888",
        "twilio_auth_token": "********",
    }
    assert is_masked("***cdef")
    assert is_masked("********")
    assert not is_masked("re_abcdef")
