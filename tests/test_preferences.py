import pytest

from message_dispatch.config import DispatchConfig
from message_dispatch.errors import PreferenceNotFound
from message_dispatch.models import Channel, MessageCategory, UnsubscribeKind
from message_dispatch.preferences import PreferenceGate
from message_dispatch.settings_resolver import SettingsResolver


@pytest.fixture
def gate(db):
    return PreferenceGate(db.preferences, SettingsResolver(db, DispatchConfig()))


@pytest.mark.asyncio
async def test_no_record_allows_everything(gate):
    for category in MessageCategory:
        decision = await gate.check_send_allowed("u1", Channel.EMAIL, category)
        assert decision.allowed
        assert decision.reason is None


@pytest.mark.asyncio
async def test_default_record_denies_marketing_only(gate):
    await gate.get_or_create("u1")

    assert (await gate.check_send_allowed("u1", Channel.EMAIL, "TRANSACTIONAL")).allowed
    assert (await gate.check_send_allowed("u1", Channel.EMAIL, "NOTIFICATION")).allowed

    marketing = await gate.check_send_allowed("u1", Channel.EMAIL, MessageCategory.MARKETING)
    assert not marketing.allowed
    assert marketing.reason == "User has not opted in to marketing emails"


@pytest.mark.asyncio
async def test_master_switch_denies_transactional(gate):
    await gate.update("u1", {"email_enabled": False})
    decision = await gate.check_send_allowed("u1", Channel.EMAIL, "TRANSACTIONAL")

    assert not decision.allowed
    assert decision.reason == "User has disabled email notifications"


@pytest.mark.asyncio
async def test_sms_flags(gate):
    # SMS defaults to opted out
    await gate.get_or_create("u1")
    decision = await gate.check_send_allowed("u1", Channel.SMS, "TRANSACTIONAL")
    assert decision.reason == "User has disabled SMS notifications"
    # the channel switch wins over the marketing sub-flag
    await gate.update("u2", {"sms_marketing": True})
    denied = await gate.check_send_allowed("u2", Channel.SMS, "MARKETING")
    assert denied.allowed is False
    assert denied.reason == "User has disabled SMS notifications"

    await gate.update("u1", {"sms_enabled": True, "sms_notifications": False})
    assert (await gate.check_send_allowed("u1", Channel.SMS, "TRANSACTIONAL")).allowed
    assert not (await gate.check_send_allowed("u1", Channel.SMS, "NOTIFICATION")).allowed
    marketing = await gate.check_send_allowed("u1", Channel.SMS, "MARKETING")
    assert marketing.reason == "User has not opted in to marketing SMS"


@pytest.mark.asyncio
async def test_notification_sub_flag(gate):
    await gate.update("u1", {"email_notifications": False})
    decision = await gate.check_send_allowed("u1", Channel.EMAIL, "NOTIFICATION")
    assert decision.reason == "User has disabled notification emails"


@pytest.mark.asyncio
async def test_get_or_create_uses_settings_defaults(db, gate):
    await db.settings.save({"default_email_opt_in": False, "default_sms_opt_in": True})

    pref = await gate.get_or_create("u2")

    assert pref["email_enabled"] is False
    assert pref["sms_enabled"] is True
    assert pref["email_notifications"] is True
    assert pref["unsubscribe_token"]
    assert await gate.get_or_create("u2") == pref


@pytest.mark.asyncio
async def test_update_tracks_unsubscribe_and_consent_timestamps(gate):
    await gate.get_or_create("u1")

    off = await gate.update("u1", {"email_enabled": False, "email_marketing": True})
    assert off["email_unsubscribed_ts"] is not None
    assert off["marketing_consent_ts"] is not None

    on = await gate.update("u1", {"email_enabled": True})
    assert on["email_unsubscribed_ts"] is None


@pytest.mark.asyncio
async def test_unsubscribe_by_token(gate):
    pref = await gate.update("u1", {"sms_enabled": True, "email_marketing": True, "sms_marketing": True})
    token = pref["unsubscribe_token"]

    after = await gate.unsubscribe(token, UnsubscribeKind.MARKETING)
    assert after["email_marketing"] is False and after["sms_marketing"] is False
    assert after["email_enabled"] is True

    after = await gate.unsubscribe(token, "sms")
    assert after["sms_enabled"] is False
    assert after["email_enabled"] is True

    after = await gate.unsubscribe(token, "all")
    assert after["email_enabled"] is False


@pytest.mark.asyncio
async def test_unsubscribe_unknown_token(gate):
    with pytest.raises(PreferenceNotFound):
        await gate.unsubscribe("nope", "email")
