# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Per-channel settings resolution.

The persisted ``messaging_settings`` record wins when its channel flag is on
and its credentials are present; otherwise the process configuration
(INI/env) is used. Resolution never raises: callers check ``enabled``.

Example:
    resolver = SettingsResolver(db, config)
    email = await resolver.get_settings(Channel.EMAIL)
    if not email.enabled:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .logger import get_logger
from .models import Channel

if TYPE_CHECKING:
    from .config import DispatchConfig
    from .dispatch_db import DispatchDb

logger = get_logger("SettingsResolver")

DEFAULT_EMAIL_RATE_LIMIT = 100
DEFAULT_SMS_RATE_LIMIT = 50


@dataclass
class ChannelSettings:
    """Effective settings of one channel.

    Attributes:
        channel: Channel the settings apply to.
        enabled: True when usable credentials were found.
        credentials: Provider credentials (email: api_key; SMS: account_sid, auth_token).
        from_address: Sender email (email) or originating number (SMS).
        from_name: Sender display name (email only).
        reply_to: Reply-To address (email only).
        rate_limit_per_hour: Hourly send cap, 0 means unlimited.
        source: "settings", "config" or "none".
    """

    channel: Channel
    enabled: bool = False
    credentials: dict[str, str] = field(default_factory=dict)
    from_address: str | None = None
    from_name: str | None = None
    reply_to: str | None = None
    rate_limit_per_hour: int = 0
    source: str = "none"

    @property
    def ready(self) -> bool:
        """Whether a send may proceed. SMS also needs an originating number."""
        if not self.enabled:
            return False
        if self.channel == Channel.SMS:
            return bool(self.from_address)
        return True


class SettingsResolver:
    """Resolves ChannelSettings from the settings record and process config."""

    def __init__(self, db: DispatchDb, config: DispatchConfig):
        self.db = db
        self.config = config

    async def _load_record(self) -> dict[str, Any] | None:
        try:
            return await self.db.settings.get()
        except Exception as exc:
            logger.warning("Failed to read messaging settings, using process config: %s", exc)
            return None

    async def get_settings(self, channel: Channel) -> ChannelSettings:
        record = await self._load_record()
        if channel == Channel.EMAIL:
            return self._email_settings(record)
        return self._sms_settings(record)

    async def get_default_opt_in(self) -> tuple[bool, bool]:
        """Return (email, sms) opt-in defaults for new preference records."""
        record = await self._load_record()
        if not record:
            return True, False
        email = record.get("default_email_opt_in")
        sms = record.get("default_sms_opt_in")
        return (True if email is None else bool(email)), (False if sms is None else bool(sms))

    def _email_settings(self, record: dict[str, Any] | None) -> ChannelSettings:
        cfg = self.config
        if record and record.get("email_enabled") and record.get("resend_api_key"):
            limit = record.get("email_rate_limit_per_hour")
            return ChannelSettings(
                channel=Channel.EMAIL,
                enabled=True,
                credentials={"api_key": record["resend_api_key"]},
                from_address=record.get("from_email") or cfg.from_email,
                from_name=record.get("from_name") or cfg.from_name,
                reply_to=record.get("reply_to_email"),
                rate_limit_per_hour=DEFAULT_EMAIL_RATE_LIMIT if limit is None else int(limit),
                source="settings",
            )
        if cfg.resend_api_key:
            return ChannelSettings(
                channel=Channel.EMAIL,
                enabled=True,
                credentials={"api_key": cfg.resend_api_key},
                from_address=cfg.from_email,
                from_name=cfg.from_name,
                source="config",
            )
        return ChannelSettings(channel=Channel.EMAIL)

    def _sms_settings(self, record: dict[str, Any] | None) -> ChannelSettings:
        cfg = self.config
        if (
            record
            and record.get("sms_enabled")
            and record.get("twilio_account_sid")
            and record.get("twilio_auth_token")
        ):
            limit = record.get("sms_rate_limit_per_hour")
            return ChannelSettings(
                channel=Channel.SMS,
                enabled=True,
                credentials={
                    "account_sid": record["twilio_account_sid"],
                    "auth_token": record["twilio_auth_token"],
                },
                from_address=record.get("twilio_phone_number") or cfg.twilio_phone_number,
                rate_limit_per_hour=DEFAULT_SMS_RATE_LIMIT if limit is None else int(limit),
                source="settings",
            )
        if cfg.twilio_account_sid and cfg.twilio_auth_token:
            return ChannelSettings(
                channel=Channel.SMS,
                enabled=True,
                credentials={
                    "account_sid": cfg.twilio_account_sid,
                    "auth_token": cfg.twilio_auth_token,
                },
                from_address=cfg.twilio_phone_number,
                source="config",
            )
        return ChannelSettings(channel=Channel.SMS)


def mask_secret(value: str | None) -> str | None:
    """Mask an API key or SID keeping the last 4 characters."""
    if not value:
        return value
    return "***" + value[-4:]


def mask_settings(record: dict[str, Any] | None) -> dict[str, Any]:
    """Admin read view of the settings record with secrets masked."""
    data = dict(record or {})
    data["resend_api_key"] = mask_secret(data.get("resend_api_key"))
    data["twilio_account_sid"] = mask_secret(data.get("twilio_account_sid"))
    if data.get("twilio_auth_token"):
        data["twilio_auth_token"] = "********"
    return data


def is_masked(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("***")


__all__ = [
    "ChannelSettings",
    "DEFAULT_EMAIL_RATE_LIMIT",
    "DEFAULT_SMS_RATE_LIMIT",
    "SettingsResolver",
    "is_masked",
    "mask_secret",
    "mask_settings",
]
