# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Per-user opt-in/opt-out enforcement by channel and category.

Users without a preference record are allowed. The gate is only consulted
for templated sends carrying a user id; raw sends bypass it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import PreferenceNotFound
from .logger import get_logger
from .models import Channel, MessageCategory, UnsubscribeKind

if TYPE_CHECKING:
    from .entities import NotificationPreferencesTable
    from .settings_resolver import SettingsResolver

logger = get_logger("PreferenceGate")


@dataclass
class GateDecision:
    allowed: bool
    reason: str | None = None


_CHANNEL_FLAGS = {
    Channel.EMAIL: ("email_enabled", "email_marketing", "email_notifications"),
    Channel.SMS: ("sms_enabled", "sms_marketing", "sms_notifications"),
}

_DENIAL_REASONS = {
    Channel.EMAIL: (
        "User has disabled email notifications",
        "User has not opted in to marketing emails",
        "User has disabled notification emails",
    ),
    Channel.SMS: (
        "User has disabled SMS notifications",
        "User has not opted in to marketing SMS",
        "User has disabled SMS notifications",
    ),
}


class PreferenceGate:
    """Reads and maintains notification_preferences rows."""

    def __init__(self, table: NotificationPreferencesTable, resolver: SettingsResolver):
        self.table = table
        self.resolver = resolver

    async def check_send_allowed(
        self, user_id: str, channel: Channel, category: MessageCategory | str
    ) -> GateDecision:
        """Decide whether a templated send to user_id may proceed.

        No record allows everything. The channel master switch denies all
        categories; MARKETING and NOTIFICATION are additionally gated by
        their sub-flag. TRANSACTIONAL only depends on the master switch.
        """
        pref = await self.table.get(user_id)
        if pref is None:
            return GateDecision(True)

        enabled_flag, marketing_flag, notifications_flag = _CHANNEL_FLAGS[channel]
        disabled, no_marketing, no_notifications = _DENIAL_REASONS[channel]
        category = MessageCategory(category)

        if not pref.get(enabled_flag):
            return GateDecision(False, disabled)
        if category == MessageCategory.MARKETING and not pref.get(marketing_flag):
            return GateDecision(False, no_marketing)
        if category == MessageCategory.NOTIFICATION and not pref.get(notifications_flag):
            return GateDecision(False, no_notifications)
        return GateDecision(True)

    async def get(self, user_id: str) -> dict[str, Any] | None:
        return await self.table.get(user_id)

    async def get_or_create(self, user_id: str) -> dict[str, Any]:
        """Return the user's preferences, creating defaults from settings."""
        pref = await self.table.get(user_id)
        if pref is not None:
            return pref
        email_default, sms_default = await self.resolver.get_default_opt_in()
        await self.table.add(
            {
                "user_id": user_id,
                "email_enabled": email_default,
                "email_marketing": False,
                "email_notifications": True,
                "sms_enabled": sms_default,
                "sms_marketing": False,
                "sms_notifications": True,
            }
        )
        return await self.table.get(user_id) or {}

    async def update(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply flag changes and track unsubscribe/consent timestamps.

        Disabling a channel sets its ``*_unsubscribed_ts``; enabling it
        clears it. Turning on a marketing flag records marketing consent.
        """
        current = await self.get_or_create(user_id)
        now = int(time.time())
        updates = {k: bool(v) for k, v in changes.items() if v is not None}

        for flag, ts_col in (("email_enabled", "email_unsubscribed_ts"), ("sms_enabled", "sms_unsubscribed_ts")):
            if flag not in updates or updates[flag] == current.get(flag):
                continue
            updates[ts_col] = None if updates[flag] else now

        for flag in ("email_marketing", "sms_marketing"):
            if updates.get(flag) and not current.get(flag):
                updates["marketing_consent_ts"] = now

        if updates:
            await self.table.update_fields(user_id, updates)
        return await self.table.get(user_id) or current

    async def unsubscribe(self, token: str, kind: UnsubscribeKind | str) -> dict[str, Any]:
        """One-click unsubscribe addressed by token.

        Raises:
            PreferenceNotFound: Unknown token.
        """
        pref = await self.table.get_by_token(token)
        if pref is None:
            raise PreferenceNotFound("Invalid unsubscribe token")
        kind = UnsubscribeKind(kind)
        if kind == UnsubscribeKind.EMAIL:
            changes = {"email_enabled": False}
        elif kind == UnsubscribeKind.SMS:
            changes = {"sms_enabled": False}
        elif kind == UnsubscribeKind.ALL:
            changes = {"email_enabled": False, "sms_enabled": False}
        else:
            changes = {"email_marketing": False, "sms_marketing": False}
        logger.info("User %s unsubscribed (%s)", pref["user_id"], kind.value)
        return await self.update(pref["user_id"], changes)

    async def disable_email(self, user_id: str) -> None:
        """Turn email off for a user, e.g. after a spam complaint."""
        await self.update(user_id, {"email_enabled": False})


__all__ = ["GateDecision", "PreferenceGate"]
