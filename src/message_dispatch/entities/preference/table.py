# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Per-user notification preferences."""

from __future__ import annotations

import secrets
from typing import Any

from ...sql import Boolean, Integer, String, Table


class NotificationPreferencesTable(Table):
    """One row per user, keyed by user_id.

    Channel master switches (email_enabled, sms_enabled) and per-category
    sub-flags. unsubscribe_token is generated on insert and addresses the
    row from one-click unsubscribe links.
    """

    name = "notification_preferences"
    updated_column = "updated_ts"

    def configure(self) -> None:
        c = self.columns
        c.column("user_id", String, primary_key=True)
        c.column("email_enabled", Boolean, default=True)
        c.column("email_marketing", Boolean, default=False)
        c.column("email_notifications", Boolean, default=True)
        c.column("sms_enabled", Boolean, default=False)
        c.column("sms_marketing", Boolean, default=False)
        c.column("sms_notifications", Boolean, default=True)
        c.column("unsubscribe_token", String, unique=True)
        c.column("email_unsubscribed_ts", Integer)
        c.column("sms_unsubscribed_ts", Integer)
        c.column("marketing_consent_ts", Integer)
        c.column("updated_ts", Integer)

    async def trigger_on_inserting(self, record: dict[str, Any]) -> dict[str, Any]:
        record.setdefault("unsubscribe_token", secrets.token_urlsafe(24))
        return record

    async def get(self, user_id: str) -> dict[str, Any] | None:
        return await self.select_one(where={"user_id": user_id})

    async def get_by_token(self, token: str) -> dict[str, Any] | None:
        return await self.select_one(where={"unsubscribe_token": token})

    async def add(self, preference: dict[str, Any]) -> dict[str, Any]:
        data = dict(preference)
        await self.insert(data)
        return data

    async def update_fields(self, user_id: str, updates: dict[str, Any]) -> bool:
        """Update a user's preference fields. Returns True if the row exists."""
        async with self.record(user_id) as rec:
            if not rec:
                return False
            rec.update(updates)
        return True


__all__ = ["NotificationPreferencesTable"]
