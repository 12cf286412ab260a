# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Messaging settings table: a single record keyed "default"."""

from __future__ import annotations

from typing import Any

from ...sql import Boolean, Integer, String, Table

SETTINGS_ID = "default"


class MessagingSettingsTable(Table):
    """Provider credentials, sender identity, opt-in defaults and hourly limits.

    The record is upserted and never deleted.
    """

    name = "messaging_settings"
    updated_column = "updated_ts"

    def configure(self) -> None:
        c = self.columns
        c.column("id", String, primary_key=True)
        c.column("email_enabled", Boolean, default=False)
        c.column("resend_api_key", String)
        c.column("from_email", String)
        c.column("from_name", String)
        c.column("reply_to_email", String)
        c.column("sms_enabled", Boolean, default=False)
        c.column("twilio_account_sid", String)
        c.column("twilio_auth_token", String)
        c.column("twilio_phone_number", String)
        c.column("default_email_opt_in", Boolean, default=True)
        c.column("default_sms_opt_in", Boolean, default=False)
        c.column("email_rate_limit_per_hour", Integer, default=100)
        c.column("sms_rate_limit_per_hour", Integer, default=50)
        c.column("updated_ts", Integer)

    async def get(self) -> dict[str, Any] | None:
        """Return the settings record, or None when never saved."""
        return await self.select_one(where={"id": SETTINGS_ID})

    async def save(self, updates: dict[str, Any]) -> dict[str, Any]:
        """Create or update the settings record and return it."""
        values = {k: v for k, v in updates.items() if k in self.columns and k != "id"}
        async with self.record(SETTINGS_ID, insert_missing=True) as rec:
            rec.update(values)
        return await self.get() or {}


__all__ = ["MessagingSettingsTable", "SETTINGS_ID"]
