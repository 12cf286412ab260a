# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Messaging database manager with pre-registered tables.

Extends SqlDb with the messaging tables.

Example:
    db = DispatchDb("/data/message_dispatch.db")
    await db.init_db()

    await db.email_messages.add({"to_email": "a@example.com", ...})
    template = await db.email_templates.get_by_slug("welcome-email")
"""

from __future__ import annotations

from .entities import (
    EmailMessagesTable,
    EmailTemplatesTable,
    MessageTableBase,
    MessagingSettingsTable,
    NotificationPreferencesTable,
    SendLogTable,
    SmsMessagesTable,
    SmsTemplatesTable,
    TemplateTableBase,
)
from .models import Channel
from .sql import SqlDb


class DispatchDb(SqlDb):
    """Messaging database with pre-registered tables."""

    def __init__(self, connection_string: str = "/data/message_dispatch.db"):
        """Initialize the messaging database.

        Args:
            connection_string: Database connection string. Formats:
                - "/path/to/db.sqlite" - SQLite file
                - ":memory:" - SQLite in-memory
                - "sqlite:/path/to/db" - SQLite explicit
        """
        super().__init__(connection_string)
        self.db_path = connection_string

        self.add_table(EmailMessagesTable)
        self.add_table(SmsMessagesTable)
        self.add_table(EmailTemplatesTable)
        self.add_table(SmsTemplatesTable)
        self.add_table(MessagingSettingsTable)
        self.add_table(NotificationPreferencesTable)
        self.add_table(SendLogTable)

    @property
    def email_messages(self) -> EmailMessagesTable:
        return self.table("email_messages")  # type: ignore[return-value]

    @property
    def sms_messages(self) -> SmsMessagesTable:
        return self.table("sms_messages")  # type: ignore[return-value]

    @property
    def email_templates(self) -> EmailTemplatesTable:
        return self.table("email_templates")  # type: ignore[return-value]

    @property
    def sms_templates(self) -> SmsTemplatesTable:
        return self.table("sms_templates")  # type: ignore[return-value]

    @property
    def settings(self) -> MessagingSettingsTable:
        return self.table("messaging_settings")  # type: ignore[return-value]

    @property
    def preferences(self) -> NotificationPreferencesTable:
        return self.table("notification_preferences")  # type: ignore[return-value]

    @property
    def send_log(self) -> SendLogTable:
        return self.table("send_log")  # type: ignore[return-value]

    def messages(self, channel: Channel) -> MessageTableBase:
        """Message record table for a channel."""
        return self.email_messages if channel == Channel.EMAIL else self.sms_messages

    def templates(self, channel: Channel) -> TemplateTableBase:
        """Template table for a channel."""
        return self.email_templates if channel == Channel.EMAIL else self.sms_templates

    async def init_db(self) -> None:
        """Initialize database: connect, create tables, add missing columns."""
        await self.connect()
        await self.check_structure()


__all__ = ["DispatchDb"]
