# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Domain entities for the messaging dispatch layer.

Each subdirectory contains a table.py with the SQL table manager.
"""

from .message.table import EmailMessagesTable, MessageTableBase, SmsMessagesTable
from .preference.table import NotificationPreferencesTable
from .send_log.table import SendLogTable
from .settings.table import SETTINGS_ID, MessagingSettingsTable
from .template.table import EmailTemplatesTable, SmsTemplatesTable, TemplateTableBase

__all__ = [
    "EmailMessagesTable",
    "EmailTemplatesTable",
    "MessageTableBase",
    "MessagingSettingsTable",
    "NotificationPreferencesTable",
    "SETTINGS_ID",
    "SendLogTable",
    "SmsMessagesTable",
    "SmsTemplatesTable",
    "TemplateTableBase",
]
