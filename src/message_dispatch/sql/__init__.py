# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async SQL layer: adapters, column definitions, table managers.

Usage:
    db = SqlDb("/data/message_dispatch.db")
    db.add_table(EmailMessagesTable)
    await db.connect()
    await db.check_structure()
"""

from .adapters import DbAdapter, SqliteAdapter, get_adapter
from .column import Boolean, Column, Columns, Float, Integer, Json, String
from .sqldb import SqlDb
from .table import RecordUpdater, Table

__all__ = [
    "Boolean",
    "Column",
    "Columns",
    "DbAdapter",
    "Float",
    "Integer",
    "Json",
    "RecordUpdater",
    "SqlDb",
    "SqliteAdapter",
    "String",
    "Table",
    "get_adapter",
]
