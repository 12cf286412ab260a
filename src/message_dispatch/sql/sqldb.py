# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database manager holding an adapter and a registry of tables."""

from __future__ import annotations

from .adapters import DbAdapter, get_adapter
from .table import Table


class SqlDb:
    """Async database with registered Table managers.

    Example:
        db = SqlDb("/data/app.db")
        db.add_table(SendLogTable)
        await db.connect()
        await db.check_structure()
        await db.table("send_log").insert({...})
    """

    def __init__(self, connection_string: str = ":memory:") -> None:
        self.connection_string = connection_string
        self.adapter: DbAdapter = get_adapter(connection_string)
        self.tables: dict[str, Table] = {}

    def add_table(self, table_cls: type[Table]) -> Table:
        """Instantiate and register a table manager."""
        instance = table_cls(self)
        self.tables[instance.name] = instance
        return instance

    def table(self, name: str) -> Table:
        try:
            return self.tables[name]
        except KeyError:
            raise ValueError(f"Table '{name}' is not registered") from None

    async def connect(self) -> None:
        await self.adapter.connect()

    async def close(self) -> None:
        await self.adapter.close()

    async def check_structure(self) -> None:
        """Create missing tables and add missing columns to existing ones."""
        for table in self.tables.values():
            await table.create_schema()
            await table.sync_schema()


__all__ = ["SqlDb"]
