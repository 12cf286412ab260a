# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Table managers over the async adapter.

A Table subclass declares its columns in ``configure()`` and adds the
domain queries it needs. Values pass through the column codecs on the way
in and out, so callers only ever see Python lists, dicts and bools.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING, Any

from .column import Columns

if TYPE_CHECKING:
    from .sqldb import SqlDb


class RecordUpdater:
    """Read-modify-write of one record inside an ``async with`` block.

    On exit only the fields that changed are written. With
    ``insert_missing`` an absent record is created instead; without it the
    block receives an empty dict and nothing is written.

    Example:
        async with settings.record("default", insert_missing=True) as rec:
            rec["from_email"] = "noreply@academy.example"
    """

    def __init__(self, table: Table, key: Any, insert_missing: bool = False):
        self.table = table
        self.key = key
        self.insert_missing = insert_missing
        self.current: dict[str, Any] | None = None
        self.stored: dict[str, Any] | None = None

    async def __aenter__(self) -> dict[str, Any]:
        self.stored = await self.table.get_by_key(self.key)
        if self.stored is not None:
            self.current = dict(self.stored)
        elif self.insert_missing:
            self.current = {self.table.pkey: self.key}
        else:
            self.current = {}
        return self.current

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None or not self.current:
            return
        if self.stored is None:
            await self.table.insert(self.current)
            return
        changed = {
            name: value
            for name, value in self.current.items()
            if name != self.table.pkey and self.stored.get(name) != value
        }
        if changed:
            await self.table.update(changed, {self.table.pkey: self.key})


class Table:
    """Base class for async table managers.

    Attributes:
        name: Table name in the database.
        generate_id: Fill a missing string primary key with a uuid4 hex id.
        created_column: Column stamped with the epoch time on insert.
        updated_column: Column stamped with the epoch time on every write.
    """

    name: str
    generate_id = False
    created_column: str | None = None
    updated_column: str | None = None

    def __init__(self, db: SqlDb) -> None:
        if not getattr(self, "name", None):
            raise ValueError(f"{type(self).__name__} must define 'name'")
        self.db = db
        self.columns = Columns()
        self.configure()

    def configure(self) -> None:
        """Declare columns. Called from __init__."""

    @property
    def pkey(self) -> str:
        key = self.columns.primary_key()
        if key is None:
            raise ValueError(f"Table {self.name} has no primary key defined")
        return key

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    async def trigger_on_inserting(self, record: dict[str, Any]) -> dict[str, Any]:
        """Fill defaults before insert. Return the record to store."""
        return record

    async def trigger_on_updating(self, values: dict[str, Any]) -> dict[str, Any]:
        """Adjust the changed values before update. Return the values to store."""
        return values

    def _stamp_insert(self, record: dict[str, Any]) -> dict[str, Any]:
        now = int(time.time())
        if self.generate_id:
            record.setdefault(self.pkey, uuid.uuid4().hex)
        if self.created_column:
            record.setdefault(self.created_column, now)
        if self.updated_column:
            record.setdefault(self.updated_column, now)
        return record

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def create_table_sql(self) -> str:
        """CREATE TABLE IF NOT EXISTS statement for the declared columns."""
        body = ",\n    ".join(col.to_sql() for col in self.columns.values())
        return f"CREATE TABLE IF NOT EXISTS {self.name} (\n    {body}\n)"

    async def create_schema(self) -> None:
        await self.db.adapter.execute(self.create_table_sql())

    async def existing_columns(self) -> set[str]:
        rows = await self.db.adapter.fetch_all(f"PRAGMA table_info({self.name})")
        return {row["name"] for row in rows}

    async def sync_schema(self) -> None:
        """Add declared columns missing from the stored table.

        SQLite refuses ALTER TABLE ADD COLUMN with UNIQUE, so added columns
        lose that constraint.
        """
        present = await self.existing_columns()
        for col in self.columns.values():
            if col.primary_key or col.name in present:
                continue
            fragment = col.to_sql().replace(" UNIQUE", "")
            await self.db.adapter.execute(f"ALTER TABLE {self.name} ADD COLUMN {fragment}")

    # -------------------------------------------------------------------------
    # Codecs
    # -------------------------------------------------------------------------

    def encode(self, data: dict[str, Any]) -> dict[str, Any]:
        return {
            name: self.columns[name].encode(value) if name in self.columns else value
            for name, value in data.items()
        }

    def decode(self, row: dict[str, Any]) -> dict[str, Any]:
        return {
            name: self.columns[name].decode(value) if name in self.columns else value
            for name, value in row.items()
        }

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def insert(self, data: dict[str, Any]) -> int:
        """Insert a row after filling generated values and running the hook.

        ``data`` is completed in place, so the caller sees the stored id
        and timestamps.
        """
        record = await self.trigger_on_inserting(self._stamp_insert(data))
        return await self.db.adapter.insert(self.name, self.encode(record))

    async def update(self, values: dict[str, Any], where: dict[str, Any]) -> int:
        changes = dict(values)
        if self.updated_column:
            changes.setdefault(self.updated_column, int(time.time()))
        changes = await self.trigger_on_updating(changes)
        return await self.db.adapter.update(self.name, self.encode(changes), where)

    async def delete(self, where: dict[str, Any]) -> int:
        return await self.db.adapter.delete(self.name, where)

    async def select(
        self,
        columns: list[str] | None = None,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        rows = await self.db.adapter.select(self.name, columns, where, order_by, limit)
        return [self.decode(row) for row in rows]

    async def select_one(
        self,
        columns: list[str] | None = None,
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        row = await self.db.adapter.select_one(self.name, columns, where)
        return self.decode(row) if row else None

    async def get_by_key(self, key: Any) -> dict[str, Any] | None:
        """Return the record whose primary key equals ``key``."""
        return await self.select_one(where={self.pkey: key})

    def record(self, key: Any, insert_missing: bool = False) -> RecordUpdater:
        """Context manager editing the record with primary key ``key``."""
        return RecordUpdater(self, key, insert_missing)

    async def count(self, where: dict[str, Any] | None = None) -> int:
        return await self.db.adapter.count(self.name, where)

    async def exists(self, where: dict[str, Any]) -> bool:
        return await self.count(where) > 0

    # -------------------------------------------------------------------------
    # Raw SQL
    # -------------------------------------------------------------------------

    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        row = await self.db.adapter.fetch_one(query, params)
        return self.decode(row) if row else None

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        rows = await self.db.adapter.fetch_all(query, params)
        return [self.decode(row) for row in rows]

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        return await self.db.adapter.execute(query, params)


__all__ = ["RecordUpdater", "Table"]
