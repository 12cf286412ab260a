# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite async adapter using aiosqlite."""

from __future__ import annotations

from typing import Any

import aiosqlite

from .base import DbAdapter


class SqliteAdapter(DbAdapter):
    """SQLite async adapter holding one aiosqlite connection.

    A single connection is kept open between connect() and close() so that
    ":memory:" databases survive across operations. Every write commits
    immediately; there are no multi-statement transactions.
    """

    def __init__(self, db_path: str):
        """Initialize SQLite adapter.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self.db_path = db_path or ":memory:"
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.connect()
        return self._conn  # type: ignore[return-value]

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute query, return affected row count."""
        db = await self._connection()
        cursor = await db.execute(query, params or {})
        await db.commit()
        return cursor.rowcount

    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query, return single row as dict or None."""
        db = await self._connection()
        async with db.execute(query, params or {}) as cursor:
            row = await cursor.fetchone()
            if row is None:
                return None
            cols = [c[0] for c in cursor.description]
            return dict(zip(cols, row, strict=True))

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query, return all rows as list of dicts."""
        db = await self._connection()
        async with db.execute(query, params or {}) as cursor:
            rows = await cursor.fetchall()
            cols = [c[0] for c in cursor.description]
            return [dict(zip(cols, row, strict=True)) for row in rows]
