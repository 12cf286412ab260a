# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base adapter class for async database backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence


class DbAdapter(ABC):
    """Abstract base class for async database adapters.

    All queries use :name placeholders. The generic CRUD helpers
    (insert/select/update/delete/count) build equality-only WHERE clauses;
    anything richer goes through fetch_one/fetch_all/execute with raw SQL.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish database connection."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close database connection."""
        ...

    @abstractmethod
    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute query, return affected row count."""
        ...

    @abstractmethod
    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query, return single row as dict or None."""
        ...

    @abstractmethod
    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query, return all rows as list of dicts."""
        ...

    def _placeholder(self, name: str) -> str:
        return f":{name}"

    def _where_sql(self, where: dict[str, Any] | None) -> tuple[str, dict[str, Any]]:
        if not where:
            return "", {}
        conditions = []
        params: dict[str, Any] = {}
        for i, (key, value) in enumerate(where.items()):
            if value is None:
                conditions.append(f"{key} IS NULL")
            else:
                pname = f"w_{i}"
                conditions.append(f"{key} = {self._placeholder(pname)}")
                params[pname] = value
        return " WHERE " + " AND ".join(conditions), params

    async def insert(self, table: str, data: dict[str, Any]) -> int:
        columns = list(data.keys())
        col_list = ", ".join(columns)
        placeholders = ", ".join(self._placeholder(c) for c in columns)
        return await self.execute(
            f"INSERT INTO {table} ({col_list}) VALUES ({placeholders})", data
        )

    async def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        cols_sql = ", ".join(columns) if columns else "*"
        where_sql, params = self._where_sql(where)
        query = f"SELECT {cols_sql} FROM {table}{where_sql}"
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        return await self.fetch_all(query, params)

    async def select_one(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        rows = await self.select(table, columns, where, limit=1)
        return rows[0] if rows else None

    async def update(
        self, table: str, values: dict[str, Any], where: dict[str, Any]
    ) -> int:
        if not values:
            return 0
        set_parts = []
        params: dict[str, Any] = {}
        for i, (key, value) in enumerate(values.items()):
            pname = f"v_{i}"
            set_parts.append(f"{key} = {self._placeholder(pname)}")
            params[pname] = value
        where_sql, where_params = self._where_sql(where)
        params.update(where_params)
        return await self.execute(
            f"UPDATE {table} SET {', '.join(set_parts)}{where_sql}", params
        )

    async def delete(self, table: str, where: dict[str, Any]) -> int:
        where_sql, params = self._where_sql(where)
        return await self.execute(f"DELETE FROM {table}{where_sql}", params)

    async def count(self, table: str, where: dict[str, Any] | None = None) -> int:
        where_sql, params = self._where_sql(where)
        row = await self.fetch_one(f"SELECT COUNT(*) AS cnt FROM {table}{where_sql}", params)
        return int(row["cnt"]) if row else 0

