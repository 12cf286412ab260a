# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database adapters."""

from .base import DbAdapter
from .sqlite import SqliteAdapter

__all__ = ["DbAdapter", "SqliteAdapter", "ADAPTERS", "get_adapter"]

# Adapter registry
ADAPTERS: dict[str, type[DbAdapter]] = {
    "sqlite": SqliteAdapter,
}


def get_adapter(connection_string: str) -> DbAdapter:
    """Create database adapter from connection string.

    Connection string formats:
        - "/path/to/db.sqlite" or a relative path → SQLite
        - "sqlite:/path/to/db.sqlite" → SQLite
        - ":memory:" or "sqlite::memory:" → SQLite in-memory

    Raises:
        ValueError: If the database type is unknown.
    """
    if not connection_string or connection_string == ":memory:":
        return SqliteAdapter(":memory:")

    if ":" not in connection_string or connection_string.startswith("/"):
        return SqliteAdapter(connection_string)

    db_type, connection_info = connection_string.split(":", 1)
    adapter_cls = ADAPTERS.get(db_type.lower())
    if adapter_cls is None:
        raise ValueError(
            f"Unknown database type: '{db_type}'. "
            f"Supported: {', '.join(sorted(ADAPTERS))}"
        )
    return adapter_cls(connection_info)
