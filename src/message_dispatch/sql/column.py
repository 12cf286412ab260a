# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Column definitions used by Table.configure()."""

from __future__ import annotations

import json
from typing import Any

Integer = "INTEGER"
String = "TEXT"
Float = "REAL"
Boolean = "BOOLEAN"
Json = "JSON"

# JSON is stored as text, booleans as 0/1
_STORAGE_TYPES = {Json: "TEXT", Boolean: "INTEGER"}


class Column:
    """Single column definition.

    Attributes:
        name: Column name.
        type_: One of the module-level type constants.
        primary_key: Whether the column is the primary key.
        nullable: Whether NULL is accepted.
        default: Default value rendered into the DDL.
        unique: Whether a UNIQUE constraint is added.
    """

    def __init__(
        self,
        name: str,
        type_: str,
        *,
        primary_key: bool = False,
        nullable: bool = True,
        default: Any = None,
        unique: bool = False,
    ) -> None:
        self.name = name
        self.type_ = type_
        self.primary_key = primary_key
        self.nullable = nullable
        self.default = default
        self.unique = unique

    def encode(self, value: Any) -> Any:
        """Python value to the stored representation."""
        if value is None:
            return None
        if self.type_ == Json:
            return json.dumps(value)
        if self.type_ == Boolean:
            return 1 if value else 0
        return value

    def decode(self, value: Any) -> Any:
        """Stored representation back to the Python value."""
        if value is None:
            return None
        if self.type_ == Json:
            return json.loads(value)
        if self.type_ == Boolean:
            return bool(value)
        return value

    def to_sql(self) -> str:
        """Column fragment of a CREATE TABLE statement."""
        parts = [f'"{self.name}"', _STORAGE_TYPES.get(self.type_, self.type_)]
        if self.primary_key:
            parts.append("PRIMARY KEY")
        else:
            if not self.nullable:
                parts.append("NOT NULL")
            if self.unique:
                parts.append("UNIQUE")
        if self.default is not None:
            parts.append(f"DEFAULT {self._default_sql()}")
        return " ".join(parts)

    def _default_sql(self) -> str:
        if isinstance(self.default, bool):
            return "1" if self.default else "0"
        if isinstance(self.default, (int, float)):
            return str(self.default)
        escaped = str(self.default).replace("'", "''")
        return f"'{escaped}'"


class Columns(dict):
    """Ordered mapping of column name to Column."""

    def column(self, name: str, type_: str, **kwargs: Any) -> Column:
        col = Column(name, type_, **kwargs)
        self[name] = col
        return col

    def primary_key(self) -> str | None:
        return next((name for name, col in self.items() if col.primary_key), None)


__all__ = [
    "Boolean",
    "Column",
    "Columns",
    "Float",
    "Integer",
    "Json",
    "String",
]
