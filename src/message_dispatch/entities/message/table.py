# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Message record tables: one row per attempted email or SMS delivery."""

from __future__ import annotations

from typing import Any

from ...models import MessageStatus
from ...sql import Float, Integer, Json, String, Table


class MessageTableBase(Table):
    """Common columns and lifecycle operations for message records.

    Fields:
    - id: Generated hex UUID
    - user_id, template_id, template_variables: provenance of templated sends
    - category: TRANSACTIONAL, MARKETING or NOTIFICATION
    - reference_type, reference_id: free-form link to a business object
    - status: MessageStatus value
    - sent_ts, delivered_ts, failed_ts: lifecycle timestamps (epoch seconds)
    - error_code, error_message: last failure
    - retry_count, last_retry_ts: failed attempts bookkeeping

    Records are never deleted by normal operation.
    """

    generate_id = True
    created_column = "created_ts"
    updated_column = "updated_ts"
    transport_id_column: str = ""

    def configure(self) -> None:
        c = self.columns
        c.column("id", String, primary_key=True)
        c.column("created_ts", Integer)
        c.column("updated_ts", Integer)
        c.column("user_id", String)
        c.column("template_id", String)
        c.column("template_variables", Json)
        c.column("category", String, default="TRANSACTIONAL")
        c.column("reference_type", String)
        c.column("reference_id", String)
        c.column("status", String, nullable=False, default=MessageStatus.QUEUED.value)
        c.column("sent_ts", Integer)
        c.column("delivered_ts", Integer)
        c.column("failed_ts", Integer)
        c.column("error_code", String)
        c.column("error_message", String)
        c.column("retry_count", Integer, nullable=False, default=0)
        c.column("last_retry_ts", Integer)
        self.configure_channel()

    def configure_channel(self) -> None:
        """Override to add channel specific columns."""
        pass

    async def trigger_on_inserting(self, record: dict[str, Any]) -> dict[str, Any]:
        record.setdefault("status", MessageStatus.QUEUED.value)
        record.setdefault("retry_count", 0)
        return record

    async def add(self, record: dict[str, Any]) -> dict[str, Any]:
        """Insert a new record and return it as stored."""
        data = dict(record)
        await self.insert(data)
        return data

    async def get(self, message_id: str) -> dict[str, Any] | None:
        return await self.select_one(where={"id": message_id})

    async def set_status(self, message_id: str, status: MessageStatus, **fields: Any) -> None:
        values = {"status": status.value, **fields}
        await self.update(values, {"id": message_id})

    async def mark_sent(self, message_id: str, transport_id: str | None, sent_ts: int) -> None:
        """Move a record to SENT. Errors of earlier failed attempts are cleared."""
        await self.set_status(
            message_id,
            MessageStatus.SENT,
            sent_ts=sent_ts,
            error_code=None,
            error_message=None,
            **{self.transport_id_column: transport_id},
        )

    async def mark_failed(
        self, message_id: str, error_code: str | None, error_message: str, failed_ts: int
    ) -> None:
        """Move a record to FAILED and count the failed attempt."""
        await self.execute(
            f"""
            UPDATE {self.name}
            SET status = :status, error_code = :error_code, error_message = :error_message,
                failed_ts = :failed_ts, last_retry_ts = :failed_ts,
                retry_count = retry_count + 1, updated_ts = :failed_ts
            WHERE id = :id
            """,
            {
                "status": MessageStatus.FAILED.value,
                "error_code": error_code,
                "error_message": error_message,
                "failed_ts": failed_ts,
                "id": message_id,
            },
        )

    async def fetch_retryable(self, max_retries: int, limit: int = 50) -> list[dict[str, Any]]:
        """FAILED records below max_retries, oldest first."""
        return await self.fetch_all(
            f"""
            SELECT * FROM {self.name}
            WHERE status = :status AND retry_count < :max_retries
            ORDER BY created_ts ASC, rowid ASC
            LIMIT :limit
            """,
            {"status": MessageStatus.FAILED.value, "max_retries": max_retries, "limit": limit},
        )

    async def list_recent(
        self, status: str | None = None, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        """Return records newest first, optionally filtered by status."""
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        where_sql = ""
        if status:
            where_sql = "WHERE status = :status"
            params["status"] = status
        return await self.fetch_all(
            f"""
            SELECT * FROM {self.name} {where_sql}
            ORDER BY created_ts DESC, rowid DESC
            LIMIT :limit OFFSET :offset
            """,
            params,
        )

    async def find_by_transport_id(self, transport_id: str) -> list[dict[str, Any]]:
        return await self.select(where={self.transport_id_column: transport_id})

    async def update_by_transport_id(self, transport_id: str, values: dict[str, Any]) -> int:
        """Update every record carrying transport_id. Returns affected rows."""
        return await self.update(dict(values), {self.transport_id_column: transport_id})

    async def count_since(self, since_ts: int) -> int:
        row = await self.db.adapter.fetch_one(
            f"SELECT COUNT(*) AS cnt FROM {self.name} WHERE created_ts >= :since_ts",
            {"since_ts": since_ts},
        )
        return int(row["cnt"]) if row else 0

    async def group_count_since(self, column: str, since_ts: int) -> dict[str, int]:
        """Count records created since since_ts grouped by column."""
        if column not in self.columns:
            raise ValueError(f"Unknown column '{column}' for {self.name}")
        rows = await self.db.adapter.fetch_all(
            f"""
            SELECT {column} AS value, COUNT(*) AS cnt FROM {self.name}
            WHERE created_ts >= :since_ts
            GROUP BY {column}
            """,
            {"since_ts": since_ts},
        )
        return {row["value"]: int(row["cnt"]) for row in rows if row["value"] is not None}


class EmailMessagesTable(MessageTableBase):
    """Email records. resend_id holds the transport message id."""

    name = "email_messages"
    transport_id_column = "resend_id"

    def configure_channel(self) -> None:
        c = self.columns
        c.column("to_email", String, nullable=False)
        c.column("to_name", String)
        c.column("subject", String, nullable=False)
        c.column("html_content", String, nullable=False)
        c.column("text_content", String)
        c.column("resend_id", String)
        c.column("opened_ts", Integer)
        c.column("clicked_ts", Integer)
        c.column("bounced_ts", Integer)
        c.column("complained_ts", Integer)


class SmsMessagesTable(MessageTableBase):
    """SMS records. twilio_sid holds the transport message id."""

    name = "sms_messages"
    transport_id_column = "twilio_sid"

    def configure_channel(self) -> None:
        c = self.columns
        c.column("to_phone", String, nullable=False)
        c.column("content", String, nullable=False)
        c.column("segments", Integer, default=1)
        c.column("twilio_sid", String)
        c.column("price", Float)

    async def total_cost_since(self, since_ts: int) -> float:
        row = await self.db.adapter.fetch_one(
            "SELECT COALESCE(SUM(price), 0) AS total FROM sms_messages WHERE created_ts >= :since_ts",
            {"since_ts": since_ts},
        )
        return float(row["total"]) if row else 0.0


__all__ = ["EmailMessagesTable", "MessageTableBase", "SmsMessagesTable"]
