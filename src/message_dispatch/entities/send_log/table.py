# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Send log table manager for rate limiting."""

from __future__ import annotations

from ...sql import Integer, String, Table


class SendLogTable(Table):
    """Send log table: one row per successful transport call.

    Used to calculate sends within the hourly window per channel.
    """

    name = "send_log"

    def configure(self) -> None:
        c = self.columns
        c.column("channel", String)
        c.column("timestamp", Integer)

    async def log(self, channel: str, timestamp: int) -> None:
        """Record a delivery event."""
        await self.insert({"channel": channel, "timestamp": timestamp})

    async def count_since(self, channel: str, since_ts: int) -> int:
        """Count sends after since_ts for the given channel."""
        row = await self.db.adapter.fetch_one(
            "SELECT COUNT(*) as cnt FROM send_log WHERE channel = :channel AND timestamp > :since_ts",
            {"channel": channel, "since_ts": since_ts},
        )
        return int(row["cnt"]) if row else 0


__all__ = ["SendLogTable"]
