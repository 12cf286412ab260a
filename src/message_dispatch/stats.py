# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Windowed delivery statistics over message records."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from .models import Channel, MessageStatus

if TYPE_CHECKING:
    from .dispatch_db import DispatchDb

DAY_SECONDS = 86400


def _rate(count: int, total: int) -> float:
    return count / total if total else 0.0


class StatsAggregator:
    """Read-only aggregation (count + group-by) in a trailing window."""

    def __init__(self, db: DispatchDb):
        self.db = db

    async def _base(self, channel: Channel, days: int, now: int | None) -> tuple[dict[str, Any], int]:
        now = int(time.time()) if now is None else now
        since = now - days * DAY_SECONDS
        table = self.db.messages(channel)
        total = await table.count_since(since)
        by_status = await table.group_count_since("status", since)
        by_category = await table.group_count_since("category", since)
        return {"total": total, "by_status": by_status, "by_category": by_category}, since

    async def get_email_stats(self, days: int = 30, now: int | None = None) -> dict[str, Any]:
        """Email stats: delivery, open and bounce rates.

        delivery_rate counts DELIVERED, OPENED and CLICKED; open_rate counts
        OPENED and CLICKED. All rates are 0 when the window is empty.
        """
        stats, _ = await self._base(Channel.EMAIL, days, now)
        total = stats["total"]
        by_status = stats["by_status"]

        def n(status: MessageStatus) -> int:
            return by_status.get(status.value, 0)

        delivered = n(MessageStatus.DELIVERED) + n(MessageStatus.OPENED) + n(MessageStatus.CLICKED)
        opened = n(MessageStatus.OPENED) + n(MessageStatus.CLICKED)
        stats.update(
            delivery_rate=_rate(delivered, total),
            open_rate=_rate(opened, total),
            bounce_rate=_rate(n(MessageStatus.BOUNCED), total),
        )
        return stats

    async def get_sms_stats(self, days: int = 30, now: int | None = None) -> dict[str, Any]:
        """SMS stats: total cost, delivery and failure rates."""
        stats, since = await self._base(Channel.SMS, days, now)
        total = stats["total"]
        by_status = stats["by_status"]
        failed = by_status.get(MessageStatus.FAILED.value, 0) + by_status.get(
            MessageStatus.UNDELIVERED.value, 0
        )
        stats.update(
            total_cost=await self.db.sms_messages.total_cost_since(since),
            delivery_rate=_rate(by_status.get(MessageStatus.DELIVERED.value, 0), total),
            failure_rate=_rate(failed, total),
        )
        return stats

    async def get_stats(self, channel: Channel, days: int = 30) -> dict[str, Any]:
        if channel == Channel.EMAIL:
            return await self.get_email_stats(days)
        return await self.get_sms_stats(days)

    async def get_messaging_stats(self, days: int = 30) -> dict[str, Any]:
        """Combined email + SMS view with overall totals."""
        now = int(time.time())
        email = await self.get_email_stats(days, now)
        sms = await self.get_sms_stats(days, now)
        return {
            "period": f"{days} days",
            "email": email,
            "sms": sms,
            "totals": {
                "messages_sent": email["total"] + sms["total"],
                "emails_sent": email["total"],
                "sms_sent": sms["total"],
            },
        }


__all__ = ["StatsAggregator"]
