# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Hourly sliding-window rate limiter using the persisted send log.

The limiter counts successful transport calls per channel over the last
hour, so limits survive service restarts.

Example:
    Using the rate limiter::

        rate_limiter = RateLimiter(db.send_log)
        if await rate_limiter.is_exceeded(Channel.EMAIL, settings.rate_limit_per_hour):
            return EmailResult(success=False, error="Email rate limit exceeded (100/hour)")
        await send_message(msg)
        await rate_limiter.log_send(Channel.EMAIL)
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from .models import Channel

if TYPE_CHECKING:
    from .entities import SendLogTable

WINDOW_SECONDS = 3600


class RateLimiter:
    """Per-channel hourly limiter backed by the send_log table.

    Attributes:
        send_log: Table used to count and record sends.
    """

    def __init__(self, send_log: SendLogTable):
        self.send_log = send_log

    async def sends_in_window(self, channel: Channel, now: int | None = None) -> int:
        now = int(time.time()) if now is None else now
        return await self.send_log.count_since(channel.value, now - WINDOW_SECONDS)

    async def is_exceeded(self, channel: Channel, limit_per_hour: int | None) -> bool:
        """Check whether the channel already reached its hourly limit.

        Args:
            channel: The channel about to send.
            limit_per_hour: Configured cap. None or 0 means unlimited.

        Returns:
            True if sending now would exceed the limit.
        """
        if not limit_per_hour or limit_per_hour <= 0:
            return False
        return await self.sends_in_window(channel) >= limit_per_hour

    async def log_send(self, channel: Channel) -> None:
        """Record a successful send for rate limiting purposes."""
        await self.send_log.log(channel.value, int(time.time()))


__all__ = ["RateLimiter", "WINDOW_SECONDS"]
