# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Sequential bulk sending and the retry sweep over FAILED records.

Both loops are strictly sequential with a fixed pause between provider
calls; a single failure never aborts the run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from .errors import ConfigurationError, RateLimitExceeded
from .models import BulkResult

if TYPE_CHECKING:
    from .dispatcher import Dispatcher

RETRY_BATCH_SIZE = 50


class BulkSender:
    """Send a list of requests one after another through a Dispatcher."""

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    async def send_bulk(self, requests: Sequence[Any], delay_ms: int | None = None) -> BulkResult:
        """Send every request in order.

        Args:
            requests: Raw send options (or templated options, which are
                routed through the template path).
            delay_ms: Pause between consecutive sends. Defaults to the
                channel's own pacing (100 ms email, 200 ms SMS).

        Returns:
            BulkResult with per-request results in input order.
        """
        delay = self.dispatcher.channel.default_delay_ms if delay_ms is None else delay_ms
        result = BulkResult(total=len(requests))
        for index, request in enumerate(requests):
            if index and delay > 0:
                await asyncio.sleep(delay / 1000)
            if getattr(request, "template_slug", None):
                outcome = await self.dispatcher.send_templated(request)
            else:
                outcome = await self.dispatcher.send(request)
            result.results.append(outcome)
            if outcome.success:
                result.sent += 1
            else:
                result.failed += 1
        return result


class RetrySweeper:
    """Re-attempt FAILED records of one channel.

    Records are retried in place with their stored content, never the live
    template. Records at or above max_retries are left FAILED.
    """

    def __init__(self, dispatcher: Dispatcher, delay_ms: int | None = None):
        self.dispatcher = dispatcher
        self.delay_ms = dispatcher.channel.default_delay_ms if delay_ms is None else delay_ms

    async def retry_failed(self, max_retries: int = 3) -> int:
        """Run one sweep.

        Returns:
            Number of records that reached SENT during this sweep.
        """
        dispatcher = self.dispatcher
        try:
            settings = await dispatcher.check_ready()
        except (ConfigurationError, RateLimitExceeded) as exc:
            dispatcher.logger.warning(
                "%s retry sweep skipped [%s]: %s", dispatcher.channel.label, exc.code, exc
            )
            return 0

        candidates = await dispatcher.table.fetch_retryable(max_retries, limit=RETRY_BATCH_SIZE)
        succeeded = 0
        for index, record in enumerate(candidates):
            if index:
                if self.delay_ms > 0:
                    await asyncio.sleep(self.delay_ms / 1000)
                if await dispatcher.rate_limiter.is_exceeded(
                    dispatcher.channel.kind, settings.rate_limit_per_hour
                ):
                    dispatcher.logger.warning(
                        "%s retry sweep stopped: hourly rate limit reached", dispatcher.channel.label
                    )
                    break
            if dispatcher.metrics:
                dispatcher.metrics.inc_retried(dispatcher.kind)
            outcome = await dispatcher.attempt(record, settings)
            if outcome.success:
                succeeded += 1
        if candidates:
            dispatcher.logger.info(
                "%s retry sweep: %d/%d succeeded", dispatcher.channel.label, succeeded, len(candidates)
            )
        return succeeded


__all__ = ["BulkSender", "RETRY_BATCH_SIZE", "RetrySweeper"]
