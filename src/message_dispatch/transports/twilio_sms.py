# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Twilio SMS transport.

The Twilio SDK is synchronous, so each call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Any

from twilio.rest import Client

from .base import Transport, TransportReply


class TwilioTransport(Transport):
    """Send SMS through ``client.messages.create``.

    Payload keys: ``body``, ``from_``, ``to`` and optional ``status_callback``.
    TwilioRestException propagates to the caller.
    """

    def __init__(self, account_sid: str, auth_token: str, client: Any | None = None):
        self._client = client if client is not None else Client(account_sid, auth_token)

    def _create(self, payload: dict[str, Any]) -> Any:
        kwargs = {k: v for k, v in payload.items() if v is not None}
        return self._client.messages.create(**kwargs)

    async def send(self, payload: dict[str, Any]) -> TransportReply:
        message = await asyncio.to_thread(self._create, payload)
        return TransportReply(
            message_id=message.sid,
            raw={"sid": message.sid, "status": getattr(message, "status", None)},
        )


__all__ = ["TwilioTransport"]
