# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Resend email transport over the HTTP API.

Example:
    transport = ResendTransport("re_123")
    reply = await transport.send({
        "from": "Academy <noreply@example.com>",
        "to": "ana@example.com",
        "subject": "Welcome",
        "html": "<p>Hi</p>",
    })
    await transport.close()
"""

from __future__ import annotations

from typing import Any

import aiohttp

from .base import Transport, TransportReply

RESEND_API_URL = "https://api.resend.com"


class ResendTransport(Transport):
    """Send emails through ``POST /emails`` of the Resend API.

    A non-2xx answer is returned as an error reply carrying the provider's
    ``name`` and ``message``; connection problems raise aiohttp errors.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = RESEND_API_URL,
        timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def send(self, payload: dict[str, Any]) -> TransportReply:
        body = {k: v for k, v in payload.items() if v is not None}
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        session = self._get_session()
        async with session.post(f"{self._base_url}/emails", json=body, headers=headers) as resp:
            try:
                data = await resp.json(content_type=None)
            except ValueError:
                data = {"message": await resp.text()}
            data = data if isinstance(data, dict) else {}
            if resp.status >= 400:
                return TransportReply(
                    error_code=str(data.get("name") or resp.status),
                    error_message=data.get("message") or f"HTTP {resp.status}",
                    raw=data,
                )
            return TransportReply(message_id=data.get("id"), raw=data)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = ["RESEND_API_URL", "ResendTransport"]
