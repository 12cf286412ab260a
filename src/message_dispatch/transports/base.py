# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Transport interface shared by the email and SMS providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class TransportReply:
    """Provider answer to a send call.

    A provider may accept the call but return an error instead of an id;
    that case sets error_message and leaves message_id empty.
    """

    message_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    raw: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.error_message is None and self.error_code is None


class Transport(ABC):
    """A provider client able to send one message."""

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> TransportReply:
        """Send one message. May raise on network or provider errors."""
        ...

    async def close(self) -> None:
        """Release provider resources."""
        return None


__all__ = ["Transport", "TransportReply"]
