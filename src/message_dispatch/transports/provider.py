# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Lazily created, credential-keyed transport clients."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from ..models import Channel
from .base import Transport
from .resend import ResendTransport
from .twilio_sms import TwilioTransport

if TYPE_CHECKING:
    from ..settings_resolver import ChannelSettings

TransportFactory = Callable[[dict[str, str]], Transport]


def _resend_factory(credentials: dict[str, str]) -> Transport:
    return ResendTransport(credentials["api_key"])


def _twilio_factory(credentials: dict[str, str]) -> Transport:
    return TwilioTransport(credentials["account_sid"], credentials["auth_token"])


class TransportProvider:
    """Owns one transport per channel.

    A transport is created on first use and re-created when the resolved
    credentials change. Factories can be replaced to inject fakes.
    """

    def __init__(
        self,
        email_factory: TransportFactory | None = None,
        sms_factory: TransportFactory | None = None,
    ):
        self._factories: dict[Channel, TransportFactory] = {
            Channel.EMAIL: email_factory or _resend_factory,
            Channel.SMS: sms_factory or _twilio_factory,
        }
        self._transports: dict[Channel, tuple[tuple[tuple[str, str], ...], Transport]] = {}

    async def get(self, settings: ChannelSettings) -> Transport:
        key = tuple(sorted(settings.credentials.items()))
        cached = self._transports.get(settings.channel)
        if cached is not None:
            cached_key, transport = cached
            if cached_key == key:
                return transport
            await transport.close()
        transport = self._factories[settings.channel](dict(settings.credentials))
        self._transports[settings.channel] = (key, transport)
        return transport

    async def close(self) -> None:
        for _, transport in self._transports.values():
            await transport.close()
        self._transports.clear()


__all__ = ["TransportFactory", "TransportProvider"]
