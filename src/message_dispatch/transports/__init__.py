# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Provider transports: Resend (email) and Twilio (SMS)."""

from .base import Transport, TransportReply
from .provider import TransportFactory, TransportProvider
from .resend import RESEND_API_URL, ResendTransport
from .twilio_sms import TwilioTransport

__all__ = [
    "RESEND_API_URL",
    "ResendTransport",
    "Transport",
    "TransportFactory",
    "TransportProvider",
    "TransportReply",
    "TwilioTransport",
]
