# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Channel capabilities plugged into the generic Dispatcher.

A channel knows how to turn a send request into a message record, a stored
record into a provider payload, and a provider failure into a
TransportError. Everything else (state machine, retry, bulk) is shared.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from twilio.base.exceptions import TwilioRestException

from .errors import TransportError
from .models import (
    Channel,
    EmailResult,
    MessageCategory,
    SendEmailOptions,
    SendSmsOptions,
    SendTemplatedEmailOptions,
    SendTemplatedSmsOptions,
    SmsResult,
)
from .sms_utils import count_segments, normalize_phone_number
from .templates import interpolate

if TYPE_CHECKING:
    from .config import DispatchConfig
    from .settings_resolver import ChannelSettings
    from .transports import Transport, TransportReply


class MessageChannel(ABC):
    """Capability interface of a delivery channel.

    Attributes:
        kind: Channel enum value, also the table/metric label.
        label: Human name used in error strings ("Email", "SMS").
        default_delay_ms: Pause between consecutive bulk or retry sends.
    """

    kind: Channel
    label: str
    default_delay_ms: int

    def __init__(self, config: DispatchConfig):
        self.config = config

    @property
    def not_configured_error(self) -> str:
        return f"{self.label} service not configured"

    def rate_limited_error(self, limit: int) -> str:
        return f"{self.label} rate limit exceeded ({limit}/hour)"

    @abstractmethod
    def normalize_destination(self, to: str) -> str:
        ...

    @abstractmethod
    def build_record(self, options: Any) -> dict[str, Any]:
        """Message record columns for a raw send request."""
        ...

    @abstractmethod
    def build_transport_payload(
        self, record: dict[str, Any], settings: ChannelSettings
    ) -> dict[str, Any]:
        """Provider payload built from the stored record snapshot."""
        ...

    @abstractmethod
    def render_template(self, template: dict[str, Any], options: Any) -> Any:
        """Interpolate a template into a raw send request."""
        ...

    async def call_transport(
        self, transport: Transport, payload: dict[str, Any]
    ) -> TransportReply:
        return await transport.send(payload)

    def map_transport_error(self, exc: BaseException) -> TransportError:
        """Translate a raised provider error into a TransportError."""
        code = getattr(exc, "code", None)
        return TransportError(
            str(code) if code is not None else type(exc).__name__,
            str(exc) or type(exc).__name__,
        )

    @abstractmethod
    def make_result(
        self, success: bool, transport_id: str | None = None, error: str | None = None
    ) -> EmailResult | SmsResult:
        ...


class EmailChannel(MessageChannel):
    kind = Channel.EMAIL
    label = "Email"
    default_delay_ms = 100

    def normalize_destination(self, to: str) -> str:
        return to.strip()

    def build_record(self, options: SendEmailOptions) -> dict[str, Any]:
        return {
            "to_email": self.normalize_destination(options.to),
            "to_name": options.to_name,
            "user_id": options.user_id,
            "subject": options.subject,
            "html_content": options.html,
            "text_content": options.text,
            "template_id": options.template_id,
            "template_variables": options.template_variables,
            "category": MessageCategory(options.category).value,
            "reference_type": options.reference_type,
            "reference_id": options.reference_id,
        }

    def build_transport_payload(
        self, record: dict[str, Any], settings: ChannelSettings
    ) -> dict[str, Any]:
        from_address = settings.from_address
        if settings.from_name:
            from_address = f"{settings.from_name} <{settings.from_address}>"
        return {
            "from": from_address,
            "to": record["to_email"],
            "subject": record["subject"],
            "html": record["html_content"],
            "text": record.get("text_content"),
            "reply_to": settings.reply_to,
        }

    def render_template(
        self, template: dict[str, Any], options: SendTemplatedEmailOptions
    ) -> SendEmailOptions:
        variables = options.variables
        text = template.get("text_content")
        return SendEmailOptions(
            to=options.to,
            to_name=options.to_name,
            user_id=options.user_id,
            subject=interpolate(template["subject"], variables),
            html=interpolate(template["html_content"], variables),
            text=interpolate(text, variables) if text else None,
            template_id=template["id"],
            template_variables=variables,
            category=template.get("category") or MessageCategory.TRANSACTIONAL,
            reference_type=options.reference_type,
            reference_id=options.reference_id,
        )

    def make_result(
        self, success: bool, transport_id: str | None = None, error: str | None = None
    ) -> EmailResult:
        return EmailResult(success=success, message_id=transport_id, error=error)


class SmsChannel(MessageChannel):
    kind = Channel.SMS
    label = "SMS"
    default_delay_ms = 200

    def normalize_destination(self, to: str) -> str:
        return normalize_phone_number(to)

    def build_record(self, options: SendSmsOptions) -> dict[str, Any]:
        return {
            "to_phone": self.normalize_destination(options.to),
            "user_id": options.user_id,
            "content": options.body,
            "segments": count_segments(options.body),
            "template_id": options.template_id,
            "template_variables": options.template_variables,
            "category": MessageCategory(options.category).value,
            "reference_type": options.reference_type,
            "reference_id": options.reference_id,
        }

    def build_transport_payload(
        self, record: dict[str, Any], settings: ChannelSettings
    ) -> dict[str, Any]:
        return {
            "body": record["content"],
            "from_": settings.from_address,
            "to": record["to_phone"],
            "status_callback": self.config.twilio_status_callback,
        }

    def render_template(
        self, template: dict[str, Any], options: SendTemplatedSmsOptions
    ) -> SendSmsOptions:
        return SendSmsOptions(
            to=options.to,
            user_id=options.user_id,
            body=interpolate(template["content"], options.variables),
            template_id=template["id"],
            template_variables=options.variables,
            category=template.get("category") or MessageCategory.TRANSACTIONAL,
            reference_type=options.reference_type,
            reference_id=options.reference_id,
        )

    def map_transport_error(self, exc: BaseException) -> TransportError:
        if isinstance(exc, TwilioRestException):
            code = exc.code if exc.code is not None else exc.status
            return TransportError(str(code), exc.msg or str(exc))
        return super().map_transport_error(exc)

    def make_result(
        self, success: bool, transport_id: str | None = None, error: str | None = None
    ) -> SmsResult:
        return SmsResult(success=success, message_sid=transport_id, error=error)


__all__ = ["EmailChannel", "MessageChannel", "SmsChannel"]
