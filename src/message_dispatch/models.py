# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models for the messaging dispatch layer.

This module defines the data models used throughout the application for
validation, serialization, and type safety.

Models:
    - SendEmailOptions / SendTemplatedEmailOptions: email send requests
    - SendSmsOptions / SendTemplatedSmsOptions: SMS send requests
    - EmailResult / SmsResult / BulkResult: send outcomes
    - EmailTemplateCreate / SmsTemplateCreate and updates: template admin
    - SettingsUpdate: messaging settings admin
    - PreferenceUpdate: user notification preferences
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field


class Channel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class MessageStatus(str, Enum):
    """Lifecycle states of a message record.

    QUEUED → SENDING → SENT | FAILED on the send path; provider callbacks
    later move SENT records to the delivery states.
    """

    QUEUED = "QUEUED"
    SENDING = "SENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    BOUNCED = "BOUNCED"
    OPENED = "OPENED"
    CLICKED = "CLICKED"
    COMPLAINED = "COMPLAINED"
    UNDELIVERED = "UNDELIVERED"
    FAILED = "FAILED"


class MessageCategory(str, Enum):
    """Category gating opt-out: marketing and notification sub-flags."""

    TRANSACTIONAL = "TRANSACTIONAL"
    MARKETING = "MARKETING"
    NOTIFICATION = "NOTIFICATION"


class UnsubscribeKind(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    ALL = "all"
    MARKETING = "marketing"


# ---------------------------------------------------------------------------
# Send requests
# ---------------------------------------------------------------------------


class _Provenance(BaseModel):
    """Fields shared by every send request."""

    model_config = ConfigDict(extra="forbid")

    user_id: Annotated[str | None, Field(default=None, description="Recipient user id")]
    reference_type: Annotated[
        str | None, Field(default=None, description="Business object type (e.g. enrollment)")
    ]
    reference_id: Annotated[str | None, Field(default=None, description="Business object id")]


class SendEmailOptions(_Provenance):
    """Raw email send with fully resolved content."""

    to: Annotated[str, Field(min_length=3, description="Recipient email address")]
    to_name: Annotated[str | None, Field(default=None, description="Recipient display name")]
    subject: Annotated[str, Field(description="Subject line")]
    html: Annotated[str, Field(description="HTML body")]
    text: Annotated[str | None, Field(default=None, description="Plain text body")]
    template_id: Annotated[str | None, Field(default=None)]
    template_variables: Annotated[dict[str, Any] | None, Field(default=None)]
    category: Annotated[MessageCategory, Field(default=MessageCategory.TRANSACTIONAL)]


class SendTemplatedEmailOptions(_Provenance):
    """Email send resolved from a template slug."""

    to: Annotated[str, Field(min_length=3, description="Recipient email address")]
    to_name: Annotated[str | None, Field(default=None)]
    template_slug: Annotated[str, Field(min_length=1, description="Template slug")]
    variables: Annotated[dict[str, Any], Field(default_factory=dict)]


class SendSmsOptions(_Provenance):
    """Raw SMS send with fully resolved body."""

    to: Annotated[str, Field(min_length=1, description="Recipient phone number")]
    body: Annotated[str, Field(min_length=1, description="Message body")]
    template_id: Annotated[str | None, Field(default=None)]
    template_variables: Annotated[dict[str, Any] | None, Field(default=None)]
    category: Annotated[MessageCategory, Field(default=MessageCategory.TRANSACTIONAL)]


class SendTemplatedSmsOptions(_Provenance):
    """SMS send resolved from a template slug."""

    to: Annotated[str, Field(min_length=1, description="Recipient phone number")]
    template_slug: Annotated[str, Field(min_length=1)]
    variables: Annotated[dict[str, Any], Field(default_factory=dict)]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class EmailResult(BaseModel):
    success: bool
    message_id: str | None = None
    error: str | None = None


class SmsResult(BaseModel):
    success: bool
    message_sid: str | None = None
    error: str | None = None


class BulkResult(BaseModel):
    """Outcome of a sequential bulk send. results keeps request order."""

    total: int = 0
    sent: int = 0
    failed: int = 0
    results: list[EmailResult | SmsResult] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Admin payloads
# ---------------------------------------------------------------------------


class _TemplateBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, Field(min_length=1)]
    description: str | None = None
    category: MessageCategory = MessageCategory.TRANSACTIONAL
    variables: list[str] | None = None
    is_active: bool = True


class EmailTemplateCreate(_TemplateBase):
    slug: Annotated[str, Field(min_length=1, pattern=r"^[A-Za-z0-9_-]+$")]
    subject: Annotated[str, Field(min_length=1)]
    html_content: Annotated[str, Field(min_length=1)]
    text_content: str | None = None
    is_system: bool = False


class SmsTemplateCreate(_TemplateBase):
    slug: Annotated[str, Field(min_length=1, pattern=r"^[A-Za-z0-9_-]+$")]
    content: Annotated[str, Field(min_length=1)]
    is_system: bool = False


class EmailTemplateUpdate(BaseModel):
    """Partial update. slug is immutable and rejected."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    description: str | None = None
    category: MessageCategory | None = None
    variables: list[str] | None = None
    is_active: bool | None = None
    subject: str | None = None
    html_content: str | None = None
    text_content: str | None = None


class SmsTemplateUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    description: str | None = None
    category: MessageCategory | None = None
    variables: list[str] | None = None
    is_active: bool | None = None
    content: str | None = None


class SettingsUpdate(BaseModel):
    """Partial settings update. Masked secrets echoed back are ignored."""

    model_config = ConfigDict(extra="forbid")

    email_enabled: bool | None = None
    resend_api_key: str | None = None
    from_email: str | None = None
    from_name: str | None = None
    reply_to_email: str | None = None
    sms_enabled: bool | None = None
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None
    default_email_opt_in: bool | None = None
    default_sms_opt_in: bool | None = None
    email_rate_limit_per_hour: Annotated[int | None, Field(default=None, ge=0)]
    sms_rate_limit_per_hour: Annotated[int | None, Field(default=None, ge=0)]


class PreferenceUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email_enabled: bool | None = None
    email_marketing: bool | None = None
    email_notifications: bool | None = None
    sms_enabled: bool | None = None
    sms_marketing: bool | None = None
    sms_notifications: bool | None = None


__all__ = [
    "BulkResult",
    "Channel",
    "EmailResult",
    "EmailTemplateCreate",
    "EmailTemplateUpdate",
    "MessageCategory",
    "MessageStatus",
    "PreferenceUpdate",
    "SendEmailOptions",
    "SendSmsOptions",
    "SendTemplatedEmailOptions",
    "SendTemplatedSmsOptions",
    "SettingsUpdate",
    "SmsResult",
    "SmsTemplateCreate",
    "SmsTemplateUpdate",
    "UnsubscribeKind",
]
