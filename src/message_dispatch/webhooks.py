# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Provider delivery-status callbacks.

Twilio posts SMS status changes as form fields; Resend posts email events as
JSON. Both target records by transport id and may match several rows.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .logger import get_logger
from .models import MessageStatus

if TYPE_CHECKING:
    from .dispatch_db import DispatchDb
    from .preferences import PreferenceGate
    from .prometheus import DispatchMetrics

logger = get_logger("Webhooks")

TWILIO_STATUS_MAP: dict[str, MessageStatus] = {
    "queued": MessageStatus.QUEUED,
    "sending": MessageStatus.SENDING,
    "sent": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
    "undelivered": MessageStatus.UNDELIVERED,
    "failed": MessageStatus.FAILED,
}

RESEND_EVENT_MAP: dict[str, tuple[MessageStatus, str | None]] = {
    "email.sent": (MessageStatus.SENT, None),
    "email.delivered": (MessageStatus.DELIVERED, "delivered_ts"),
    "email.bounced": (MessageStatus.BOUNCED, "bounced_ts"),
    "email.complained": (MessageStatus.COMPLAINED, "complained_ts"),
    "email.opened": (MessageStatus.OPENED, "opened_ts"),
    "email.clicked": (MessageStatus.CLICKED, "clicked_ts"),
}


def map_twilio_status(status: str) -> MessageStatus:
    """Map a Twilio MessageStatus to a record status.

    Unknown values map to SENT with a warning.
    """
    mapped = TWILIO_STATUS_MAP.get((status or "").strip().lower())
    if mapped is None:
        logger.warning("Unknown Twilio status %r, treating as SENT", status)
        return MessageStatus.SENT
    return mapped


def parse_event_timestamp(value: Any) -> int:
    """Epoch seconds from an ISO-8601 event timestamp, now when missing."""
    if isinstance(value, str) and value:
        try:
            return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
        except ValueError:
            logger.warning("Unparseable event timestamp %r", value)
    return int(time.time())


class WebhookProcessor:
    """Applies provider callbacks to message records."""

    def __init__(
        self,
        db: DispatchDb,
        gate: PreferenceGate,
        metrics: DispatchMetrics | None = None,
    ):
        self.db = db
        self.gate = gate
        self.metrics = metrics

    async def update_sms_status(
        self,
        sid: str,
        status: str,
        error_code: str | None = None,
        error_message: str | None = None,
        price: str | float | None = None,
    ) -> int:
        """Apply a Twilio status callback to every record with this SID.

        Returns:
            Number of records updated.
        """
        mapped = map_twilio_status(status)
        now = int(time.time())
        values: dict[str, Any] = {"status": mapped.value}
        if mapped == MessageStatus.DELIVERED:
            values["delivered_ts"] = now
        elif mapped in (MessageStatus.FAILED, MessageStatus.UNDELIVERED):
            values["failed_ts"] = now
            if error_code:
                values["error_code"] = str(error_code)
            if error_message:
                values["error_message"] = error_message
        if price not in (None, ""):
            try:
                values["price"] = abs(float(price))
            except (TypeError, ValueError):
                logger.warning("Ignoring non numeric Twilio price %r for %s", price, sid)

        updated = await self.db.sms_messages.update_by_transport_id(sid, values)
        if self.metrics:
            self.metrics.inc_webhook_event("sms", mapped.value)
        if not updated:
            logger.info("Twilio callback for unknown SID %s", sid)
        return updated

    async def handle_email_event(self, event: dict[str, Any]) -> dict[str, Any]:
        """Apply a Resend webhook event.

        Args:
            event: Parsed JSON body ``{type, created_at, data: {email_id, bounce?}}``.

        Returns:
            ``{"received": True}`` plus ``updated`` when the event was tracked.

        Raises:
            ValueError: If ``data.email_id`` is missing.
        """
        data = event.get("data") or {}
        resend_id = data.get("email_id")
        if not resend_id:
            raise ValueError("Missing email_id")

        event_type = event.get("type") or ""
        mapping = RESEND_EVENT_MAP.get(event_type)
        if mapping is None:
            return {"received": True}

        status, ts_column = mapping
        values: dict[str, Any] = {"status": status.value}
        if ts_column:
            values[ts_column] = parse_event_timestamp(event.get("created_at"))
        bounce = data.get("bounce") or {}
        if status == MessageStatus.BOUNCED and bounce.get("message"):
            values["error_message"] = bounce["message"]

        updated = await self.db.email_messages.update_by_transport_id(resend_id, values)
        if self.metrics:
            self.metrics.inc_webhook_event("email", status.value)

        if status in (MessageStatus.BOUNCED, MessageStatus.COMPLAINED):
            records = await self.db.email_messages.find_by_transport_id(resend_id)
            user_id = next((r["user_id"] for r in records if r.get("user_id")), None)
            if user_id:
                logger.warning("Email %s for user %s", event_type, user_id)
                if status == MessageStatus.COMPLAINED:
                    await self.gate.disable_email(user_id)

        return {"received": True, "updated": updated}


__all__ = [
    "RESEND_EVENT_MAP",
    "TWILIO_STATUS_MAP",
    "WebhookProcessor",
    "map_twilio_status",
    "parse_event_timestamp",
]
