# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Generic send pipeline shared by email and SMS.

Every attempted delivery is persisted before the provider is called:

    QUEUED → SENDING → SENT | FAILED

Provider callbacks later move SENT records to the delivery states (see
webhooks). Configuration, template, preference and rate-limit refusals
return ``success=False`` without writing a record. Provider failures are
recorded on the message and returned as ``success=False``. Persistence
errors propagate.

Example:
    dispatcher = Dispatcher(EmailChannel(config), db, resolver, provider,
                            rate_limiter, templates, gate)
    result = await dispatcher.send(SendEmailOptions(to=..., subject=..., html=...))
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from .errors import (
    ConfigurationError,
    DispatchError,
    PreferenceDenied,
    RateLimitExceeded,
    TemplateInactive,
    TemplateNotFound,
    TransportError,
)
from .logger import get_logger
from .models import EmailResult, MessageStatus, SmsResult

if TYPE_CHECKING:
    from .channels import MessageChannel
    from .dispatch_db import DispatchDb
    from .preferences import PreferenceGate
    from .prometheus import DispatchMetrics
    from .rate_limit import RateLimiter
    from .settings_resolver import ChannelSettings, SettingsResolver
    from .templates import TemplateStore
    from .transports import TransportProvider

Result = EmailResult | SmsResult


class Dispatcher:
    """Runs sends for one channel.

    Attributes:
        channel: Channel capabilities (record/payload building, error mapping).
        table: Message record table of the channel.
    """

    def __init__(
        self,
        channel: MessageChannel,
        db: DispatchDb,
        resolver: SettingsResolver,
        transports: TransportProvider,
        rate_limiter: RateLimiter,
        templates: TemplateStore,
        gate: PreferenceGate,
        metrics: DispatchMetrics | None = None,
        logger: Any = None,
    ):
        self.channel = channel
        self.db = db
        self.table = db.messages(channel.kind)
        self.resolver = resolver
        self.transports = transports
        self.rate_limiter = rate_limiter
        self.templates = templates
        self.gate = gate
        self.metrics = metrics
        self.logger = logger or get_logger("Dispatcher")

    @property
    def kind(self) -> str:
        return self.channel.kind.value

    def _refuse(self, exc: DispatchError) -> Result:
        """Answer a send refused before any record was written."""
        self.logger.warning("%s send refused [%s]: %s", self.channel.label, exc.code, exc)
        if self.metrics:
            self.metrics.inc_blocked(self.kind, exc.code)
        return self.channel.make_result(False, error=str(exc))

    async def check_ready(self) -> ChannelSettings:
        """Resolve settings and enforce configuration and the hourly limit.

        Raises:
            ConfigurationError: Channel disabled or credentials missing.
            RateLimitExceeded: The channel reached its hourly limit.
        """
        settings = await self.resolver.get_settings(self.channel.kind)
        if not settings.ready:
            raise ConfigurationError(self.channel.not_configured_error)
        limit = settings.rate_limit_per_hour
        if await self.rate_limiter.is_exceeded(self.channel.kind, limit):
            raise RateLimitExceeded(self.channel.rate_limited_error(limit))
        return settings

    async def send(self, options: Any) -> Result:
        """Send one message with already resolved content."""
        try:
            settings = await self.check_ready()
        except (ConfigurationError, RateLimitExceeded) as exc:
            return self._refuse(exc)
        record = await self.table.add(self.channel.build_record(options))
        return await self.attempt(record, settings)

    async def send_templated(self, options: Any) -> Result:
        """Resolve the template, consult the preference gate, then send."""
        try:
            template = await self.templates.resolve(options.template_slug)
            if options.user_id:
                decision = await self.gate.check_send_allowed(
                    options.user_id, self.channel.kind, template.get("category") or "TRANSACTIONAL"
                )
                if not decision.allowed:
                    raise PreferenceDenied(decision.reason or "Denied by user preferences")
        except (TemplateNotFound, TemplateInactive, PreferenceDenied) as exc:
            return self._refuse(exc)

        return await self.send(self.channel.render_template(template, options))

    async def attempt(self, record: dict[str, Any], settings: ChannelSettings) -> Result:
        """Run one provider call for an existing record.

        Used both for first sends and for retries of FAILED records: the
        record moves to SENDING, then SENT or FAILED.
        """
        message_id = record["id"]
        await self.table.set_status(message_id, MessageStatus.SENDING)
        payload = self.channel.build_transport_payload(record, settings)

        try:
            transport = await self.transports.get(settings)
            reply = await self.channel.call_transport(transport, payload)
        except Exception as exc:
            return await self._fail(record, self.channel.map_transport_error(exc))

        if not reply.ok:
            return await self._fail(record, TransportError(reply.error_code, reply.error_message))

        now = int(time.time())
        await self.table.mark_sent(message_id, reply.message_id, now)
        await self.rate_limiter.log_send(self.channel.kind)
        if record.get("template_id"):
            await self.templates.increment_sent_count(record["template_id"])
        if self.metrics:
            self.metrics.inc_sent(self.kind)
        return self.channel.make_result(True, transport_id=reply.message_id)

    async def _fail(self, record: dict[str, Any], error: TransportError) -> Result:
        await self.table.mark_failed(record["id"], error.code, str(error), int(time.time()))
        self.logger.warning(
            "%s send to %s failed (%s): %s",
            self.channel.label,
            record.get("to_email") or record.get("to_phone"),
            error.code,
            error,
        )
        if self.metrics:
            self.metrics.inc_failed(self.kind)
        return self.channel.make_result(False, error=str(error))


__all__ = ["Dispatcher"]
