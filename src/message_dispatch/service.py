# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Public entry point of the messaging dispatch layer.

MessagingService wires the database, settings resolution, templates,
preference gate, dispatchers, bulk/retry loops, stats and webhooks. The HTTP
API, the CLI and other backend code only talk to this class.

Example:
    service = MessagingService(load_config())
    await service.start()
    result = await service.send_templated_email(
        SendTemplatedEmailOptions(to="ana@example.com",
                                  template_slug="welcome-email",
                                  variables={"name": "Ana"})
    )
    await service.close()
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .bulk import BulkSender, RetrySweeper
from .channels import EmailChannel, SmsChannel
from .config import DispatchConfig
from .dispatch_db import DispatchDb
from .dispatcher import Dispatcher
from .logger import get_logger
from .models import (
    BulkResult,
    Channel,
    EmailResult,
    SendEmailOptions,
    SendSmsOptions,
    SendTemplatedEmailOptions,
    SendTemplatedSmsOptions,
    SmsResult,
    UnsubscribeKind,
)
from .preferences import PreferenceGate
from .prometheus import DispatchMetrics
from .rate_limit import RateLimiter
from .settings_resolver import SettingsResolver, is_masked, mask_settings
from .stats import StatsAggregator
from .templates import TemplateStore
from .transports import TransportProvider
from .webhooks import WebhookProcessor


class MessagingService:
    """Facade over every messaging operation.

    Attributes:
        config: Process configuration.
        db: DispatchDb instance.
        metrics: Prometheus metrics.
        email: Email dispatcher.
        sms: SMS dispatcher.
    """

    def __init__(
        self,
        config: DispatchConfig | None = None,
        *,
        db: DispatchDb | None = None,
        transports: TransportProvider | None = None,
        metrics: DispatchMetrics | None = None,
        logger: Any = None,
    ):
        self.config = config or DispatchConfig()
        self.db = db or DispatchDb(self.config.db_path)
        self.transports = transports or TransportProvider()
        self.metrics = metrics or DispatchMetrics()
        self.logger = logger or get_logger("MessagingService")

        self.resolver = SettingsResolver(self.db, self.config)
        self.rate_limiter = RateLimiter(self.db.send_log)
        self.email_templates = TemplateStore(self.db.email_templates)
        self.sms_templates = TemplateStore(self.db.sms_templates)
        self.preferences = PreferenceGate(self.db.preferences, self.resolver)
        self.stats = StatsAggregator(self.db)
        self.webhooks = WebhookProcessor(self.db, self.preferences, self.metrics)

        self.email = Dispatcher(
            EmailChannel(self.config), self.db, self.resolver, self.transports,
            self.rate_limiter, self.email_templates, self.preferences,
            self.metrics, self.logger,
        )
        self.sms = Dispatcher(
            SmsChannel(self.config), self.db, self.resolver, self.transports,
            self.rate_limiter, self.sms_templates, self.preferences,
            self.metrics, self.logger,
        )

    async def start(self) -> None:
        """Open the database and create or migrate tables."""
        await self.db.init_db()

    async def close(self) -> None:
        """Close provider clients and the database connection."""
        await self.transports.close()
        await self.db.close()

    def dispatcher(self, channel: Channel | str) -> Dispatcher:
        return self.email if Channel(channel) == Channel.EMAIL else self.sms

    def templates(self, channel: Channel | str) -> TemplateStore:
        return self.email_templates if Channel(channel) == Channel.EMAIL else self.sms_templates

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def send_email(self, options: SendEmailOptions) -> EmailResult:
        return await self.email.send(options)  # type: ignore[return-value]

    async def send_templated_email(self, options: SendTemplatedEmailOptions) -> EmailResult:
        return await self.email.send_templated(options)  # type: ignore[return-value]

    async def send_sms(self, options: SendSmsOptions) -> SmsResult:
        return await self.sms.send(options)  # type: ignore[return-value]

    async def send_templated_sms(self, options: SendTemplatedSmsOptions) -> SmsResult:
        return await self.sms.send_templated(options)  # type: ignore[return-value]

    async def send_bulk_emails(
        self, requests: Sequence[SendEmailOptions | SendTemplatedEmailOptions], delay_ms: int = 100
    ) -> BulkResult:
        return await BulkSender(self.email).send_bulk(requests, delay_ms)

    async def send_bulk_sms(
        self, requests: Sequence[SendSmsOptions | SendTemplatedSmsOptions], delay_ms: int = 200
    ) -> BulkResult:
        return await BulkSender(self.sms).send_bulk(requests, delay_ms)

    async def retry_failed_emails(self, max_retries: int = 3) -> int:
        return await RetrySweeper(self.email).retry_failed(max_retries)

    async def retry_failed_sms(self, max_retries: int = 3) -> int:
        return await RetrySweeper(self.sms).retry_failed(max_retries)

    # -------------------------------------------------------------------------
    # Stats and logs
    # -------------------------------------------------------------------------

    async def get_email_stats(self, days: int = 30) -> dict[str, Any]:
        return await self.stats.get_email_stats(days)

    async def get_sms_stats(self, days: int = 30) -> dict[str, Any]:
        return await self.stats.get_sms_stats(days)

    async def get_messaging_stats(self, days: int = 30) -> dict[str, Any]:
        return await self.stats.get_messaging_stats(days)

    async def list_messages(
        self, channel: Channel | str, status: str | None = None, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        return await self.db.messages(Channel(channel)).list_recent(status, limit, offset)

    async def get_message(self, channel: Channel | str, message_id: str) -> dict[str, Any] | None:
        return await self.db.messages(Channel(channel)).get(message_id)

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    async def update_sms_status(
        self,
        sid: str,
        status: str,
        error_code: str | None = None,
        error_message: str | None = None,
        price: str | float | None = None,
    ) -> int:
        return await self.webhooks.update_sms_status(sid, status, error_code, error_message, price)

    async def handle_email_event(self, event: dict[str, Any]) -> dict[str, Any]:
        return await self.webhooks.handle_email_event(event)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_settings(self, masked: bool = True) -> dict[str, Any]:
        """Return the settings record (secrets masked by default)."""
        record = await self.db.settings.get() or {}
        return mask_settings(record) if masked else record

    async def update_settings(self, changes: dict[str, Any]) -> dict[str, Any]:
        """Save settings. Masked secrets echoed by the admin view are ignored."""
        updates = {k: v for k, v in changes.items() if v is not None and not is_masked(v)}
        record = await self.db.settings.save(updates)
        self.logger.info("Messaging settings updated: %s", ", ".join(sorted(updates)) or "none")
        return mask_settings(record)

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    async def get_preferences(self, user_id: str) -> dict[str, Any]:
        return await self.preferences.get_or_create(user_id)

    async def update_preferences(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return await self.preferences.update(user_id, changes)

    async def unsubscribe(self, token: str, kind: UnsubscribeKind | str) -> dict[str, Any]:
        return await self.preferences.unsubscribe(token, kind)


__all__ = ["MessagingService"]
