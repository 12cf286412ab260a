# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory and HTTP schemas for the messaging layer.

This module provides the REST API over MessagingService:

- Send endpoints (raw or templated, single or bulk) and the retry sweep
- Admin endpoints for stats, message logs, settings and templates
- User notification preferences and one-click unsubscribe
- Provider webhooks (Twilio form callback, Resend JSON events)
- Health checks and Prometheus metrics exposure

Authentication uses the ``X-API-Token`` header when a token is configured.
Health and provider webhooks are not protected by the token.

Example:
    Creating and running the API application::

        from message_dispatch.service import MessagingService
        from message_dispatch.api import create_app

        svc = MessagingService(load_config())
        app = create_app(svc, api_token="secret-token")

        uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, AsyncContextManager, Literal

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import TWILIO_WEBHOOK_PATH
from .errors import (
    DuplicateSlugError,
    PreferenceNotFound,
    SystemTemplateError,
    TemplateNotFound,
)
from .models import (
    Channel,
    EmailTemplateCreate,
    EmailTemplateUpdate,
    MessageCategory,
    PreferenceUpdate,
    SendEmailOptions,
    SendSmsOptions,
    SendTemplatedEmailOptions,
    SendTemplatedSmsOptions,
    SettingsUpdate,
    SmsTemplateCreate,
    SmsTemplateUpdate,
    UnsubscribeKind,
)
from .service import MessagingService

logger = logging.getLogger(__name__)

service: MessagingService | None = None
API_TOKEN_HEADER_NAME = "X-API-Token"
api_key_scheme = APIKeyHeader(name=API_TOKEN_HEADER_NAME, auto_error=False)


async def require_token(request: Request, api_token: str | None = Depends(api_key_scheme)) -> None:
    """Validate the API token carried in the ``X-API-Token`` header.

    When no token is configured the dependency is effectively bypassed.
    """
    expected = getattr(request.app.state, "api_token", None)
    if expected is None:
        return
    if not api_token or api_token != expected:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid or missing API token")


auth_dependency = Depends(require_token)


class CommandStatus(BaseModel):
    """Base schema shared by most responses produced by the service."""
    ok: bool
    error: str | None = None


class EmailSendPayload(BaseModel):
    """Raw send when ``subject``/``html`` are given, templated when ``template_slug`` is."""
    model_config = ConfigDict(extra="forbid")
    to: str
    to_name: str | None = None
    subject: str | None = None
    html: str | None = None
    text: str | None = None
    template_slug: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)
    category: MessageCategory = MessageCategory.TRANSACTIONAL
    user_id: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None


class SmsSendPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")
    to: str
    body: str | None = None
    template_slug: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)
    category: MessageCategory = MessageCategory.TRANSACTIONAL
    user_id: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None


class EmailBulkPayload(BaseModel):
    messages: list[EmailSendPayload]
    delay_ms: int = Field(default=100, ge=0)


class SmsBulkPayload(BaseModel):
    messages: list[SmsSendPayload]
    delay_ms: int = Field(default=200, ge=0)


class RetryPayload(BaseModel):
    channel: Literal["email", "sms", "all"] = "all"
    max_retries: int = Field(default=3, ge=1)


class UnsubscribePayload(BaseModel):
    """Unsubscribe request. Without ``type`` only email is switched off."""
    model_config = ConfigDict(populate_by_name=True)
    token: str = Field(min_length=1)
    kind: UnsubscribeKind = Field(default=UnsubscribeKind.EMAIL, alias="type")


class EmailSendResponse(CommandStatus):
    message_id: str | None = None


class SmsSendResponse(CommandStatus):
    message_sid: str | None = None


class BulkResponse(CommandStatus):
    total: int
    sent: int
    failed: int
    results: list[dict[str, Any]]


class RetryResponse(CommandStatus):
    email: int | None = None
    sms: int | None = None


def _email_options(payload: EmailSendPayload) -> SendEmailOptions | SendTemplatedEmailOptions:
    common = {
        "to": payload.to,
        "to_name": payload.to_name,
        "user_id": payload.user_id,
        "reference_type": payload.reference_type,
        "reference_id": payload.reference_id,
    }
    if payload.template_slug:
        return SendTemplatedEmailOptions(
            template_slug=payload.template_slug, variables=payload.variables, **common
        )
    return SendEmailOptions(
        subject=payload.subject,
        html=payload.html,
        text=payload.text,
        category=payload.category,
        **common,
    )


def _sms_options(payload: SmsSendPayload) -> SendSmsOptions | SendTemplatedSmsOptions:
    common = {
        "to": payload.to,
        "user_id": payload.user_id,
        "reference_type": payload.reference_type,
        "reference_id": payload.reference_id,
    }
    if payload.template_slug:
        return SendTemplatedSmsOptions(
            template_slug=payload.template_slug, variables=payload.variables, **common
        )
    return SendSmsOptions(body=payload.body, category=payload.category, **common)


def _build(factory: Callable[[Any], Any], payload: Any) -> Any:
    try:
        return factory(payload)
    except ValidationError as exc:
        raise HTTPException(422, exc.errors(include_url=False, include_context=False)) from None


def create_app(
    svc: MessagingService,
    api_token: str | None = None,
    lifespan: Callable[[FastAPI], AsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        svc: MessagingService implementing every operation.
        api_token: Optional secret required in ``X-API-Token``.
        lifespan: Optional lifespan context manager for startup/shutdown.

    Returns:
        A configured application ready to be served by Uvicorn.
    """
    global service
    service = svc

    api = FastAPI(title="Message Dispatch", lifespan=lifespan)
    api.state.api_token = api_token
    messaging = APIRouter(prefix="/messaging", tags=["messaging"], dependencies=[auth_dependency])
    admin = APIRouter(prefix="/admin/messaging", tags=["admin"], dependencies=[auth_dependency])
    users = APIRouter(prefix="/users", tags=["preferences"], dependencies=[auth_dependency])
    public = APIRouter(prefix="/messaging", tags=["public"])

    def get_service() -> MessagingService:
        if not service:
            raise HTTPException(500, "Service not initialized")
        return service

    @api.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Log validation errors with full details."""
        logger.error("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @api.exception_handler(TemplateNotFound)
    async def template_not_found_handler(request: Request, exc: TemplateNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @api.exception_handler(PreferenceNotFound)
    async def preference_not_found_handler(request: Request, exc: PreferenceNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @api.exception_handler(SystemTemplateError)
    async def system_template_handler(request: Request, exc: SystemTemplateError):
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @api.exception_handler(DuplicateSlugError)
    async def duplicate_slug_handler(request: Request, exc: DuplicateSlugError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @api.get("/health")
    async def health():
        """Health check endpoint for container monitoring (no authentication required)."""
        return {"status": "ok"}

    @api.get("/metrics", dependencies=[auth_dependency])
    async def metrics():
        """Expose Prometheus metrics collected by the dispatcher."""
        svc = get_service()
        return Response(content=svc.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    @messaging.post("/email/send", response_model=EmailSendResponse, response_model_exclude_none=True)
    async def send_email(payload: EmailSendPayload):
        svc = get_service()
        options = _build(_email_options, payload)
        if isinstance(options, SendTemplatedEmailOptions):
            result = await svc.send_templated_email(options)
        else:
            result = await svc.send_email(options)
        if not result.success:
            raise HTTPException(400, result.error)
        return EmailSendResponse(ok=True, message_id=result.message_id)

    @messaging.post("/sms/send", response_model=SmsSendResponse, response_model_exclude_none=True)
    async def send_sms(payload: SmsSendPayload):
        svc = get_service()
        options = _build(_sms_options, payload)
        if isinstance(options, SendTemplatedSmsOptions):
            result = await svc.send_templated_sms(options)
        else:
            result = await svc.send_sms(options)
        if not result.success:
            raise HTTPException(400, result.error)
        return SmsSendResponse(ok=True, message_sid=result.message_sid)

    @messaging.post("/email/bulk", response_model=BulkResponse)
    async def send_bulk_emails(payload: EmailBulkPayload):
        svc = get_service()
        requests = [_build(_email_options, item) for item in payload.messages]
        result = await svc.send_bulk_emails(requests, payload.delay_ms)
        return BulkResponse(ok=True, **result.model_dump())

    @messaging.post("/sms/bulk", response_model=BulkResponse)
    async def send_bulk_sms(payload: SmsBulkPayload):
        svc = get_service()
        requests = [_build(_sms_options, item) for item in payload.messages]
        result = await svc.send_bulk_sms(requests, payload.delay_ms)
        return BulkResponse(ok=True, **result.model_dump())

    @messaging.post("/retry", response_model=RetryResponse, response_model_exclude_none=True)
    async def retry_failed(payload: RetryPayload):
        """Run one retry sweep over FAILED records."""
        svc = get_service()
        response = RetryResponse(ok=True)
        if payload.channel in ("email", "all"):
            response.email = await svc.retry_failed_emails(payload.max_retries)
        if payload.channel in ("sms", "all"):
            response.sms = await svc.retry_failed_sms(payload.max_retries)
        return response

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    @admin.get("/stats")
    async def stats(days: int = Query(30, ge=1, le=365)):
        return await get_service().get_messaging_stats(days)

    @admin.get("/logs")
    async def logs(
        channel: Channel = Channel.EMAIL,
        status_filter: str | None = Query(None, alias="status"),
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
    ):
        messages = await get_service().list_messages(channel, status_filter, limit, offset)
        return {"channel": channel.value, "messages": messages, "limit": limit, "offset": offset}

    @admin.get("/logs/{channel}/{message_id}")
    async def log_detail(channel: Channel, message_id: str):
        record = await get_service().get_message(channel, message_id)
        if record is None:
            raise HTTPException(404, f"Message '{message_id}' not found")
        return record

    @admin.get("/settings")
    async def get_settings():
        return await get_service().get_settings()

    @admin.put("/settings")
    async def update_settings(payload: SettingsUpdate):
        return await get_service().update_settings(payload.model_dump(exclude_none=True))

    def register_template_routes(channel: Channel, create_model: type[BaseModel], update_model: type[BaseModel]) -> None:
        base = f"/{channel.value}-templates"

        async def list_templates(active_only: bool = False):
            return await get_service().templates(channel).list(active_only)

        async def create_template(payload):
            template = await get_service().templates(channel).create(payload.model_dump(mode="json"))
            return JSONResponse(status_code=201, content=template)

        async def get_template(template_id: str):
            return await get_service().templates(channel).get(template_id)

        async def update_template(template_id: str, payload):
            return await get_service().templates(channel).update(
                template_id, payload.model_dump(mode="json", exclude_none=True)
            )

        # Payload schemas differ per channel; bind them as real types for FastAPI.
        create_template.__annotations__["payload"] = create_model
        update_template.__annotations__["payload"] = update_model

        async def delete_template(template_id: str):
            await get_service().templates(channel).delete(template_id)
            return CommandStatus(ok=True)

        admin.add_api_route(base, list_templates, methods=["GET"])
        admin.add_api_route(base, create_template, methods=["POST"])
        admin.add_api_route(base + "/{template_id}", get_template, methods=["GET"])
        admin.add_api_route(base + "/{template_id}", update_template, methods=["PUT"])
        admin.add_api_route(
            base + "/{template_id}", delete_template, methods=["DELETE"],
            response_model=CommandStatus, response_model_exclude_none=True,
        )

    register_template_routes(Channel.EMAIL, EmailTemplateCreate, EmailTemplateUpdate)
    register_template_routes(Channel.SMS, SmsTemplateCreate, SmsTemplateUpdate)

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    @users.get("/{user_id}/notification-preferences")
    async def get_preferences(user_id: str):
        return await get_service().get_preferences(user_id)

    @users.put("/{user_id}/notification-preferences")
    async def update_preferences(user_id: str, payload: PreferenceUpdate):
        return await get_service().update_preferences(user_id, payload.model_dump(exclude_none=True))

    async def _unsubscribe(payload: UnsubscribePayload) -> dict[str, Any]:
        await get_service().unsubscribe(payload.token, payload.kind)
        return {"success": True, "type": payload.kind.value}

    @public.get("/unsubscribe")
    async def unsubscribe_link(
        token: str = Query(..., min_length=1),
        kind: UnsubscribeKind = Query(UnsubscribeKind.EMAIL, alias="type"),
    ):
        """One-click unsubscribe link target (token authenticates the user)."""
        return await _unsubscribe(UnsubscribePayload(token=token, kind=kind))

    @public.post("/unsubscribe")
    async def unsubscribe(request: Request):
        """Unsubscribe with ``token``/``type`` from a JSON body or the query string."""
        data: dict[str, Any] = dict(request.query_params)
        if await request.body():
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
            if not isinstance(body, dict):
                return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
            data.update(body)
        return await _unsubscribe(_build(UnsubscribePayload.model_validate, data))

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    @api.post(TWILIO_WEBHOOK_PATH, tags=["public"])
    async def twilio_webhook(request: Request):
        """Twilio status callback. Always 200 once the payload is valid."""
        form = await request.form()
        sid = form.get("MessageSid")
        message_status = form.get("MessageStatus")
        if not sid or not message_status:
            return JSONResponse(status_code=400, content={"error": "Missing required fields"})
        try:
            await get_service().update_sms_status(
                str(sid),
                str(message_status),
                form.get("ErrorCode") or None,
                form.get("ErrorMessage") or None,
                form.get("Price") or None,
            )
        except Exception:
            logger.exception("Error processing Twilio webhook for %s", sid)
        return Response(status_code=200)

    @public.post("/webhooks/resend")
    async def resend_webhook(request: Request):
        try:
            event = await request.json()
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
        data = event.get("data") if isinstance(event, dict) else None
        if not isinstance(data, dict) or not data.get("email_id"):
            return JSONResponse(status_code=400, content={"error": "Missing email_id"})
        try:
            return await get_service().handle_email_event(event)
        except Exception:
            logger.exception("Error processing Resend webhook")
            return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    api.include_router(messaging)
    api.include_router(admin)
    api.include_router(users)
    api.include_router(public)
    return api


__all__ = ["API_TOKEN_HEADER_NAME", "create_app"]
