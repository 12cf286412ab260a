"""Shared fixtures: temporary database, fake provider transports, service."""

from __future__ import annotations

import pytest
import pytest_asyncio

from message_dispatch.config import DispatchConfig
from message_dispatch.dispatch_db import DispatchDb
from message_dispatch.service import MessagingService
from message_dispatch.transports import Transport, TransportProvider, TransportReply


class DummyTransport(Transport):
    """Records payloads; replies come from the owning recorder."""

    def __init__(self, recorder: TransportRecorder, credentials: dict[str, str]):
        self.recorder = recorder
        self.credentials = credentials
        self.sent: list[dict] = []
        self.closed = False

    async def send(self, payload):
        self.sent.append(payload)
        if self.recorder.on_send is not None:
            await self.recorder.on_send(payload)
        if self.recorder.error is not None:
            raise self.recorder.error
        if self.recorder.replies:
            return self.recorder.replies.pop(0)
        self.recorder.counter += 1
        return TransportReply(message_id=f"{self.recorder.prefix}-{self.recorder.counter}")

    async def close(self):
        self.closed = True


class TransportRecorder:
    """Transport factory collecting every created DummyTransport."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        self.created: list[DummyTransport] = []
        self.replies: list[TransportReply] = []
        self.error: BaseException | None = None
        self.on_send = None
        self.counter = 0

    def factory(self, credentials):
        transport = DummyTransport(self, credentials)
        self.created.append(transport)
        return transport

    @property
    def sent(self) -> list[dict]:
        return [payload for t in self.created for payload in t.sent]


EMAIL_SETTINGS = {
    "email_enabled": True,
    "resend_api_key": "re_test_key_1234",
    "from_email": "noreply@academy.example",
    "from_name": "Academy",
}

SMS_SETTINGS = {
    "sms_enabled": True,
    "twilio_account_sid": "AC00000000000000000000000000000000",
    "twilio_auth_token": "auth-token",
    "twilio_phone_number": "+15550001111",
}


@pytest.fixture
def config(tmp_path):
    return DispatchConfig(db_path=str(tmp_path / "dispatch.db"), app_url="https://lms.example.com")


@pytest_asyncio.fixture
async def db(tmp_path):
    database = DispatchDb(str(tmp_path / "tables.db"))
    await database.init_db()
    yield database
    await database.close()


@pytest.fixture
def email_transport():
    return TransportRecorder("re")


@pytest.fixture
def sms_transport():
    return TransportRecorder("SM")


@pytest_asyncio.fixture
async def service(config, email_transport, sms_transport):
    svc = MessagingService(
        config,
        transports=TransportProvider(email_transport.factory, sms_transport.factory),
    )
    await svc.start()
    yield svc
    await svc.close()


@pytest_asyncio.fixture
async def configured(service):
    """Service with both channels enabled through the settings record."""
    await service.update_settings({**EMAIL_SETTINGS, **SMS_SETTINGS})
    return service
