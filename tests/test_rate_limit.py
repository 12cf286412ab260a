import pytest

from message_dispatch.models import Channel
from message_dispatch.rate_limit import RateLimiter


@pytest.mark.asyncio
async def test_rate_limiter_hourly_window(db, monkeypatch):
    limiter = RateLimiter(db.send_log)
    current_time = 3600 * 10 + 30
    monkeypatch.setattr("message_dispatch.rate_limit.time.time", lambda: current_time)

    await limiter.log_send(Channel.EMAIL)
    await db.send_log.log("email", current_time - 10)
    await db.send_log.log("email", current_time - 3700)
    await db.send_log.log("sms", current_time - 5)

    assert await limiter.sends_in_window(Channel.EMAIL) == 2
    assert await limiter.sends_in_window(Channel.SMS) == 1
    assert await limiter.is_exceeded(Channel.EMAIL, 2) is True
    assert await limiter.is_exceeded(Channel.EMAIL, 3) is False


@pytest.mark.asyncio
async def test_rate_limiter_ignores_zero_limits(db):
    limiter = RateLimiter(db.send_log)
    await limiter.log_send(Channel.SMS)

    assert await limiter.is_exceeded(Channel.SMS, 0) is False
    assert await limiter.is_exceeded(Channel.SMS, None) is False
    assert await limiter.is_exceeded(Channel.SMS, 1) is True
