from __future__ import annotations

from types import SimpleNamespace

import pytest
from starlette.requests import Request

from app.core.rate_limit import InMemorySlidingWindowRateLimiter, RateLimitDecision, RateLimitRule
from app.modules.identity import rate_limit as identity_rate_limit
from app.shared.exceptions import RateLimitException


def _make_request(
    *,
    client_ip: str = "10.0.0.1",
    x_forwarded_for: str | None = None,
) -> Request:
    headers: list[tuple[bytes, bytes]] = []
    if x_forwarded_for is not None:
        headers.append((b"x-forwarded-for", x_forwarded_for.encode()))

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/v1/auth/login",
        "headers": headers,
        "client": (client_ip, 12345),
    }
    return Request(scope)


def _settings(**overrides) -> SimpleNamespace:
    values = {
        "auth_rate_limit_window_seconds": 60,
        "auth_rate_limit_login_requests": 10,
        "booking_rate_limit_requests": 30,
        "auth_rate_limit_trusted_proxy_ips": ("127.0.0.1",),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class CapturingLimiter:
    def __init__(self) -> None:
        self.calls: list[tuple[str, RateLimitRule]] = []

    async def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        self.calls.append((key, rule))
        return RateLimitDecision(True, 0)


@pytest.mark.asyncio
async def test_login_rate_limit_blocks_after_threshold(monkeypatch: pytest.MonkeyPatch) -> None:
    limiter = InMemorySlidingWindowRateLimiter(now_provider=lambda: 1000.0)
    monkeypatch.setattr(identity_rate_limit, "get_rate_limiter", lambda: limiter)
    monkeypatch.setattr(
        identity_rate_limit,
        "get_settings",
        lambda: _settings(auth_rate_limit_login_requests=2),
    )

    request = _make_request(client_ip="10.1.1.1")
    await identity_rate_limit.enforce_login_rate_limit(request)
    await identity_rate_limit.enforce_login_rate_limit(request)
    with pytest.raises(RateLimitException) as exc:
        await identity_rate_limit.enforce_login_rate_limit(request)

    assert exc.value.status_code == 429
    assert "60 second" in exc.value.message


@pytest.mark.asyncio
async def test_login_rate_limit_uses_forwarded_ip_from_trusted_proxy(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    limiter = CapturingLimiter()
    monkeypatch.setattr(identity_rate_limit, "get_rate_limiter", lambda: limiter)
    monkeypatch.setattr(
        identity_rate_limit,
        "get_settings",
        lambda: _settings(auth_rate_limit_window_seconds=120, auth_rate_limit_login_requests=7),
    )

    request = _make_request(client_ip="127.0.0.1", x_forwarded_for="2.2.2.2, 3.3.3.3")
    await identity_rate_limit.enforce_login_rate_limit(request)

    key, rule = limiter.calls[0]
    assert key == "2.2.2.2"
    assert rule == RateLimitRule(name="login", max_requests=7, window_seconds=120)


@pytest.mark.asyncio
async def test_forwarded_ip_ignored_from_untrusted_client(monkeypatch: pytest.MonkeyPatch) -> None:
    limiter = CapturingLimiter()
    monkeypatch.setattr(identity_rate_limit, "get_rate_limiter", lambda: limiter)
    monkeypatch.setattr(identity_rate_limit, "get_settings", lambda: _settings())

    request = _make_request(client_ip="8.8.8.8", x_forwarded_for="2.2.2.2")
    await identity_rate_limit.enforce_login_rate_limit(request)

    assert limiter.calls[0][0] == "8.8.8.8"


@pytest.mark.asyncio
async def test_booking_rate_limit_is_per_student(monkeypatch: pytest.MonkeyPatch) -> None:
    limiter = InMemorySlidingWindowRateLimiter(now_provider=lambda: 3000.0)
    monkeypatch.setattr(identity_rate_limit, "get_rate_limiter", lambda: limiter)
    monkeypatch.setattr(
        identity_rate_limit,
        "get_settings",
        lambda: _settings(booking_rate_limit_requests=1),
    )

    first_student = SimpleNamespace(id="DR-0001-25")
    second_student = SimpleNamespace(id="DR-0002-25")

    assert await identity_rate_limit.enforce_booking_rate_limit(first_student) is first_student
    with pytest.raises(RateLimitException):
        await identity_rate_limit.enforce_booking_rate_limit(first_student)

    # Another student has an independent budget.
    assert await identity_rate_limit.enforce_booking_rate_limit(second_student) is second_student
