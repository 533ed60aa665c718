"""Rate-limit dependencies for login and booking endpoints."""

from __future__ import annotations

from collections.abc import Iterable

from fastapi import Depends, Request

from app.core.config import get_settings
from app.core.rate_limit import RateLimitRule, get_rate_limiter
from app.modules.identity.models import Student
from app.modules.identity.service import get_current_student
from app.shared.exceptions import RateLimitException


def _trusted_proxy_ips(raw_value: object) -> set[str]:
    if raw_value is None:
        return set()
    if isinstance(raw_value, str):
        values: Iterable[object] = raw_value.split(",")
    elif isinstance(raw_value, tuple | list | set | frozenset):
        values = raw_value
    else:
        return set()
    return {str(value).strip() for value in values if str(value).strip()}


def resolve_client_ip(request: Request, *, trusted_proxy_ips: set[str]) -> str:
    """Client address, honouring X-Forwarded-For only from trusted proxies."""
    client_ip = request.client.host if request.client and request.client.host else "unknown"

    forwarded_for = request.headers.get("x-forwarded-for")
    if not forwarded_for or client_ip not in trusted_proxy_ips:
        return client_ip
    return forwarded_for.split(",")[0].strip() or client_ip


async def _enforce(rule: RateLimitRule, key: str, action: str) -> None:
    decision = await get_rate_limiter().hit(key, rule)
    if not decision.allowed:
        raise RateLimitException(
            f"Too many {action} requests. Try again in {decision.retry_after} second(s).",
        )


async def enforce_login_rate_limit(request: Request) -> None:
    """Throttle login attempts per client IP."""
    settings = get_settings()
    rule = RateLimitRule(
        name="login",
        max_requests=settings.auth_rate_limit_login_requests,
        window_seconds=settings.auth_rate_limit_window_seconds,
    )
    client_ip = resolve_client_ip(
        request,
        trusted_proxy_ips=_trusted_proxy_ips(settings.auth_rate_limit_trusted_proxy_ips),
    )
    await _enforce(rule, client_ip, "login")


async def enforce_booking_rate_limit(student: Student = Depends(get_current_student)) -> Student:
    """Throttle booking mutations per student and pass the student through."""
    settings = get_settings()
    rule = RateLimitRule(
        name="booking",
        max_requests=settings.booking_rate_limit_requests,
        window_seconds=settings.auth_rate_limit_window_seconds,
    )
    await _enforce(rule, student.id, "booking")
    return student
