"""Sliding-window request throttling (in-memory and Redis backends)."""

from __future__ import annotations

import asyncio
import math
import time
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NamedTuple, Protocol
from uuid import uuid4

from app.core.config import Settings, get_settings


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    """Named request budget per window."""

    name: str
    max_requests: int
    window_seconds: int


class RateLimitDecision(NamedTuple):
    allowed: bool
    retry_after: int


class RateLimiter(Protocol):
    """Common contract for limiter backends."""

    async def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        """Record one request for ``key`` unless the rule budget is spent."""

    async def clear(self) -> None:
        """Drop tracked counters (used in tests)."""


def _retry_after(oldest: float, window_seconds: int, now: float) -> int:
    return max(1, math.ceil(oldest + window_seconds - now))


# KEYS[1] = bucket, ARGV = now, window, limit, member
_REDIS_HIT_SCRIPT = """
redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', tonumber(ARGV[1]) - tonumber(ARGV[2]))
if redis.call('ZCARD', KEYS[1]) >= tonumber(ARGV[3]) then
  local oldest = redis.call('ZRANGE', KEYS[1], 0, 0, 'WITHSCORES')
  return {0, oldest[2] or ARGV[1]}
end
redis.call('ZADD', KEYS[1], ARGV[1], ARGV[4])
redis.call('EXPIRE', KEYS[1], math.ceil(tonumber(ARGV[2])))
return {1, 0}
"""


class InMemorySlidingWindowRateLimiter:
    """Per-process limiter keeping request timestamps per bucket."""

    def __init__(self, now_provider: Callable[[], float] | None = None) -> None:
        self._buckets: dict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._now = now_provider or time.monotonic

    async def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        now = self._now()
        bucket_key = f"{rule.name}:{key}"

        async with self._lock:
            bucket = self._buckets[bucket_key]
            while bucket and bucket[0] <= now - rule.window_seconds:
                bucket.popleft()

            if len(bucket) >= rule.max_requests:
                return RateLimitDecision(False, _retry_after(bucket[0], rule.window_seconds, now))

            bucket.append(now)
            return RateLimitDecision(True, 0)

    async def clear(self) -> None:
        async with self._lock:
            self._buckets.clear()


class RedisSlidingWindowRateLimiter:
    """Redis-backed limiter shared by all app instances."""

    def __init__(
        self,
        *,
        redis_url: str,
        namespace: str,
        now_provider: Callable[[], float] | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._namespace = namespace
        self._now = now_provider or time.time
        self._init_lock = asyncio.Lock()
        self._client: Any | None = None
        self._hit_script: Any | None = None

    async def _client_and_script(self) -> tuple[Any, Any]:
        async with self._init_lock:
            if self._client is None:
                from redis.asyncio import from_url

                self._client = from_url(self._redis_url, encoding="utf-8", decode_responses=True)
                self._hit_script = self._client.register_script(_REDIS_HIT_SCRIPT)
        return self._client, self._hit_script

    async def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        _, script = await self._client_and_script()
        now = self._now()
        allowed, oldest = await script(
            keys=[f"{self._namespace}:{rule.name}:{key}"],
            args=[now, rule.window_seconds, rule.max_requests, f"{now}:{uuid4().hex}"],
        )
        if int(allowed):
            return RateLimitDecision(True, 0)
        return RateLimitDecision(False, _retry_after(float(oldest), rule.window_seconds, now))

    async def clear(self) -> None:
        client, _ = await self._client_and_script()
        async for bucket_key in client.scan_iter(match=f"{self._namespace}:*", count=100):
            await client.delete(bucket_key)


_rate_limiter: RateLimiter | None = None
_rate_limiter_signature: tuple[str, str | None, str] | None = None


def _build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.auth_rate_limit_backend == "redis":
        return RedisSlidingWindowRateLimiter(
            redis_url=settings.redis_url or "",
            namespace=settings.auth_rate_limit_redis_namespace,
        )
    return InMemorySlidingWindowRateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Return shared limiter, rebuilt when backend settings change."""
    global _rate_limiter, _rate_limiter_signature
    settings = get_settings()
    signature = (
        settings.auth_rate_limit_backend,
        settings.redis_url,
        settings.auth_rate_limit_redis_namespace,
    )
    if _rate_limiter is None or _rate_limiter_signature != signature:
        _rate_limiter = _build_rate_limiter(settings)
        _rate_limiter_signature = signature
    return _rate_limiter
