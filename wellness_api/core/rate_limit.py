"""
Rate Limiting
=============

Fixed-window rate limiting for the webhook endpoint, keyed by the
originating address.

Two backends share the same ``hit()`` contract:

- ``InMemoryRateLimiter`` (default): a mapping held by the serving process.
  Each worker process counts on its own, so the effective limit across a
  multi-worker deployment is ``workers * max_requests``. This is a
  best-effort brake on retry storms, not a quota guarantee.
- ``RedisRateLimiter``: the same window stored in Redis, shared by every
  process pointed at the same Redis.

The limiter instance lives on ``app.state.rate_limiter`` and is read by
the ``enforce_webhook_rate_limit`` dependency.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from fastapi import Request
from redis.exceptions import RedisError

from wellness_api.config import Settings
from wellness_api.core.errors import RateLimitError
from wellness_api.services.cache import get_redis

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of counting one request against a window."""

    allowed: bool
    remaining: int
    reset_in: int


class RateLimiter(Protocol):
    max_requests: int
    window_seconds: int

    async def hit(self, identifier: str) -> RateLimitResult:
        ...


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    """
    Per-process fixed-window counter.

    ``clock`` must be monotonic; tests pass a fake one.
    """

    # Expired windows are swept once the map grows past this many keys.
    SWEEP_THRESHOLD = 10_000

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        expired = [key for key, w in self._windows.items() if now > w.reset_at]
        for key in expired:
            del self._windows[key]

    async def hit(self, identifier: str) -> RateLimitResult:
        now = self._clock()
        window = self._windows.get(identifier)

        if window is None or now > window.reset_at:
            if len(self._windows) >= self.SWEEP_THRESHOLD:
                self._sweep(now)
            window = _Window(count=1, reset_at=now + self.window_seconds)
            self._windows[identifier] = window
        else:
            window.count += 1

        reset_in = max(1, math.ceil(window.reset_at - now))
        return RateLimitResult(
            allowed=window.count <= self.max_requests,
            remaining=max(0, self.max_requests - window.count),
            reset_in=reset_in,
        )


class RedisRateLimiter:
    """
    Fixed-window counter stored in Redis.

    Fails open: if Redis is unreachable the request is allowed and a
    warning is logged.

    A key without a TTL (``ttl == -1``) gets one on the next hit, so a
    failed ``EXPIRE`` cannot pin a window open forever.
    """

    KEY_PREFIX = "ratelimit:webhook:"

    def __init__(self, max_requests: int = 30, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def hit(self, identifier: str) -> RateLimitResult:
        key = f"{self.KEY_PREFIX}{identifier}"
        try:
            client = await get_redis()
            count = await client.incr(key)
            ttl = await client.ttl(key)
            if ttl == -1:
                await client.expire(key, self.window_seconds)
                ttl = self.window_seconds
        except RedisError as exc:
            logger.warning("Rate limit check failed, allowing request: %s", exc)
            return RateLimitResult(
                allowed=True,
                remaining=self.max_requests,
                reset_in=self.window_seconds,
            )

        return RateLimitResult(
            allowed=count <= self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_in=ttl if ttl > 0 else self.window_seconds,
        )


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Create the limiter selected by ``RATE_LIMIT_BACKEND``."""
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RedisRateLimiter(
            max_requests=settings.WEBHOOK_RATE_LIMIT_MAX,
            window_seconds=settings.WEBHOOK_RATE_LIMIT_WINDOW_SECONDS,
        )
    return InMemoryRateLimiter(
        max_requests=settings.WEBHOOK_RATE_LIMIT_MAX,
        window_seconds=settings.WEBHOOK_RATE_LIMIT_WINDOW_SECONDS,
    )


def client_address(request: Request) -> str:
    """
    Originating address from the first ``X-Forwarded-For`` entry.

    Callers without the header share the ``"unknown"`` bucket.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    return first or UNKNOWN_CLIENT


async def enforce_webhook_rate_limit(request: Request) -> None:
    """
    FastAPI dependency that rejects the request with 429 once the
    caller's window is exhausted.

    Usage:
        @router.post("/hotmart", dependencies=[Depends(enforce_webhook_rate_limit)])
    """
    limiter: RateLimiter = request.app.state.rate_limiter
    identifier = client_address(request)
    result = await limiter.hit(identifier)

    if not result.allowed:
        logger.warning("Webhook rate limit exceeded for client=%s", identifier)
        raise RateLimitError(retry_after=result.reset_in)
