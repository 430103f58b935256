"""
Rate Limiter Tests
==================

Tests for the fixed-window limiters and client address extraction.
"""

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.requests import Request

from conftest import FakeClock
from wellness_api.config import Settings
from wellness_api.core.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
    client_address,
)


def _request(headers: list[tuple[bytes, bytes]]) -> Request:
    return Request({"type": "http", "method": "POST", "path": "/", "headers": headers})


class TestInMemoryRateLimiter:

    @pytest.mark.asyncio
    async def test_allows_up_to_limit_then_rejects(self):
        limiter = InMemoryRateLimiter(max_requests=30, window_seconds=60, clock=FakeClock())

        results = [await limiter.hit("10.0.0.1") for _ in range(31)]

        assert all(r.allowed for r in results[:30])
        assert not results[30].allowed
        assert results[30].remaining == 0

    @pytest.mark.asyncio
    async def test_other_addresses_unaffected(self):
        limiter = InMemoryRateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())

        for _ in range(3):
            await limiter.hit("10.0.0.1")
        result = await limiter.hit("10.0.0.2")

        assert result.allowed
        assert result.remaining == 1

    @pytest.mark.asyncio
    async def test_new_window_after_expiry(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)

        assert (await limiter.hit("a")).allowed
        assert not (await limiter.hit("a")).allowed

        clock.advance(61)
        result = await limiter.hit("a")

        assert result.allowed
        assert result.reset_in == 60

    @pytest.mark.asyncio
    async def test_window_boundary_is_inclusive(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)

        await limiter.hit("a")
        clock.advance(60)

        assert not (await limiter.hit("a")).allowed

    @pytest.mark.asyncio
    async def test_reset_in_counts_down(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)

        await limiter.hit("a")
        clock.advance(45.5)
        result = await limiter.hit("a")

        assert result.reset_in == 15

    @pytest.mark.asyncio
    async def test_sweeps_expired_windows(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)
        limiter.SWEEP_THRESHOLD = 3

        for ip in ("a", "b", "c"):
            await limiter.hit(ip)
        clock.advance(120)
        await limiter.hit("d")

        assert len(limiter) == 1


class _FlakyExpireRedis:
    """Counts like Redis; the first ``expire`` call raises."""

    def __init__(self):
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.expire_failures = 1

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def ttl(self, key):
        if key not in self.counts:
            return -2
        return self.ttls.get(key, -1)

    async def expire(self, key, seconds):
        if self.expire_failures:
            self.expire_failures -= 1
            raise RedisConnectionError("Connection reset")
        self.ttls[key] = seconds
        return True


class TestRedisRateLimiter:

    @pytest.mark.asyncio
    async def test_first_hit_sets_expiry(self):
        mock_client = AsyncMock()
        mock_client.incr.return_value = 1
        mock_client.ttl.return_value = -1

        with patch("wellness_api.core.rate_limit.get_redis", return_value=mock_client):
            result = await RedisRateLimiter(max_requests=30, window_seconds=60).hit("10.0.0.1")

        mock_client.incr.assert_awaited_once_with("ratelimit:webhook:10.0.0.1")
        mock_client.expire.assert_awaited_once_with("ratelimit:webhook:10.0.0.1", 60)
        assert result.allowed
        assert result.remaining == 29
        assert result.reset_in == 60

    @pytest.mark.asyncio
    async def test_failed_expire_is_repaired_on_next_hit(self):
        fake = _FlakyExpireRedis()
        limiter = RedisRateLimiter(max_requests=3, window_seconds=60)

        with patch("wellness_api.core.rate_limit.get_redis", return_value=fake):
            first = await limiter.hit("1.2.3.4")
            second = await limiter.hit("1.2.3.4")

        assert first.allowed
        assert second.allowed
        assert fake.ttls == {"ratelimit:webhook:1.2.3.4": 60}
        assert second.reset_in == 60

    @pytest.mark.asyncio
    async def test_rejects_over_limit(self):
        mock_client = AsyncMock()
        mock_client.incr.return_value = 31
        mock_client.ttl.return_value = 12

        with patch("wellness_api.core.rate_limit.get_redis", return_value=mock_client):
            result = await RedisRateLimiter(max_requests=30, window_seconds=60).hit("10.0.0.1")

        mock_client.expire.assert_not_awaited()
        assert not result.allowed
        assert result.reset_in == 12

    @pytest.mark.asyncio
    async def test_fails_open_on_redis_error(self):
        mock_client = AsyncMock()
        mock_client.incr.side_effect = RedisConnectionError("Redis down")

        with patch("wellness_api.core.rate_limit.get_redis", return_value=mock_client):
            result = await RedisRateLimiter(max_requests=30, window_seconds=60).hit("10.0.0.1")

        assert result.allowed


class TestClientAddress:

    def test_first_forwarded_entry(self):
        request = _request([(b"x-forwarded-for", b" 203.0.113.7 , 10.0.0.1")])

        assert client_address(request) == "203.0.113.7"

    def test_missing_header_is_unknown(self):
        assert client_address(_request([])) == "unknown"

    def test_empty_first_entry_is_unknown(self):
        request = _request([(b"x-forwarded-for", b" , 10.0.0.1")])

        assert client_address(request) == "unknown"


class TestBuildRateLimiter:

    def test_memory_backend_by_default(self):
        limiter = build_rate_limiter(Settings(_env_file=None))

        assert isinstance(limiter, InMemoryRateLimiter)
        assert limiter.max_requests == 30
        assert limiter.window_seconds == 60

    def test_redis_backend(self):
        settings = Settings(
            _env_file=None,
            RATE_LIMIT_BACKEND="redis",
            WEBHOOK_RATE_LIMIT_MAX=5,
        )

        limiter = build_rate_limiter(settings)

        assert isinstance(limiter, RedisRateLimiter)
        assert limiter.max_requests == 5
