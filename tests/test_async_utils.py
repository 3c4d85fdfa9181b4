"""Tests for async_utils.py — SlidingWindowRateLimiter, CircuitBreaker, gather."""

import asyncio

import pytest

from scholar_search.shared.async_utils import (
    CircuitBreaker,
    SlidingWindowRateLimiter,
    gather_with_errors,
)
from scholar_search.shared.exceptions import RateLimitError
from scholar_search.shared.metrics import StageMetrics

# ============================================================
# SlidingWindowRateLimiter
# ============================================================


class TestSlidingWindowRateLimiter:
    def test_acquire_within_quota(self, clock):
        limiter = SlidingWindowRateLimiter(per_minute=3, per_hour=10, clock=clock)
        for _ in range(3):
            limiter.acquire()
        assert limiter.status().requests_in_last_minute == 3

    def test_minute_window_fails_fast(self, clock):
        limiter = SlidingWindowRateLimiter(per_minute=2, per_hour=10, clock=clock)
        limiter.acquire()
        clock.advance(10)
        limiter.acquire()

        with pytest.raises(RateLimitError) as exc_info:
            limiter.acquire()
        # Oldest request leaves the window 50s from now
        assert exc_info.value.retry_after == pytest.approx(50.0)

    def test_minute_window_slides(self, clock):
        limiter = SlidingWindowRateLimiter(per_minute=2, per_hour=10, clock=clock)
        limiter.acquire()
        limiter.acquire()
        clock.advance(60)
        limiter.acquire()
        assert limiter.status().requests_in_last_minute == 1
        assert limiter.status().requests_in_last_hour == 3

    def test_hour_window(self, clock):
        limiter = SlidingWindowRateLimiter(per_minute=5, per_hour=6, clock=clock)
        for _ in range(6):
            limiter.acquire()
            clock.advance(61)

        with pytest.raises(RateLimitError, match="per hour"):
            limiter.acquire()

        clock.advance(3600)
        limiter.acquire()

    def test_status_blocked(self, clock):
        limiter = SlidingWindowRateLimiter(per_minute=1, per_hour=10, clock=clock)
        limiter.acquire()
        status = limiter.status()
        assert status.is_blocked is True
        assert status.remaining_minute_requests == 0
        assert status.remaining_hourly_requests == 9
        assert status.retry_after == 60.0
        assert status.to_dict()["is_blocked"] is True

    def test_reset(self, clock):
        limiter = SlidingWindowRateLimiter(per_minute=1, per_hour=10, clock=clock)
        limiter.acquire()
        limiter.reset()
        limiter.acquire()
        assert limiter.status().requests_in_last_hour == 1


# ============================================================
# CircuitBreaker
# ============================================================


class TestCircuitBreaker:
    async def test_passes_through(self):
        breaker = CircuitBreaker(failure_threshold=2)
        async with breaker:
            pass
        assert breaker.state == "closed"

    async def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0)
        for _ in range(2):
            with pytest.raises(ValueError):
                async with breaker:
                    raise ValueError("boom")

        assert breaker.state == "open"
        assert breaker.is_open is True
        with pytest.raises(RateLimitError, match="Circuit breaker is open"):
            async with breaker:
                pass

    async def test_half_open_recovers(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0)
        with pytest.raises(ValueError):
            async with breaker:
                raise ValueError("boom")
        await asyncio.sleep(0.01)

        async with breaker:
            pass
        assert breaker.state == "closed"

    async def test_reset(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60.0)
        with pytest.raises(ValueError):
            async with breaker:
                raise ValueError("boom")
        breaker.reset()
        assert breaker.state == "closed"
        assert breaker.is_open is False


# ============================================================
# gather_with_errors
# ============================================================


class TestGatherWithErrors:
    async def test_preserves_order(self):
        async def value(v, delay):
            await asyncio.sleep(delay)
            return v

        results = await gather_with_errors(value(1, 0.02), value(2, 0.0), value(3, 0.01))
        assert results == [1, 2, 3]

    async def test_return_exceptions(self):
        async def ok():
            return "ok"

        async def fail():
            raise ValueError("bad")

        results = await gather_with_errors(ok(), fail(), return_exceptions=True)
        assert results[0] == "ok"
        assert isinstance(results[1], ValueError)


# ============================================================
# StageMetrics
# ============================================================


class TestStageMetrics:
    def test_record_and_snapshot(self):
        metrics = StageMetrics()
        metrics.record("search", 10.0)
        metrics.record("search", 30.0)

        assert metrics.average_ms("search") == 20.0
        snapshot = metrics.snapshot()
        assert snapshot["search"]["calls"] == 2
        assert snapshot["search"]["max_ms"] == 30.0

    def test_timer(self):
        metrics = StageMetrics()
        with metrics.time("parse") as timer:
            pass
        assert timer.elapsed_ms >= 0.0
        assert metrics.get("parse").count == 1

    def test_unknown_stage(self):
        metrics = StageMetrics()
        assert metrics.average_ms("missing") == 0.0
        assert metrics.get("missing") is None

    def test_reset(self):
        metrics = StageMetrics()
        metrics.record("search", 1.0)
        metrics.reset()
        assert metrics.snapshot() == {}
