"""
Async Utilities for Resilient External Calls.

Provides:
- Sliding-window rate limiting (per-minute and per-hour quotas, fail fast)
- Circuit breaker for fault tolerance
- Parallel execution with TaskGroup
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .exceptions import RateLimitError

T = TypeVar("T")

logger = logging.getLogger(__name__)

_MINUTE = 60.0
_HOUR = 3600.0


# =============================================================================
# Sliding Window Rate Limiter
# =============================================================================

@dataclass
class RateLimitStatus:
    """Snapshot of the limiter's windows."""

    is_blocked: bool
    requests_in_last_minute: int
    requests_in_last_hour: int
    remaining_minute_requests: int
    remaining_hourly_requests: int
    retry_after: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_blocked": self.is_blocked,
            "requests_in_last_minute": self.requests_in_last_minute,
            "requests_in_last_hour": self.requests_in_last_hour,
            "remaining_minute_requests": self.remaining_minute_requests,
            "remaining_hourly_requests": self.remaining_hourly_requests,
            "retry_after": self.retry_after,
        }


@dataclass
class SlidingWindowRateLimiter:
    """
    Request quota tracked over the last minute and the last hour.

    Unlike a token bucket, a full window is never waited out: ``acquire``
    raises ``RateLimitError`` immediately so the caller decides what to do.

    Example:
        limiter = SlidingWindowRateLimiter(per_minute=10, per_hour=100)
        limiter.acquire()   # records the request or raises
    """
    per_minute: int = 10
    per_hour: int = 100
    clock: Callable[[], float] = time.monotonic
    _history: deque[float] = field(init=False, default_factory=deque)

    def _prune(self, now: float) -> None:
        while self._history and now - self._history[0] >= _HOUR:
            self._history.popleft()

    def _counts(self, now: float) -> tuple[int, int]:
        self._prune(now)
        last_minute = sum(1 for ts in self._history if now - ts < _MINUTE)
        return last_minute, len(self._history)

    def acquire(self) -> None:
        """Record one request, or raise if either window is full."""
        now = self.clock()
        last_minute, last_hour = self._counts(now)

        if last_minute >= self.per_minute:
            oldest = next(ts for ts in self._history if now - ts < _MINUTE)
            retry_after = max(0.0, _MINUTE - (now - oldest))
            logger.debug(f"Rate limit: minute window full ({last_minute}/{self.per_minute})")
            raise RateLimitError(
                f"Rate limit exceeded: {self.per_minute} requests per minute",
                retry_after=retry_after or _MINUTE,
            )
        if last_hour >= self.per_hour:
            retry_after = max(0.0, _HOUR - (now - self._history[0]))
            logger.debug(f"Rate limit: hour window full ({last_hour}/{self.per_hour})")
            raise RateLimitError(
                f"Rate limit exceeded: {self.per_hour} requests per hour",
                retry_after=retry_after or _HOUR,
            )

        self._history.append(now)

    def status(self) -> RateLimitStatus:
        now = self.clock()
        last_minute, last_hour = self._counts(now)
        remaining_minute = max(0, self.per_minute - last_minute)
        remaining_hour = max(0, self.per_hour - last_hour)
        retry_after = 0.0
        if remaining_minute == 0:
            retry_after = _MINUTE
        if remaining_hour == 0:
            retry_after = _HOUR
        return RateLimitStatus(
            is_blocked=remaining_minute == 0 or remaining_hour == 0,
            requests_in_last_minute=last_minute,
            requests_in_last_hour=last_hour,
            remaining_minute_requests=remaining_minute,
            remaining_hourly_requests=remaining_hour,
            retry_after=retry_after,
        )

    def reset(self) -> None:
        self._history.clear()


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================

@dataclass
class CircuitBreaker:
    """
    Circuit breaker for fault tolerance.

    States:
    - CLOSED: Normal operation
    - OPEN: Failing, reject requests immediately
    - HALF_OPEN: Testing if service recovered

    Example:
        breaker = CircuitBreaker(failure_threshold=5)

        async with breaker:
            result = await risky_api_call()
    """
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3

    _failure_count: int = field(init=False, default=0)
    _last_failure_time: float | None = field(init=False, default=None)
    _state: str = field(init=False, default="closed")
    _half_open_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        if self._state == "open":
            if self._last_failure_time:
                if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                    return False  # Move to half-open
            return True
        return False

    def reset(self) -> None:
        self._failure_count = 0
        self._last_failure_time = None
        self._state = "closed"
        self._half_open_calls = 0

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise RateLimitError(
                    "Circuit breaker is open",
                    retry_after=self.recovery_timeout,
                )

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise RateLimitError(
                        "Circuit breaker is half-open (max calls reached)",
                        retry_after=self.recovery_timeout / 2,
                    )
                self._half_open_calls += 1

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        async with self._lock:
            if exc_val is not None:
                self._failure_count += 1
                self._last_failure_time = time.monotonic()

                if self._failure_count >= self.failure_threshold:
                    self._state = "open"
                    logger.warning(
                        f"Circuit breaker opened after {self._failure_count} failures"
                    )
            else:
                if self._state == "half_open":
                    self._state = "closed"
                    self._failure_count = 0
                    logger.info("Circuit breaker closed (recovered)")
                elif self._state == "closed":
                    self._failure_count = max(0, self._failure_count - 1)


# =============================================================================
# Parallel Execution with TaskGroup
# =============================================================================

async def gather_with_errors(
    *coros: Awaitable[T],
    return_exceptions: bool = False,
) -> list[T | Exception]:
    """
    Execute coroutines in parallel using TaskGroup, preserving input order.

    Args:
        *coros: Coroutines to execute
        return_exceptions: If True, return exceptions instead of raising

    Returns:
        List of results (or exceptions if return_exceptions=True)
    """
    if return_exceptions:
        results: list[T | Exception] = [None] * len(coros)  # type: ignore[list-item]

        async def safe_run(coro: Awaitable[T], index: int) -> None:
            try:
                results[index] = await coro
            except Exception as e:
                results[index] = e

        async with asyncio.TaskGroup() as tg:
            for i, coro in enumerate(coros):
                tg.create_task(safe_run(coro, i))
        return results

    # Fail fast on any exception
    async with asyncio.TaskGroup() as tg:
        tasks = [tg.create_task(coro) for coro in coros]  # type: ignore[arg-type]
    return [task.result() for task in tasks]
