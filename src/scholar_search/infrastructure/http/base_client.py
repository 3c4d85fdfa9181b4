"""
Base API Client - Common HTTP request pattern with retry and circuit breaker.

Provides a reusable base class with:
- httpx.AsyncClient management (injectable transport for tests)
- Retry of transient failures via tenacity with exponential backoff
- Circuit breaker for fault tolerance
- HTTP status → typed exception mapping
- A pre-attempt hook for quota checks (rate limiters fail fast)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from typing_extensions import Self

from scholar_search.shared.async_utils import CircuitBreaker
from scholar_search.shared.exceptions import (
    AccessBlockedError,
    ErrorContext,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    get_retry_delay,
    is_retryable_error,
)

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Base class for external HTTP clients.

    Subclasses set ``_service_name`` and can override:
    - ``_before_attempt()``: quota checks run before every HTTP attempt
    - ``_check_status()``: service-specific status handling
    - ``_should_retry()``: which exceptions trigger another attempt

    Example:
        class MyClient(BaseAPIClient):
            _service_name = "MyAPI"

            async def get_page(self, path: str) -> str:
                response = await self._make_request(path)
                return response.text
    """

    _service_name: str = "API"

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Request timeout in seconds
            headers: Default headers for all requests
            circuit_breaker: If None, a default one is created (threshold=10, recovery=60s)
            max_retries: Total attempts per request, including the first
            base_delay: First backoff delay in seconds
            max_delay: Upper bound for any single backoff delay
            transport: Custom httpx transport (``httpx.MockTransport`` in tests)
            sleep: Coroutine used to wait between attempts
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=headers or {},
            transport=transport,
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=10, recovery_timeout=60.0)

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")) or not self._base_url:
            return url
        return f"{self._base_url}{url}"

    async def _make_request(
        self,
        url: str = "",
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        GET with retry and circuit breaker protection.

        Raises:
            RateLimitError: quota exhausted, HTTP 429 or circuit open (never retried)
            AccessBlockedError: HTTP 403 (never retried)
            ServiceUnavailableError: HTTP 5xx after retries
            NetworkError / RequestTimeoutError: transport failure after retries
        """
        full_url = self._build_url(url)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self._max_retries)),
            wait=self._wait,
            retry=retry_if_exception(self._should_retry),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._attempt, full_url, params=params, headers=headers)

    async def _attempt(
        self,
        url: str,
        *,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
    ) -> httpx.Response:
        await self._before_attempt()
        async with self._circuit_breaker:
            try:
                response = await self._client.get(url, params=params, headers=headers or {})
            except httpx.TimeoutException as e:
                raise RequestTimeoutError(
                    f"{self._service_name} request timed out after {self._timeout:.0f}s",
                    context=ErrorContext(operation=url),
                ) from e
            except httpx.RequestError as e:
                raise NetworkError(
                    f"{self._service_name} network error: {e}",
                    context=ErrorContext(operation=url),
                ) from e
            self._check_status(response)
            return response

    async def _before_attempt(self) -> None:
        """Hook run before each HTTP attempt. Default: nothing."""

    def _check_status(self, response: httpx.Response) -> None:
        """Raise a typed error for non-success responses."""
        status = response.status_code
        if status < 400:
            return
        if status == 429:
            raise RateLimitError(
                f"{self._service_name} rate limit exceeded",
                retry_after=self._get_retry_after(response, 60.0),
                status_code=status,
            )
        if status == 403:
            raise AccessBlockedError(f"Access blocked by {self._service_name}", status_code=status)
        if status in (500, 502, 503, 504):
            raise ServiceUnavailableError(
                f"service unavailable ({status})",
                service=self._service_name,
                status_code=status,
            )
        raise NetworkError(
            f"HTTP {status}: {response.reason_phrase}",
            retryable=status >= 500,
            status_code=status,
        )

    def _should_retry(self, error: BaseException) -> bool:
        # Quota errors fail fast so the caller decides when to come back
        if isinstance(error, RateLimitError):
            return False
        return is_retryable_error(error)

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        attempt = retry_state.attempt_number - 1
        if error is None:
            return min(self._base_delay * (2**attempt), self._max_delay)
        return min(get_retry_delay(error, attempt, self._base_delay), self._max_delay)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"{self._service_name}: Retry {retry_state.attempt_number}/{self._max_retries} "
            f"in {delay:.1f}s after: {error}"
        )

    @staticmethod
    def _get_retry_after(response: httpx.Response, default: float) -> float:
        """Extract Retry-After (seconds) from response headers."""
        try:
            return float(response.headers.get("Retry-After", default))
        except (ValueError, TypeError):
            return default

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
