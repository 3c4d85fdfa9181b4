"""
Scholar Client - rate-limited search against the scholarly index.

Flow per search:

    validate query → build URL → [limiter.acquire() → GET → status check]
    (retried on network / 5xx failures) → error-page check → parse

The sliding-window limiter is checked before every HTTP attempt and fails
fast with ``RateLimitError``; nothing is queued. Failed searches raise and
are therefore never cached by the optimizer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

import httpx
from bs4 import BeautifulSoup

from scholar_search.domain.entities import ScholarSearchResult, SearchFilters, SortBy
from scholar_search.infrastructure.http import BaseAPIClient
from scholar_search.shared.async_utils import CircuitBreaker, RateLimitStatus, SlidingWindowRateLimiter
from scholar_search.shared.exceptions import AccessBlockedError, ConfigurationError, InvalidQueryError

from .parser import ScholarResultParser

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://scholar.google.com/scholar"
MAX_RESULTS_PER_REQUEST = 20

RESULT_BLOCK_SELECTOR = "div.gs_r"
CAPTCHA_SELECTOR = "#gs_captcha_ccl, #gs_captcha_f, form#captcha-form, div.g-recaptcha"

# Phrases checked in the visible text of pages without result blocks
ERROR_PAGE_INDICATORS = {
    "captcha",
    "unusual traffic",
    "automated queries",
    "not a robot",
    "access denied",
}

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


@dataclass(frozen=True)
class ScholarClientConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    requests_per_minute: int = 10
    requests_per_hour: int = 100
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.requests_per_minute < 1 or self.requests_per_hour < 1:
            raise ConfigurationError("Scholar rate limits must be positive")
        if self.requests_per_minute > self.requests_per_hour:
            raise ConfigurationError("requests_per_minute cannot exceed requests_per_hour")
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")
        if self.timeout <= 0 or self.base_delay < 0 or self.max_delay < self.base_delay:
            raise ConfigurationError("Invalid Scholar timeout or backoff settings")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ScholarClientConfig:
        data = data or {}
        return cls(
            base_url=data.get("base_url", DEFAULT_BASE_URL),
            timeout=float(data.get("timeout", 30.0)),
            requests_per_minute=int(data.get("requests_per_minute", 10)),
            requests_per_hour=int(data.get("requests_per_hour", 100)),
            max_retries=int(data.get("max_retries", 3)),
            base_delay=float(data.get("base_delay", 1.0)),
            max_delay=float(data.get("max_delay", 30.0)),
        )


@dataclass(frozen=True)
class ScholarSearchOptions:
    """Per-search options forwarded to the index as query parameters."""

    max_results: int = MAX_RESULTS_PER_REQUEST
    year_start: int | None = None
    year_end: int | None = None
    sort_by: Literal["relevance", "date"] = "relevance"
    language: str = "en"
    include_patents: bool = False

    @classmethod
    def from_filters(cls, filters: SearchFilters) -> ScholarSearchOptions:
        date_range = filters.date_range
        return cls(
            max_results=filters.max_results,
            year_start=date_range.start if date_range else None,
            year_end=date_range.end if date_range else None,
            sort_by="date" if filters.sort_by is SortBy.DATE else "relevance",
        )

    def to_params(self, query: str, current_year: int | None = None) -> dict[str, str]:
        params = {"q": query, "hl": self.language or "en"}
        if self.year_start or self.year_end:
            params["as_ylo"] = str(self.year_start or 1900)
            params["as_yhi"] = str(self.year_end or current_year or datetime.now().year)
        if self.sort_by == "date":
            params["scisbd"] = "1"
        if not self.include_patents:
            params["as_vis"] = "1"
        if self.max_results:
            params["num"] = str(min(self.max_results, MAX_RESULTS_PER_REQUEST))
        return params


def is_error_page(html: str) -> bool:
    """
    True for robot-check / interstitial pages.

    A page with result blocks is never an error page, so results that merely
    mention captchas or robots still parse. Otherwise captcha markup or one of
    the interstitial phrases in the visible text marks the page as blocked.
    """
    soup = BeautifulSoup(html, "html.parser")
    if soup.select_one(RESULT_BLOCK_SELECTOR):
        return False
    if soup.select_one(CAPTCHA_SELECTOR):
        return True
    text = soup.get_text(" ").lower()
    return any(indicator in text for indicator in ERROR_PAGE_INDICATORS)


class ScholarClient(BaseAPIClient):
    """
    Client for the scholarly index's HTML search page.

    Usage:
        async with ScholarClient() as client:
            results = await client.search('"machine learning" AND "NLP"')
    """

    _service_name = "Scholar"

    def __init__(
        self,
        config: ScholarClientConfig | None = None,
        *,
        parser: ScholarResultParser | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or ScholarClientConfig()
        super().__init__(
            base_url="",
            timeout=self.config.timeout,
            headers=DEFAULT_HEADERS,
            circuit_breaker=CircuitBreaker(failure_threshold=5, recovery_timeout=60.0),
            max_retries=self.config.max_retries,
            base_delay=self.config.base_delay,
            max_delay=self.config.max_delay,
            transport=transport,
            sleep=sleep,
        )
        self._limiter = SlidingWindowRateLimiter(
            per_minute=self.config.requests_per_minute,
            per_hour=self.config.requests_per_hour,
            clock=clock,
        )
        self._parser = parser or ScholarResultParser()
        self.total_requests = 0
        self.failed_searches = 0

    async def search(self, query: str, options: ScholarSearchOptions | None = None) -> list[ScholarSearchResult]:
        """
        Search the index and parse the result page.

        Raises:
            InvalidQueryError: empty query
            RateLimitError: local quota exhausted or HTTP 429
            AccessBlockedError: 403 or a captcha / robot-check page
            ServiceUnavailableError, NetworkError: after retries are exhausted
        """
        if not query or not query.strip():
            raise InvalidQueryError(query, "Search query cannot be empty")

        options = options or ScholarSearchOptions()
        start = time.perf_counter()
        try:
            response = await self._make_request(self.config.base_url, params=options.to_params(query.strip()))
            html = response.text
            if html and is_error_page(html):
                raise AccessBlockedError("Scholar returned an error page", status_code=response.status_code)
        except Exception:
            self.failed_searches += 1
            raise

        results = self._parser.parse(html)[: options.max_results]
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"Scholar search returned {len(results)} results in {elapsed_ms:.0f}ms")
        return results

    async def search_with_filters(self, query: str, filters: SearchFilters) -> list[ScholarSearchResult]:
        return await self.search(query, ScholarSearchOptions.from_filters(filters))

    async def _before_attempt(self) -> None:
        self._limiter.acquire()
        self.total_requests += 1

    def get_rate_limit_status(self) -> RateLimitStatus:
        return self._limiter.status()

    def get_status(self) -> dict[str, Any]:
        return {
            **self._limiter.status().to_dict(),
            "circuit_state": self._circuit_breaker.state,
            "total_requests": self.total_requests,
            "failed_searches": self.failed_searches,
        }

    def reset_client_state(self) -> None:
        """Clear rate-limit history and close the circuit breaker."""
        self._limiter.reset()
        self._circuit_breaker.reset()
        self.total_requests = 0
        self.failed_searches = 0
        logger.info("Scholar client state reset")
