"""
PerformanceOptimizer - caches, background work and progressive loading

One instance is shared by every request (the container owns it as a
singleton). It provides:

1. Three caches keyed by a hash of their semantic inputs
   - search results: query + filters
   - content extraction: conversation + source type + source id
   - query generation: content + generation options
2. Request coalescing: concurrent identical cache-miss searches share one
   in-flight call to the index
3. A background task queue with a periodic worker
4. Progressive loading sessions
5. Aggregate metrics (hit rate, per-stage latencies, memory estimate)

Example:
    optimizer = PerformanceOptimizer()
    results = await optimizer.get_or_search(query, filters, lambda: client.search(query, filters))
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from typing_extensions import assert_never

from scholar_search.domain.entities import (
    BackgroundTask,
    BatchResult,
    ContentExtractionTask,
    ContentReference,
    ExtractedContent,
    ProgressiveLoadingState,
    QueryGenerationOptions,
    QueryGenerationTask,
    ScholarSearchResult,
    SearchFilters,
    SearchPreloadTask,
    SearchQuery,
    TaskPayload,
    TaskPriority,
)
from scholar_search.shared.exceptions import ConfigurationError
from scholar_search.shared.metrics import StageMetrics

from .cache import (
    CONTENT_CACHE_DEFAULTS,
    QUERY_CACHE_DEFAULTS,
    SEARCH_CACHE_DEFAULTS,
    AccessLimitedCache,
    CacheConfig,
    stable_hash,
)
from .progressive import ProgressiveLoader
from .tasks import BackgroundTaskQueue

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Rough per-entry sizes used for the memory estimate
_SEARCH_ENTRY_BYTES = 50 * 1024
_CONTENT_ENTRY_BYTES = 20 * 1024
_QUERY_ENTRY_BYTES = 10 * 1024

STAGE_SEARCH = "search"
STAGE_CONTENT_EXTRACTION = "content_extraction"
STAGE_QUERY_GENERATION = "query_generation"


@dataclass(frozen=True)
class OptimizerConfig:
    search_cache: CacheConfig = SEARCH_CACHE_DEFAULTS
    content_cache: CacheConfig = CONTENT_CACHE_DEFAULTS
    query_cache: CacheConfig = QUERY_CACHE_DEFAULTS
    tick_interval: float = 1.0
    tasks_per_tick: int = 3
    task_max_retries: int = 3
    retry_base_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.tick_interval <= 0:
            raise ConfigurationError(f"tick_interval must be positive, got {self.tick_interval}")
        if self.tasks_per_tick <= 0:
            raise ConfigurationError(f"tasks_per_tick must be positive, got {self.tasks_per_tick}")
        if self.task_max_retries < 0:
            raise ConfigurationError(f"task_max_retries must be >= 0, got {self.task_max_retries}")
        if self.retry_base_delay < 0:
            raise ConfigurationError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OptimizerConfig:
        """Build from the ``optimizer`` section of the container config."""
        if not data:
            return cls()

        def cache(name: str, defaults: CacheConfig) -> CacheConfig:
            section = data.get(name) or {}
            return CacheConfig(
                max_entries=int(section.get("max_entries", defaults.max_entries)),
                ttl_seconds=float(section.get("ttl_seconds", defaults.ttl_seconds)),
                max_access_count=int(section.get("max_access_count", defaults.max_access_count)),
            )

        return cls(
            search_cache=cache("search_cache", SEARCH_CACHE_DEFAULTS),
            content_cache=cache("content_cache", CONTENT_CACHE_DEFAULTS),
            query_cache=cache("query_cache", QUERY_CACHE_DEFAULTS),
            tick_interval=float(data.get("tick_interval", 1.0)),
            tasks_per_tick=int(data.get("tasks_per_tick", 3)),
            task_max_retries=int(data.get("task_max_retries", 3)),
            retry_base_delay=float(data.get("retry_base_delay", 1.0)),
        )


class PerformanceOptimizer:
    """Shared caching, scheduling and batching service for the pipeline."""

    def __init__(
        self,
        config: OptimizerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or OptimizerConfig()
        self.search_cache: AccessLimitedCache[list[ScholarSearchResult]] = AccessLimitedCache(
            "search", self.config.search_cache, clock
        )
        self.content_cache: AccessLimitedCache[ExtractedContent] = AccessLimitedCache(
            "content", self.config.content_cache, clock
        )
        self.query_cache: AccessLimitedCache[list[SearchQuery]] = AccessLimitedCache(
            "query", self.config.query_cache, clock
        )
        self.tasks = BackgroundTaskQueue(
            self.execute_task,
            tick_interval=self.config.tick_interval,
            tasks_per_tick=self.config.tasks_per_tick,
            max_retries=self.config.task_max_retries,
            retry_base_delay=self.config.retry_base_delay,
        )
        self.loader = ProgressiveLoader(clock=clock)
        self.stage_metrics = StageMetrics()

        self._in_flight: dict[str, asyncio.Future[list[ScholarSearchResult]]] = {}
        self.total_searches = 0
        self.cached_searches = 0
        self.coalesced_searches = 0

    # =========================================================================
    # Search result cache
    # =========================================================================

    @staticmethod
    def search_cache_key(query: str, filters: SearchFilters) -> str:
        return f"search:{stable_hash(query.lower().strip())}:{stable_hash(filters.cache_key_dict())}"

    def cache_search_results(
        self,
        query: str,
        filters: SearchFilters,
        results: list[ScholarSearchResult],
    ) -> None:
        key = self.search_cache_key(query, filters)
        self.search_cache.set(key, results, content_hash=stable_hash(query))

    def get_cached_search_results(
        self,
        query: str,
        filters: SearchFilters,
    ) -> list[ScholarSearchResult] | None:
        results = self.search_cache.get(self.search_cache_key(query, filters))
        if results is not None:
            self.cached_searches += 1
        return results

    async def get_or_search(
        self,
        query: str,
        filters: SearchFilters,
        search: Callable[[], Awaitable[list[ScholarSearchResult]]],
    ) -> list[ScholarSearchResult]:
        """
        Serve from cache, join an identical in-flight search, or run ``search``.

        Only successful searches are cached; a failure is raised to every
        caller waiting on the same key.
        """
        cached = self.get_cached_search_results(query, filters)
        if cached is not None:
            return cached

        key = self.search_cache_key(query, filters)
        pending = self._in_flight.get(key)
        if pending is not None:
            self.coalesced_searches += 1
            logger.debug(f"Joining in-flight search: {key}")
            return copy.deepcopy(await asyncio.shield(pending))

        future: asyncio.Future[list[ScholarSearchResult]] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        start = time.perf_counter()
        try:
            results = await search()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unobserved failure is not reported twice
            future.exception()
            raise
        else:
            self.record_search_time((time.perf_counter() - start) * 1000)
            self.cache_search_results(query, filters, results)
            future.set_result(results)
            return results
        finally:
            self._in_flight.pop(key, None)

    def record_search_time(self, elapsed_ms: float) -> None:
        self.total_searches += 1
        self.stage_metrics.record(STAGE_SEARCH, elapsed_ms)

    # =========================================================================
    # Content extraction cache
    # =========================================================================

    @staticmethod
    def content_cache_key(conversation_id: str, reference: ContentReference) -> str:
        return f"content:{conversation_id}:{reference.source.value}:{reference.id}"

    def cache_content_extraction(
        self,
        conversation_id: str,
        reference: ContentReference,
        content: ExtractedContent,
    ) -> None:
        key = self.content_cache_key(conversation_id, reference)
        self.content_cache.set(key, content, content_hash=stable_hash(content.content))

    def get_cached_content_extraction(
        self,
        conversation_id: str,
        reference: ContentReference,
    ) -> ExtractedContent | None:
        return self.content_cache.get(self.content_cache_key(conversation_id, reference))

    def record_content_extraction_time(self, elapsed_ms: float) -> None:
        self.stage_metrics.record(STAGE_CONTENT_EXTRACTION, elapsed_ms)

    # =========================================================================
    # Query generation cache
    # =========================================================================

    @staticmethod
    def query_cache_key(contents: Sequence[ExtractedContent], options: QueryGenerationOptions) -> str:
        content_fingerprint = [
            [c.source_type.value, c.source_id, c.content, list(c.keywords), list(c.topics)] for c in contents
        ]
        return f"query:{stable_hash(content_fingerprint)}:{stable_hash(options.cache_key_dict())}"

    def cache_query_generation(
        self,
        contents: Sequence[ExtractedContent],
        options: QueryGenerationOptions,
        queries: list[SearchQuery],
    ) -> None:
        key = self.query_cache_key(contents, options)
        self.query_cache.set(key, queries, content_hash=key.split(":")[1])

    def get_cached_query_generation(
        self,
        contents: Sequence[ExtractedContent],
        options: QueryGenerationOptions,
    ) -> list[SearchQuery] | None:
        return self.query_cache.get(self.query_cache_key(contents, options))

    def record_query_generation_time(self, elapsed_ms: float) -> None:
        self.stage_metrics.record(STAGE_QUERY_GENERATION, elapsed_ms)

    # =========================================================================
    # Background tasks
    # =========================================================================

    def schedule_background_task(
        self,
        payload: TaskPayload,
        priority: TaskPriority = TaskPriority.MEDIUM,
    ) -> str:
        return self.tasks.enqueue(payload, priority)

    def preload_search(
        self,
        query: str,
        filters: SearchFilters,
        search: Callable[[], Awaitable[list[ScholarSearchResult]]],
        priority: TaskPriority = TaskPriority.LOW,
    ) -> str:
        """Warm the search cache in the background."""
        return self.schedule_background_task(SearchPreloadTask(query, filters, search), priority)

    def start_background_processing(self) -> None:
        self.tasks.start()

    async def stop_background_processing(self) -> None:
        await self.tasks.stop()

    async def process_background_tasks(self) -> int:
        """Run a single worker tick now."""
        return await self.tasks.process_tick()

    async def execute_task(self, task: BackgroundTask) -> None:
        """Run one task, skipping the work if its result is already cached."""
        payload = task.payload
        if isinstance(payload, ContentExtractionTask):
            key = self.content_cache_key(payload.conversation_id, payload.reference)
            if key in self.content_cache:
                return
            start = time.perf_counter()
            content = await payload.fetch()
            self.record_content_extraction_time((time.perf_counter() - start) * 1000)
            self.cache_content_extraction(payload.conversation_id, payload.reference, content)
        elif isinstance(payload, QueryGenerationTask):
            key = self.query_cache_key(payload.contents, payload.options)
            if key in self.query_cache:
                return
            start = time.perf_counter()
            queries = await payload.generate()
            self.record_query_generation_time((time.perf_counter() - start) * 1000)
            self.cache_query_generation(payload.contents, payload.options, queries)
        elif isinstance(payload, SearchPreloadTask):
            key = self.search_cache_key(payload.query, payload.filters)
            if key in self.search_cache:
                return
            await self.get_or_search(payload.query, payload.filters, payload.search)
        else:
            assert_never(payload)

    # =========================================================================
    # Progressive loading
    # =========================================================================

    def initialize_progressive_loading(
        self,
        session_id: str,
        total_results: int,
        batch_size: int = 10,
    ) -> ProgressiveLoadingState:
        return self.loader.initialize(session_id, total_results, batch_size)

    def get_next_batch(self, session_id: str, all_results: Sequence[T]) -> BatchResult[T]:
        return self.loader.next_batch(session_id, all_results)

    def get_progressive_loading_state(self, session_id: str) -> ProgressiveLoadingState:
        return self.loader.get_state(session_id)

    def cleanup_progressive_loading(self, session_id: str) -> bool:
        return self.loader.cleanup(session_id)

    # =========================================================================
    # Metrics and maintenance
    # =========================================================================

    @property
    def cache_hit_rate(self) -> float:
        total = self.total_searches + self.cached_searches
        return self.cached_searches / total if total else 0.0

    def memory_usage_bytes(self) -> int:
        return (
            self.search_cache.memory_estimate(_SEARCH_ENTRY_BYTES)
            + self.content_cache.memory_estimate(_CONTENT_ENTRY_BYTES)
            + self.query_cache.memory_estimate(_QUERY_ENTRY_BYTES)
        )

    def get_metrics(self) -> dict[str, Any]:
        return {
            "total_searches": self.total_searches,
            "cached_searches": self.cached_searches,
            "coalesced_searches": self.coalesced_searches,
            "cache_hit_rate": round(self.cache_hit_rate, 3),
            "average_search_time": round(self.stage_metrics.average_ms(STAGE_SEARCH), 1),
            "average_content_extraction_time": round(self.stage_metrics.average_ms(STAGE_CONTENT_EXTRACTION), 1),
            "average_query_generation_time": round(self.stage_metrics.average_ms(STAGE_QUERY_GENERATION), 1),
            "background_tasks_processed": self.tasks.processed_count,
            "background_tasks_failed": self.tasks.failed_count,
            "background_tasks_pending": len(self.tasks),
            "progressive_loading_sessions": self.loader.sessions_created,
            "memory_usage": self.memory_usage_bytes(),
        }

    def get_cache_stats(self) -> dict[str, dict[str, Any]]:
        return {
            "search": self.search_cache.summary_dict(),
            "content": self.content_cache.summary_dict(),
            "query": self.query_cache.summary_dict(),
        }

    def sweep_caches(self) -> int:
        """Periodic cleanup of expired, exhausted and overflow entries."""
        return self.search_cache.sweep() + self.content_cache.sweep() + self.query_cache.sweep()

    def clear_all_caches(self) -> None:
        self.search_cache.clear()
        self.content_cache.clear()
        self.query_cache.clear()
        logger.info("All optimizer caches cleared")

    def reset_metrics(self) -> None:
        self.total_searches = 0
        self.cached_searches = 0
        self.coalesced_searches = 0
        self.tasks.processed_count = 0
        self.tasks.failed_count = 0
        self.loader.sessions_created = 0
        self.stage_metrics.reset()
        for cache in (self.search_cache, self.content_cache, self.query_cache):
            cache.stats.reset()

    async def cleanup(self) -> None:
        """Stop the worker and drop every cache entry, task and session."""
        await self.stop_background_processing()
        self.tasks.clear()
        self.loader.clear()
        self.clear_all_caches()
