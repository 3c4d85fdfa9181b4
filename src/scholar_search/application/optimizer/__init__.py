"""
Performance Optimizer - caching, background tasks and progressive loading.
"""

from .cache import (
    CONTENT_CACHE_DEFAULTS,
    QUERY_CACHE_DEFAULTS,
    SEARCH_CACHE_DEFAULTS,
    AccessLimitedCache,
    CacheConfig,
    CacheEntry,
    CacheStats,
    stable_hash,
)
from .optimizer import OptimizerConfig, PerformanceOptimizer
from .progressive import MAX_SESSIONS, SESSION_TTL_SECONDS, ProgressiveLoader
from .tasks import BackgroundTaskQueue

__all__ = [
    "PerformanceOptimizer",
    "OptimizerConfig",
    "AccessLimitedCache",
    "CacheConfig",
    "CacheEntry",
    "CacheStats",
    "SEARCH_CACHE_DEFAULTS",
    "CONTENT_CACHE_DEFAULTS",
    "QUERY_CACHE_DEFAULTS",
    "stable_hash",
    "BackgroundTaskQueue",
    "ProgressiveLoader",
    "MAX_SESSIONS",
    "SESSION_TTL_SECONDS",
]
