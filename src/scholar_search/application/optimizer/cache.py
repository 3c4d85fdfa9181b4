"""
Access-Limited Result Caches

In-memory caches with TTL, access-count expiry and LRU eviction.
Uses cachetools.TTLCache for the TTL and size bound; each stored
``CacheEntry`` also counts how often it has been served.

Features:
- Time-based expiration (TTL) via cachetools
- Access-count expiration (entry retired after ``max_access_count`` uses)
- LRU eviction when max size reached
- Values are deep-copied in and out so callers never share state
- Injectable clock for deterministic tests

An entry is valid only while ``now - timestamp < ttl`` and
``access_count < max_access_count``. Invalid entries are removed lazily on
lookup, or in bulk by ``sweep``.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from cachetools import TTLCache

from scholar_search.shared.exceptions import ConfigurationError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheConfig:
    """Size, lifetime and access limits for one cache."""

    max_entries: int
    ttl_seconds: float
    max_access_count: int

    def __post_init__(self) -> None:
        if self.max_entries <= 0:
            raise ConfigurationError(f"max_entries must be positive, got {self.max_entries}")
        if self.ttl_seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {self.ttl_seconds}")
        if self.max_access_count <= 0:
            raise ConfigurationError(f"max_access_count must be positive, got {self.max_access_count}")


SEARCH_CACHE_DEFAULTS = CacheConfig(max_entries=200, ttl_seconds=3600.0, max_access_count=10)
CONTENT_CACHE_DEFAULTS = CacheConfig(max_entries=500, ttl_seconds=4 * 3600.0, max_access_count=20)
QUERY_CACHE_DEFAULTS = CacheConfig(max_entries=300, ttl_seconds=2 * 3600.0, max_access_count=15)


@dataclass
class CacheEntry(Generic[T]):
    value: T
    timestamp: float
    last_accessed: float
    content_hash: str
    # The write counts as the first access
    access_count: int = 1


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.expirations = 0


def stable_hash(value: Any) -> str:
    """Short, process-independent digest of a JSON-serializable value."""
    raw = json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


class AccessLimitedCache(Generic[T]):
    """
    One named cache of deep-copied values.

    Example:
        cache = AccessLimitedCache("search", SEARCH_CACHE_DEFAULTS)
        cache.set("search:abc:def", results)
        cache.get("search:abc:def")   # a copy of results, or None
    """

    def __init__(
        self,
        name: str,
        config: CacheConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.config = config
        self._clock = clock
        self._entries: TTLCache[str, CacheEntry[T]] = TTLCache(
            maxsize=config.max_entries,
            ttl=config.ttl_seconds,
            timer=clock,
        )
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def _is_valid(self, entry: CacheEntry[T], now: float) -> bool:
        return (
            now - entry.timestamp < self.config.ttl_seconds
            and entry.access_count < self.config.max_access_count
        )

    def get(self, key: str) -> T | None:
        """Return a copy of the cached value, or None if missing or retired."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            logger.debug(f"[{self.name}] cache miss: {key}")
            return None

        now = self._clock()
        if not self._is_valid(entry, now):
            del self._entries[key]
            self._stats.expirations += 1
            self._stats.misses += 1
            logger.debug(f"[{self.name}] cache entry retired: {key}")
            return None

        entry.access_count += 1
        entry.last_accessed = now
        self._stats.hits += 1
        logger.debug(f"[{self.name}] cache hit: {key} (access {entry.access_count})")
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: T, content_hash: str = "") -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(
            value=copy.deepcopy(value),
            timestamp=now,
            last_accessed=now,
            content_hash=content_hash,
        )

    def __contains__(self, key: str) -> bool:
        """True if ``key`` would be served by ``get`` (does not count as access)."""
        entry = self._entries.get(key)
        return entry is not None and self._is_valid(entry, self._clock())

    def __len__(self) -> int:
        return len(self._entries)

    def invalidate(self, key: str) -> bool:
        try:
            del self._entries[key]
            return True
        except KeyError:
            return False

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def sweep(self) -> int:
        """
        Remove every invalid entry, then evict least-recently-used entries
        until the cache is within ``max_entries``.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        removed = len(self._entries.expire())
        retired = [key for key, entry in self._entries.items() if not self._is_valid(entry, now)]
        for key in retired:
            del self._entries[key]
        removed += len(retired)

        overflow = len(self._entries) - self.config.max_entries
        if overflow > 0:
            by_age = sorted(self._entries.items(), key=lambda item: item[1].last_accessed)
            for key, _ in by_age[:overflow]:
                del self._entries[key]
            removed += overflow

        self._stats.expirations += removed
        if removed:
            logger.debug(f"[{self.name}] sweep removed {removed} entries")
        return removed

    def memory_estimate(self, bytes_per_entry: int) -> int:
        return len(self._entries) * bytes_per_entry

    def summary_dict(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_entries": self.config.max_entries,
            "ttl_seconds": self.config.ttl_seconds,
            "max_access_count": self.config.max_access_count,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "expirations": self._stats.expirations,
            "hit_rate": round(self._stats.hit_rate, 3),
        }
