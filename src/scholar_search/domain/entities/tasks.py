"""
Background Task Entities

A ``BackgroundTask`` wraps exactly one payload variant. Each variant carries
the inputs that form its cache key plus the coroutine factory that does the
work, so the worker can skip tasks whose result is already cached.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from .content import ContentReference, ExtractedContent
from .filters import SearchFilters
from .query import QueryGenerationOptions, SearchQuery
from .result import ScholarSearchResult


class TaskPriority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class TaskStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ContentExtractionTask:
    conversation_id: str
    reference: ContentReference
    fetch: Callable[[], Awaitable[ExtractedContent]]


@dataclass(frozen=True)
class QueryGenerationTask:
    contents: tuple[ExtractedContent, ...]
    options: QueryGenerationOptions
    generate: Callable[[], Awaitable[list[SearchQuery]]]


@dataclass(frozen=True)
class SearchPreloadTask:
    query: str
    filters: SearchFilters
    search: Callable[[], Awaitable[list[ScholarSearchResult]]]


TaskPayload = ContentExtractionTask | QueryGenerationTask | SearchPreloadTask


@dataclass
class BackgroundTask:
    id: str
    payload: TaskPayload
    priority: TaskPriority = TaskPriority.MEDIUM
    retry_count: int = 0
    max_retries: int = 3
    status: TaskStatus = TaskStatus.PENDING
    created_at: float = 0.0
    error: str | None = field(default=None, repr=False)

    @property
    def type(self) -> str:
        if isinstance(self.payload, ContentExtractionTask):
            return "content_extraction"
        if isinstance(self.payload, QueryGenerationTask):
            return "query_generation"
        return "search_preload"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "priority": self.priority.name.lower(),
            "retryCount": self.retry_count,
            "maxRetries": self.max_retries,
            "status": self.status.value,
        }
