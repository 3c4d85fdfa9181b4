"""Progressive loading session state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class ProgressiveLoadingState:
    session_id: str
    total_results: int
    loaded_results: int = 0
    batch_size: int = 10
    has_more: bool = True
    next_batch_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "totalResults": self.total_results,
            "loadedResults": self.loaded_results,
            "batchSize": self.batch_size,
            "hasMore": self.has_more,
            "nextBatchIndex": self.next_batch_index,
        }


@dataclass
class BatchResult(Generic[T]):
    """One slice handed out by ``get_next_batch``."""

    batch: list[T]
    state: ProgressiveLoadingState
    is_complete: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch": [item.to_dict() if hasattr(item, "to_dict") else item for item in self.batch],
            "state": self.state.to_dict(),
            "isComplete": self.is_complete,
        }
