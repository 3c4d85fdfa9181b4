"""
Progressive loading sessions: hand out a large result list in batches.

Sessions live in a ``TTLCache`` so abandoned cursors expire instead of
accumulating in a long-running service.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from cachetools import TTLCache

from scholar_search.domain.entities import BatchResult, ProgressiveLoadingState
from scholar_search.shared.exceptions import InvalidParameterError, NotFoundError

T = TypeVar("T")

logger = logging.getLogger(__name__)

MAX_SESSIONS = 256
SESSION_TTL_SECONDS = 3600.0


class ProgressiveLoader:
    """Per-session cursor state over a caller-held result list."""

    def __init__(
        self,
        max_sessions: int = MAX_SESSIONS,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: TTLCache[str, ProgressiveLoadingState] = TTLCache(
            maxsize=max_sessions, ttl=ttl_seconds, timer=clock
        )
        self.sessions_created = 0

    def initialize(self, session_id: str, total_results: int, batch_size: int = 10) -> ProgressiveLoadingState:
        if batch_size <= 0:
            raise InvalidParameterError("batch_size", batch_size, "a positive integer")
        if total_results < 0:
            raise InvalidParameterError("total_results", total_results, "a non-negative integer")

        state = ProgressiveLoadingState(
            session_id=session_id,
            total_results=total_results,
            batch_size=batch_size,
            has_more=total_results > 0,
        )
        self._sessions[session_id] = state
        self.sessions_created += 1
        logger.info(f"Progressive loading session {session_id}: {total_results} results, batch {batch_size}")
        return state

    def get_state(self, session_id: str) -> ProgressiveLoadingState:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise NotFoundError("Progressive loading session", session_id) from None

    def next_batch(self, session_id: str, all_results: Sequence[T]) -> BatchResult[T]:
        """Return the next slice of ``all_results`` and advance the cursor."""
        state = self.get_state(session_id)
        if not state.has_more:
            return BatchResult(batch=[], state=state, is_complete=True)

        start = state.next_batch_index * state.batch_size
        end = min(start + state.batch_size, state.total_results, len(all_results))
        batch = list(all_results[start:end])

        state.loaded_results = end
        state.next_batch_index += 1
        state.has_more = end < min(state.total_results, len(all_results))
        return BatchResult(batch=batch, state=state, is_complete=not state.has_more)

    def cleanup(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info(f"Progressive loading session {session_id} closed")
        return removed

    def clear(self) -> int:
        count = len(self._sessions)
        self._sessions.clear()
        return count

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
