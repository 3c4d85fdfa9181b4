"""
FeedbackStore - durable history of user actions on search results.

The surrounding application supplies the real store (database, KV). The
learning system only depends on the ``FeedbackStore`` protocol below.
``InMemoryFeedbackStore`` keeps events per user in insertion order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from scholar_search.domain.entities import UserFeedback

logger = logging.getLogger(__name__)

# Maximum events kept per user
_MAX_EVENTS_PER_USER = 1000


class FeedbackStore(Protocol):
    async def add(self, feedback: UserFeedback) -> None: ...

    async def list_for_user(self, user_id: str) -> list[UserFeedback]: ...

    async def clear_user(self, user_id: str) -> int: ...


class InMemoryFeedbackStore:
    """Process-local feedback history, oldest events dropped past the cap."""

    def __init__(self, max_events_per_user: int = _MAX_EVENTS_PER_USER) -> None:
        self._events: dict[str, list[UserFeedback]] = {}
        self._max_events = max_events_per_user
        self._lock = asyncio.Lock()

    async def add(self, feedback: UserFeedback) -> None:
        async with self._lock:
            events = self._events.setdefault(feedback.user_id, [])
            events.append(feedback)
            if len(events) > self._max_events:
                del events[: len(events) - self._max_events]

    async def list_for_user(self, user_id: str) -> list[UserFeedback]:
        async with self._lock:
            return list(self._events.get(user_id, ()))

    async def clear_user(self, user_id: str) -> int:
        async with self._lock:
            removed = len(self._events.pop(user_id, ()))
        logger.info(f"Cleared {removed} feedback events for user {user_id}")
        return removed

    def __len__(self) -> int:
        return sum(len(events) for events in self._events.values())
