"""
Background Task Queue

Priority-ordered queue drained by a periodic asyncio worker. Each tick
removes up to ``tasks_per_tick`` tasks from the head of the queue before
running them, so a task is never picked up twice. Failed tasks are
re-enqueued after an exponential backoff until ``max_retries`` is exhausted.

Usage:
    queue = BackgroundTaskQueue(execute=optimizer.execute_task)
    queue.start()
    queue.enqueue(SearchPreloadTask(...), TaskPriority.LOW)
    ...
    await queue.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from scholar_search.domain.entities import (
    BackgroundTask,
    TaskPayload,
    TaskPriority,
    TaskStatus,
)
from scholar_search.shared.async_utils import gather_with_errors

logger = logging.getLogger(__name__)


class BackgroundTaskQueue:
    """Priority queue plus the worker loop that drains it."""

    def __init__(
        self,
        execute: Callable[[BackgroundTask], Awaitable[None]],
        *,
        tick_interval: float = 1.0,
        tasks_per_tick: int = 3,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        self._execute = execute
        self.tick_interval = tick_interval
        self.tasks_per_tick = tasks_per_tick
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

        self._queue: list[BackgroundTask] = []
        self._worker: asyncio.Task[None] | None = None
        self._retry_handles: set[asyncio.TimerHandle] = set()
        self.processed_count = 0
        self.failed_count = 0

    # ── Queue ───────────────────────────────────────────────────────────

    def enqueue(
        self,
        payload: TaskPayload,
        priority: TaskPriority = TaskPriority.MEDIUM,
        max_retries: int | None = None,
    ) -> str:
        """Add a task; returns its id."""
        task = BackgroundTask(
            id=f"task_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
            payload=payload,
            priority=priority,
            max_retries=self.max_retries if max_retries is None else max_retries,
            created_at=time.time(),
        )
        self._insert(task)
        logger.debug(f"Enqueued {task.type} task {task.id} ({priority.name.lower()})")
        return task.id

    def _insert(self, task: BackgroundTask) -> None:
        # Before the first lower-priority task, so equal priorities stay FIFO
        for index, queued in enumerate(self._queue):
            if queued.priority < task.priority:
                self._queue.insert(index, task)
                return
        self._queue.append(task)

    @property
    def pending(self) -> list[BackgroundTask]:
        return list(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def clear(self) -> int:
        count = len(self._queue)
        self._queue.clear()
        for handle in self._retry_handles:
            handle.cancel()
        self._retry_handles.clear()
        return count

    # ── Worker ──────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the periodic worker on the running event loop."""
        if self.is_running:
            return
        self._worker = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Background worker started (tick every {self.tick_interval}s)")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Background worker stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            await self.process_tick()

    async def process_tick(self) -> int:
        """
        Run one worker tick.

        Returns:
            Number of tasks taken off the queue
        """
        if not self._queue:
            return 0

        batch = self._queue[: self.tasks_per_tick]
        del self._queue[: self.tasks_per_tick]
        for task in batch:
            task.status = TaskStatus.PROCESSING

        outcomes = await gather_with_errors(
            *(self._execute(task) for task in batch),
            return_exceptions=True,
        )
        for task, outcome in zip(batch, outcomes):
            if isinstance(outcome, Exception):
                self._handle_failure(task, outcome)
            else:
                task.status = TaskStatus.COMPLETED
                self.processed_count += 1
                logger.info(f"Background task {task.id} ({task.type}) completed")
        return len(batch)

    def _handle_failure(self, task: BackgroundTask, error: Exception) -> None:
        task.error = str(error)
        if task.retry_count >= task.max_retries:
            task.status = TaskStatus.FAILED
            self.failed_count += 1
            logger.warning(f"Background task {task.id} failed permanently after {task.retry_count} retries: {error}")
            return

        task.retry_count += 1
        task.status = TaskStatus.PENDING
        delay = self.retry_base_delay * (2**task.retry_count)
        logger.warning(
            f"Background task {task.id} failed, retry {task.retry_count}/{task.max_retries} in {delay:.1f}s: {error}"
        )
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle | None = None

        def requeue() -> None:
            if handle is not None:
                self._retry_handles.discard(handle)
            self._insert(task)

        handle = loop.call_later(delay, requeue)
        self._retry_handles.add(handle)
