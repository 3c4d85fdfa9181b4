"""Tests for BackgroundTaskQueue - priority order, ticks, retries, worker."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from scholar_search.application.optimizer import BackgroundTaskQueue
from scholar_search.domain.entities import SearchFilters, SearchPreloadTask, TaskPriority, TaskStatus


def payload(query: str) -> SearchPreloadTask:
    return SearchPreloadTask(query=query, filters=SearchFilters(), search=AsyncMock(return_value=[]))


@pytest.fixture
def execute():
    return AsyncMock()


class TestEnqueue:
    def test_priority_order(self, execute):
        queue = BackgroundTaskQueue(execute)
        queue.enqueue(payload("low"), TaskPriority.LOW)
        queue.enqueue(payload("high"), TaskPriority.HIGH)
        queue.enqueue(payload("medium"), TaskPriority.MEDIUM)
        assert [t.payload.query for t in queue.pending] == ["high", "medium", "low"]

    def test_equal_priority_fifo(self, execute):
        queue = BackgroundTaskQueue(execute)
        for name in ("first", "second", "third"):
            queue.enqueue(payload(name))
        assert [t.payload.query for t in queue.pending] == ["first", "second", "third"]

    def test_task_fields(self, execute):
        queue = BackgroundTaskQueue(execute, max_retries=5)
        task_id = queue.enqueue(payload("q"))
        [task] = queue.pending
        assert task.id == task_id
        assert task_id.startswith("task_")
        assert task.max_retries == 5
        assert task.type == "search_preload"
        assert task.to_dict()["priority"] == "medium"


class TestProcessTick:
    async def test_batch_size(self, execute):
        queue = BackgroundTaskQueue(execute, tasks_per_tick=2)
        for name in ("a", "b", "c"):
            queue.enqueue(payload(name))

        assert await queue.process_tick() == 2
        assert len(queue) == 1
        assert execute.await_count == 2
        assert queue.processed_count == 2

    async def test_empty_queue(self, execute):
        assert await BackgroundTaskQueue(execute).process_tick() == 0

    async def test_permanent_failure(self):
        queue = BackgroundTaskQueue(AsyncMock(side_effect=RuntimeError("boom")), max_retries=0)
        queue.enqueue(payload("q"))
        [task] = queue.pending

        await queue.process_tick()

        assert task.status is TaskStatus.FAILED
        assert task.error == "boom"
        assert queue.failed_count == 1
        assert len(queue) == 0

    async def test_failed_task_requeued(self):
        execute = AsyncMock(side_effect=[RuntimeError("flaky"), None])
        queue = BackgroundTaskQueue(execute, max_retries=2, retry_base_delay=0.0)
        queue.enqueue(payload("q"))
        [task] = queue.pending

        await queue.process_tick()
        assert task.retry_count == 1
        assert task.status is TaskStatus.PENDING
        await asyncio.sleep(0.01)
        assert queue.pending == [task]

        await queue.process_tick()
        assert task.status is TaskStatus.COMPLETED

    async def test_clear_cancels_pending_retries(self):
        queue = BackgroundTaskQueue(AsyncMock(side_effect=RuntimeError("x")), retry_base_delay=0.01)
        queue.enqueue(payload("q"))
        await queue.process_tick()
        assert queue.clear() == 0
        await asyncio.sleep(0.05)
        assert len(queue) == 0


class TestWorker:
    async def test_start_and_stop(self, execute):
        queue = BackgroundTaskQueue(execute, tick_interval=0.01)
        queue.enqueue(payload("q"))
        queue.start()
        assert queue.is_running
        await asyncio.sleep(0.05)
        await queue.stop()

        assert not queue.is_running
        assert execute.await_count == 1

    async def test_stop_without_start(self, execute):
        await BackgroundTaskQueue(execute).stop()
