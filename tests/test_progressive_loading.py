"""Tests for ProgressiveLoader."""

import pytest

from scholar_search.application.optimizer import ProgressiveLoader
from scholar_search.shared.exceptions import InvalidParameterError, NotFoundError


@pytest.fixture
def loader():
    return ProgressiveLoader()


class TestProgressiveLoader:
    def test_batches(self, loader):
        items = list(range(25))
        loader.initialize("s1", total_results=25, batch_size=10)

        sizes = []
        while True:
            result = loader.next_batch("s1", items)
            sizes.append(len(result.batch))
            if result.is_complete:
                break

        assert sizes == [10, 10, 5]
        assert loader.get_state("s1").loaded_results == 25

    def test_batches_are_contiguous(self, loader):
        items = list(range(12))
        loader.initialize("s1", total_results=12, batch_size=5)
        first = loader.next_batch("s1", items)
        second = loader.next_batch("s1", items)
        assert first.batch == [0, 1, 2, 3, 4]
        assert second.batch == [5, 6, 7, 8, 9]
        assert second.state.next_batch_index == 2

    def test_exhausted_session(self, loader):
        loader.initialize("s1", total_results=3, batch_size=10)
        assert loader.next_batch("s1", [1, 2, 3]).is_complete
        after = loader.next_batch("s1", [1, 2, 3])
        assert after.batch == []
        assert after.is_complete

    def test_empty_session(self, loader):
        state = loader.initialize("s1", total_results=0)
        assert state.has_more is False
        assert loader.next_batch("s1", []).is_complete

    def test_unknown_session(self, loader):
        with pytest.raises(NotFoundError):
            loader.next_batch("missing", [])

    def test_invalid_batch_size(self, loader):
        with pytest.raises(InvalidParameterError):
            loader.initialize("s1", total_results=5, batch_size=0)

    def test_cleanup(self, loader):
        loader.initialize("s1", total_results=5)
        assert "s1" in loader
        assert loader.cleanup("s1") is True
        assert loader.cleanup("s1") is False
        assert len(loader) == 0
        assert loader.sessions_created == 1

    def test_to_dict(self, loader):
        loader.initialize("s1", total_results=4, batch_size=2)
        data = loader.next_batch("s1", ["a", "b", "c", "d"]).to_dict()
        assert data["batch"] == ["a", "b"]
        assert data["state"]["hasMore"] is True
        assert data["isComplete"] is False


class TestSessionBounds:
    def test_oldest_session_evicted(self):
        loader = ProgressiveLoader(max_sessions=2)
        for session_id in ("s1", "s2", "s3"):
            loader.initialize(session_id, total_results=5)

        assert len(loader) == 2
        assert "s1" not in loader
        with pytest.raises(NotFoundError):
            loader.next_batch("s1", list(range(5)))
        assert loader.sessions_created == 3

    def test_idle_session_expires(self, clock):
        loader = ProgressiveLoader(ttl_seconds=60, clock=clock)
        loader.initialize("s1", total_results=5)
        clock.advance(30)
        assert "s1" in loader

        clock.advance(31)
        assert len(loader) == 0
        with pytest.raises(NotFoundError):
            loader.get_state("s1")
