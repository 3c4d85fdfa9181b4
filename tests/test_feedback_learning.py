"""
Tests for feedback learning - store, pattern learning, metrics,
adaptive filters and feedback-based re-ranking.
"""

from datetime import timedelta

import pytest

from scholar_search.application.feedback import (
    FeedbackLearningSystem,
    InMemoryFeedbackStore,
    evaluate_filter,
    is_negative,
    is_positive,
    update_pattern,
)
from scholar_search.domain.entities import (
    AdaptiveFilter,
    FeedbackAction,
    FilterAction,
    FilterType,
    LearningMetrics,
    UserFeedback,
    UserPreferencePattern,
)


@pytest.fixture
def store():
    return InMemoryFeedbackStore()


@pytest.fixture
def learning(store, utc_now):
    return FeedbackLearningSystem(store, clock=lambda: utc_now)


@pytest.fixture
def feedback(make_result, utc_now):
    """Factory for feedback events stamped at the fixed clock."""

    def _create(action=FeedbackAction.ADDED, *, user_id="u1", rating=None, age_days=0, **result_kwargs):
        return UserFeedback(
            user_id=user_id,
            result=make_result(**result_kwargs),
            action=action,
            rating=rating,
            timestamp=utc_now - timedelta(days=age_days),
        )

    return _create


# =============================================================================
# Feedback events
# =============================================================================


class TestFeedbackClassification:
    def test_implicit_ratings(self, feedback):
        assert is_positive(feedback(FeedbackAction.ADDED))
        assert is_positive(feedback(FeedbackAction.BOOKMARKED))
        assert is_negative(feedback(FeedbackAction.REJECTED))
        assert is_negative(feedback(FeedbackAction.IGNORED))

    def test_viewed_is_neutral(self, feedback):
        viewed = feedback(FeedbackAction.VIEWED)
        assert not is_positive(viewed)
        assert not is_negative(viewed)

    def test_explicit_rating_wins(self, feedback):
        low = feedback(FeedbackAction.ADDED, rating=2)
        assert not is_positive(low)
        assert is_negative(low)

    def test_rating_range(self, make_result):
        with pytest.raises(ValueError):
            UserFeedback("u1", make_result(), FeedbackAction.ADDED, rating=6)

    def test_result_id(self, feedback):
        assert feedback(doi="10.1000/x").result_id == "10.1000/x"
        assert feedback(title="Some Title").result_id == "some title"


class TestFeedbackStore:
    async def test_add_and_list(self, store, feedback):
        await store.add(feedback())
        await store.add(feedback(user_id="u2"))
        assert len(await store.list_for_user("u1")) == 1
        assert len(store) == 2

    async def test_cap_drops_oldest(self, feedback):
        store = InMemoryFeedbackStore(max_events_per_user=2)
        for title in ("first", "second", "third"):
            await store.add(feedback(title=title))
        assert [f.result.title for f in await store.list_for_user("u1")] == ["second", "third"]

    async def test_clear_user(self, store, feedback):
        await store.add(feedback())
        assert await store.clear_user("u1") == 1
        assert await store.list_for_user("u1") == []


# =============================================================================
# Pattern learning
# =============================================================================


class TestUpdatePattern:
    def test_positive_feedback(self, feedback):
        pattern = update_pattern(UserPreferencePattern(user_id="u1"), feedback(FeedbackAction.ADDED))

        assert pattern.preferred_authors == ["Smith, J.", "Doe, A."]
        assert pattern.preferred_journals == ["Nature"]
        assert pattern.topic_preferences["nature"] == pytest.approx(0.1)
        assert pattern.topic_preferences["processing"] == pytest.approx(0.1)
        assert pattern.quality_threshold == pytest.approx(0.55)
        assert pattern.relevance_threshold == pytest.approx(0.55)
        assert pattern.feedback_count == 1
        assert pattern.rejected_authors == []

    def test_negative_feedback(self, feedback):
        event = feedback(FeedbackAction.REJECTED, keywords=("Transformers",))
        pattern = update_pattern(UserPreferencePattern(user_id="u1"), event)

        assert pattern.preferred_authors == []
        assert pattern.rejected_authors == ["Smith, J.", "Doe, A."]
        assert pattern.rejected_journals == ["Nature"]
        assert pattern.rejected_keywords == ["transformers"]
        assert pattern.topic_preferences["nature"] == pytest.approx(-0.02)
        assert pattern.relevance_threshold == pytest.approx(0.45)

    def test_thresholds_clamped(self, feedback):
        pattern = UserPreferencePattern(user_id="u1", quality_threshold=0.9)
        for _ in range(3):
            pattern = update_pattern(pattern, feedback(FeedbackAction.ADDED))
        assert pattern.quality_threshold <= 0.9

    def test_authors_not_duplicated(self, feedback):
        pattern = UserPreferencePattern(user_id="u1")
        pattern = update_pattern(pattern, feedback())
        pattern = update_pattern(pattern, feedback())
        assert pattern.preferred_authors == ["Smith, J.", "Doe, A."]


class TestGetUserPattern:
    async def test_ranges_from_accepted_results(self, learning, feedback):
        await learning.record_feedback(feedback(year=2018, citations=30))
        await learning.record_feedback(feedback(year=2021, citations=500))
        await learning.record_feedback(feedback(FeedbackAction.REJECTED, year=1995, citations=1))

        pattern = await learning.get_user_pattern("u1")
        assert pattern.preferred_year_range == (2018, 2021)
        assert pattern.preferred_citation_range == (30, 500)
        assert pattern.feedback_count == 3

    async def test_defaults_without_feedback(self, learning):
        pattern = await learning.get_user_pattern("nobody")
        assert pattern.preferred_year_range == (2010, 2024)
        assert pattern.feedback_count == 0


class TestLearningMetrics:
    async def test_recent_window(self, learning, feedback):
        await learning.record_feedback(feedback(FeedbackAction.ADDED))
        await learning.record_feedback(feedback(FeedbackAction.ADDED))
        await learning.record_feedback(feedback(FeedbackAction.REJECTED))
        await learning.record_feedback(feedback(FeedbackAction.REJECTED, age_days=40))

        metrics = await learning.get_learning_metrics("u1")
        assert metrics.total_feedback_count == 3
        assert metrics.positive_count == 2
        assert metrics.negative_count == 1
        assert metrics.average_rating == pytest.approx(11 / 3)
        assert metrics.improvement_trend == 0.1
        assert metrics.confidence_level == pytest.approx(0.1)

    async def test_no_feedback(self, learning):
        assert await learning.get_learning_metrics("u1") == LearningMetrics()


# =============================================================================
# Adaptive filters and re-ranking
# =============================================================================


class TestAdaptiveFilters:
    async def test_filters_from_positive_feedback(self, learning, feedback):
        await learning.record_feedback(feedback(year=2022))
        filters = await learning.generate_adaptive_filters("u1")
        assert [(f.type, f.action) for f in filters] == [
            (FilterType.AUTHOR, FilterAction.BOOST),
            (FilterType.JOURNAL, FilterAction.BOOST),
            (FilterType.YEAR, FilterAction.INCLUDE),
        ]
        assert filters[2].values == (2022, 2022)

    async def test_penalty_filters(self, learning, feedback):
        await learning.record_feedback(feedback(FeedbackAction.REJECTED))
        filters = await learning.generate_adaptive_filters("u1")
        assert (FilterType.AUTHOR, FilterAction.PENALIZE) in [(f.type, f.action) for f in filters]

    def test_evaluate_year_filter(self, make_ranked):
        include = AdaptiveFilter(FilterType.YEAR, FilterAction.INCLUDE, (2020, 2022), 0.5, 1.0)
        assert evaluate_filter(make_ranked(year=2021), include) == 1.0
        assert evaluate_filter(make_ranked(year=2010), include) == -1.0
        assert evaluate_filter(make_ranked(year=None), include) == 0.0

    def test_evaluate_penalty(self, make_ranked):
        penalty = AdaptiveFilter(FilterType.JOURNAL, FilterAction.PENALIZE, ("Nature",), 0.5, 1.0)
        assert evaluate_filter(make_ranked(journal="Nature"), penalty) == -1.0


class TestFeedbackRanking:
    async def test_no_history_unchanged(self, learning, make_ranked):
        results = [make_ranked("A", overall=0.6), make_ranked("B", overall=0.5)]
        assert await learning.apply_feedback_based_ranking("u1", results) == results

    async def test_preferred_paper_moves_up(self, learning, feedback, make_ranked):
        await learning.record_feedback(
            feedback(title="Protein folding dynamics", authors=("Fav, A.",), journal="Cell", year=2022)
        )
        results = [
            make_ranked("Unrelated survey", overall=0.52, authors=("Other, B.",), journal="Nature", year=2022),
            make_ranked("Protein folding kinetics", overall=0.5, authors=("Fav, A.",), journal="Cell", year=2022),
        ]

        reranked = await learning.apply_feedback_based_ranking("u1", results)

        assert [r.title for r in reranked] == ["Protein folding kinetics", "Unrelated survey"]
        assert [r.rank for r in reranked] == [1, 2]
        adjustments = reranked[0].learning_adjustments
        assert adjustments.author_boost == pytest.approx(0.3)
        assert adjustments.journal_boost == pytest.approx(0.2)
        assert adjustments.topic_boost > 0
        assert adjustments.original_overall_score == 0.5
        # quality 0.5 sits below the learned 0.55 threshold
        assert adjustments.quality_penalty == pytest.approx(0.045)
        assert reranked[0].quality_score == pytest.approx(0.35)

    async def test_rejected_author_penalized(self, learning, feedback, make_ranked):
        await learning.record_feedback(feedback(FeedbackAction.REJECTED, authors=("Bad, C.",)))
        [result] = await learning.apply_feedback_based_ranking(
            "u1", [make_ranked("Anything", overall=0.5, authors=("Bad, C.",))]
        )
        assert result.learning_adjustments.author_boost == pytest.approx(-0.4)
        assert result.overall_score < 0.5

    async def test_clear_user_learning_data(self, learning, feedback):
        await learning.record_feedback(feedback())
        assert await learning.has_feedback("u1")
        assert await learning.clear_user_learning_data("u1") == 1
        assert not await learning.has_feedback("u1")
