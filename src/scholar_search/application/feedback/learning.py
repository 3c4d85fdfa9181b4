"""
Feedback Learning System - personalize ranking from user feedback.

Preference patterns are rebuilt on demand by replaying a user's feedback
history (oldest first) with an exponential learning rate:

    topic[t]   += 0.1 · (±rating / 5)          clamped to [-1, 1]
    threshold  += 0.1 · (target - threshold)   clamped to [0.1, 0.9]

Accepted results (relevant and rated ≥ 4) add their authors and journal to
the preferred sets; rejected ones (not relevant or rated ≤ 2) add them to
the rejection patterns.

Re-ranking adds boosts/penalties on top of each result's overall score and
re-sorts. Entries are never added or removed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from typing_extensions import assert_never

from scholar_search.application.search.result_scorer import ScoringWeights, assign_ranks, result_topic_terms
from scholar_search.domain.entities import (
    AdaptiveFilter,
    FilterAction,
    FilterType,
    LearningAdjustments,
    LearningMetrics,
    RankedResult,
    UserFeedback,
    UserPreferencePattern,
)

from .store import FeedbackStore

logger = logging.getLogger(__name__)

LEARNING_RATE = 0.1
METRICS_WINDOW = timedelta(days=30)
DEFAULT_YEAR_START = 2010

# Recency caps on learned lists
_MAX_PREFERRED_AUTHORS = 50
_MAX_PREFERRED_JOURNALS = 30
_MAX_REJECTED_AUTHORS = 20
_MAX_REJECTED_JOURNALS = 10
_MAX_REJECTED_KEYWORDS = 30

# Weight of each boost in the adjusted overall score
_AUTHOR_WEIGHT = 0.2
_JOURNAL_WEIGHT = 0.15
_TOPIC_WEIGHT = 0.25
_FILTER_WEIGHT = 0.1
_LOW_QUALITY_FACTOR = 0.7


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _append_unique(items: list[str], value: str) -> None:
    if value and value not in items:
        items.append(value)


def is_positive(feedback: UserFeedback) -> bool:
    return feedback.relevant and feedback.effective_rating >= 4


def is_negative(feedback: UserFeedback) -> bool:
    return not feedback.relevant or feedback.effective_rating <= 2


def update_pattern(pattern: UserPreferencePattern, feedback: UserFeedback) -> UserPreferencePattern:
    """Fold one feedback event into a pattern (returns a new pattern)."""
    result = feedback.result
    rating = feedback.effective_rating

    preferred_authors = list(pattern.preferred_authors)
    preferred_journals = list(pattern.preferred_journals)
    if is_positive(feedback):
        for author in result.authors:
            _append_unique(preferred_authors, author)
        if result.journal:
            _append_unique(preferred_journals, result.journal)

    rejected_authors = list(pattern.rejected_authors)
    rejected_journals = list(pattern.rejected_journals)
    rejected_keywords = list(pattern.rejected_keywords)
    if is_negative(feedback):
        for author in result.authors:
            _append_unique(rejected_authors, author)
        if result.journal:
            _append_unique(rejected_journals, result.journal)
        for keyword in result.keywords:
            _append_unique(rejected_keywords, keyword.lower())

    topics = dict(pattern.topic_preferences)
    signal = rating / 5 if feedback.relevant else -(rating / 5)
    for topic in result_topic_terms(result):
        topics[topic] = _clamp(topics.get(topic, 0.0) + LEARNING_RATE * signal, -1.0, 1.0)

    quality_target = rating / 5
    relevance_target = 1.0 if feedback.relevant else 0.0
    quality_threshold = pattern.quality_threshold + LEARNING_RATE * (quality_target - pattern.quality_threshold)
    relevance_threshold = pattern.relevance_threshold + LEARNING_RATE * (
        relevance_target - pattern.relevance_threshold
    )

    return replace(
        pattern,
        preferred_authors=preferred_authors[-_MAX_PREFERRED_AUTHORS:],
        preferred_journals=preferred_journals[-_MAX_PREFERRED_JOURNALS:],
        topic_preferences=topics,
        quality_threshold=_clamp(quality_threshold, 0.1, 0.9),
        relevance_threshold=_clamp(relevance_threshold, 0.1, 0.9),
        rejected_authors=rejected_authors[-_MAX_REJECTED_AUTHORS:],
        rejected_journals=rejected_journals[-_MAX_REJECTED_JOURNALS:],
        rejected_keywords=rejected_keywords[-_MAX_REJECTED_KEYWORDS:],
        feedback_count=pattern.feedback_count + 1,
        last_updated=feedback.timestamp,
    )


def _ranges_from(accepted: Sequence[UserFeedback], default: UserPreferencePattern) -> dict[str, tuple[int, int]]:
    years = [f.result.year for f in accepted if f.result.year]
    citations = [f.result.citations for f in accepted if f.result.citations is not None]
    return {
        "preferred_year_range": (min(years), max(years)) if years else default.preferred_year_range,
        "preferred_citation_range": (
            (min(citations), max(citations)) if citations else default.preferred_citation_range
        ),
    }


# =============================================================================
# FeedbackLearningSystem
# =============================================================================


class FeedbackLearningSystem:
    """
    Learn per-user preferences from feedback and re-rank results with them.

    Usage:
        learning = FeedbackLearningSystem(InMemoryFeedbackStore())
        await learning.record_feedback(UserFeedback("u1", result, FeedbackAction.ADDED))
        ranked = await learning.apply_feedback_based_ranking("u1", ranked)
    """

    def __init__(
        self,
        store: FeedbackStore,
        *,
        weights: ScoringWeights | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._weights = weights or ScoringWeights()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def record_feedback(self, feedback: UserFeedback) -> None:
        await self._store.add(feedback)
        logger.info(f"Feedback recorded: {feedback.user_id} {feedback.action.value} -> {feedback.result_id}")

    async def has_feedback(self, user_id: str) -> bool:
        return bool(await self._store.list_for_user(user_id))

    async def get_user_pattern(self, user_id: str) -> UserPreferencePattern:
        """Rebuild the user's preference pattern from the stored history."""
        history = sorted(await self._store.list_for_user(user_id), key=lambda f: f.timestamp)
        pattern = UserPreferencePattern(
            user_id=user_id,
            preferred_year_range=(DEFAULT_YEAR_START, self._clock().year),
        )
        for feedback in history:
            pattern = update_pattern(pattern, feedback)

        accepted = [f for f in history if is_positive(f)]
        return replace(pattern, **_ranges_from(accepted, pattern))

    async def get_learning_metrics(self, user_id: str) -> LearningMetrics:
        """Aggregate the last 30 days of feedback."""
        cutoff = self._clock() - METRICS_WINDOW
        recent = [f for f in await self._store.list_for_user(user_id) if f.timestamp >= cutoff]
        if not recent:
            return LearningMetrics()

        total = len(recent)
        positive = sum(1 for f in recent if is_positive(f))
        negative = sum(1 for f in recent if is_negative(f))
        average = sum(f.effective_rating for f in recent) / total
        return LearningMetrics(
            total_feedback_count=total,
            positive_count=positive,
            negative_count=negative,
            average_rating=average,
            improvement_trend=0.1 if average > 3 else -0.1,
            confidence_level=min(1.0, total / 20) * (positive / total),
        )

    async def generate_adaptive_filters(self, user_id: str) -> list[AdaptiveFilter]:
        pattern = await self.get_user_pattern(user_id)
        confidence = (await self.get_learning_metrics(user_id)).confidence_level
        return self._filters_from(pattern, confidence)

    def _filters_from(self, pattern: UserPreferencePattern, confidence: float) -> list[AdaptiveFilter]:
        filters: list[AdaptiveFilter] = []
        if pattern.preferred_authors:
            filters.append(
                AdaptiveFilter(
                    FilterType.AUTHOR,
                    FilterAction.BOOST,
                    tuple(pattern.preferred_authors),
                    weight=min(0.8, confidence),
                    confidence=confidence,
                )
            )
        if pattern.preferred_journals:
            filters.append(
                AdaptiveFilter(
                    FilterType.JOURNAL,
                    FilterAction.BOOST,
                    tuple(pattern.preferred_journals),
                    weight=min(0.7, confidence),
                    confidence=confidence,
                )
            )
        start, end = pattern.preferred_year_range
        if start > DEFAULT_YEAR_START or end < self._clock().year:
            filters.append(AdaptiveFilter(FilterType.YEAR, FilterAction.INCLUDE, (start, end), 0.5, confidence))
        if pattern.rejected_authors:
            filters.append(
                AdaptiveFilter(FilterType.AUTHOR, FilterAction.PENALIZE, tuple(pattern.rejected_authors), 0.6, confidence)
            )
        if pattern.rejected_journals:
            filters.append(
                AdaptiveFilter(
                    FilterType.JOURNAL, FilterAction.PENALIZE, tuple(pattern.rejected_journals), 0.5, confidence
                )
            )
        return filters

    async def apply_feedback_based_ranking(self, user_id: str, results: Sequence[RankedResult]) -> list[RankedResult]:
        """
        Re-rank ``results`` for ``user_id``.

        Users without feedback get the input back unchanged. Otherwise every
        result carries ``learning_adjustments`` and ranks are renumbered.
        """
        history = await self._store.list_for_user(user_id)
        if not history or not results:
            return list(results)

        pattern = await self.get_user_pattern(user_id)
        filters = self._filters_from(pattern, (await self.get_learning_metrics(user_id)).confidence_level)

        adjusted = [self._adjust(result, pattern, filters) for result in results]
        reranked = assign_ranks(sorted(adjusted, key=lambda r: r.overall_score, reverse=True))
        logger.debug(f"Applied feedback ranking for {user_id}: {len(history)} events, {len(filters)} filters")
        return reranked

    def _adjust(
        self,
        result: RankedResult,
        pattern: UserPreferencePattern,
        filters: Sequence[AdaptiveFilter],
    ) -> RankedResult:
        author_boost = self.author_boost(result, pattern)
        journal_boost = self.journal_boost(result, pattern)
        topic_boost = self.topic_boost(result, pattern)
        filter_adjustment = self.filter_adjustment(result, filters)

        quality_penalty = 0.0
        quality = result.quality_score
        if quality < pattern.quality_threshold:
            quality_penalty = quality * (1 - _LOW_QUALITY_FACTOR) * self._weights.quality
            quality *= _LOW_QUALITY_FACTOR

        overall = (
            result.overall_score
            + author_boost * _AUTHOR_WEIGHT
            + journal_boost * _JOURNAL_WEIGHT
            + topic_boost * _TOPIC_WEIGHT
            + filter_adjustment * _FILTER_WEIGHT
            - quality_penalty
        )
        return replace(
            result,
            quality_score=quality,
            overall_score=_clamp(overall, 0.0, 1.0),
            learning_adjustments=LearningAdjustments(
                author_boost=author_boost,
                journal_boost=journal_boost,
                topic_boost=topic_boost,
                filter_adjustment=filter_adjustment,
                quality_penalty=quality_penalty,
                original_overall_score=result.overall_score,
            ),
        )

    # ── Boosts ───────────────────────────────────────────────────────

    @staticmethod
    def author_boost(result: RankedResult, pattern: UserPreferencePattern) -> float:
        boost = 0.0
        for author in result.authors:
            if author in pattern.preferred_authors:
                boost += 0.3
            if author in pattern.rejected_authors:
                boost -= 0.4
        return _clamp(boost, -0.5, 0.5)

    @staticmethod
    def journal_boost(result: RankedResult, pattern: UserPreferencePattern) -> float:
        if not result.journal:
            return 0.0
        if result.journal in pattern.preferred_journals:
            return 0.2
        if result.journal in pattern.rejected_journals:
            return -0.3
        return 0.0

    @staticmethod
    def topic_boost(result: RankedResult, pattern: UserPreferencePattern) -> float:
        text = f"{result.title} {result.journal or ''}".lower()
        boost = sum(weight * 0.2 for topic, weight in pattern.topic_preferences.items() if topic.lower() in text)
        return _clamp(boost, -0.3, 0.3)

    @staticmethod
    def filter_adjustment(result: RankedResult, filters: Sequence[AdaptiveFilter]) -> float:
        adjustment = sum(evaluate_filter(result, f) * f.weight * f.confidence for f in filters)
        return _clamp(adjustment, -0.2, 0.2)

    async def clear_user_learning_data(self, user_id: str) -> int:
        """Forget everything learned about ``user_id``."""
        removed = await self._store.clear_user(user_id)
        logger.info(f"Learning data cleared for user: {user_id}")
        return removed


def evaluate_filter(result: RankedResult, adaptive: AdaptiveFilter) -> float:
    """+1 when a boost/include filter matches, -1 for a penalty match, else 0."""
    sign = 1.0 if adaptive.action in (FilterAction.BOOST, FilterAction.INCLUDE) else -1.0
    kind = adaptive.type
    if kind is FilterType.AUTHOR:
        return sign if any(a in adaptive.values for a in result.authors) else 0.0
    if kind is FilterType.JOURNAL:
        return sign if result.journal and result.journal in adaptive.values else 0.0
    if kind is FilterType.YEAR:
        if not result.year:
            return 0.0
        start, end = adaptive.values
        if start <= result.year <= end:
            return 1.0
        return -1.0 if adaptive.action is FilterAction.INCLUDE else 0.0
    if kind is FilterType.CITATION or kind is FilterType.TOPIC:
        return 0.0
    assert_never(kind)
