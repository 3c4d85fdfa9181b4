"""
Feedback Entities - User Actions and Learned Preferences

``UserFeedback`` events are the durable history; ``UserPreferencePattern``
is derived from them on demand and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .result import ScholarSearchResult


class FeedbackAction(Enum):
    VIEWED = "viewed"
    ADDED = "added"
    REJECTED = "rejected"
    BOOKMARKED = "bookmarked"
    IGNORED = "ignored"


# (implicit rating, relevant) used when the user gave no explicit rating
IMPLICIT_RATINGS: dict[FeedbackAction, tuple[int, bool]] = {
    FeedbackAction.ADDED: (5, True),
    FeedbackAction.BOOKMARKED: (4, True),
    FeedbackAction.VIEWED: (3, True),
    FeedbackAction.IGNORED: (2, False),
    FeedbackAction.REJECTED: (1, False),
}


@dataclass(frozen=True)
class UserFeedback:
    """One user action on one search result."""

    user_id: str
    result: ScholarSearchResult
    action: FeedbackAction
    session_id: str | None = None
    query: str | None = None
    rating: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.rating is not None and not 1 <= self.rating <= 5:
            raise ValueError(f"rating must be between 1 and 5, got {self.rating}")

    @property
    def effective_rating(self) -> int:
        if self.rating is not None:
            return self.rating
        return IMPLICIT_RATINGS[self.action][0]

    @property
    def relevant(self) -> bool:
        return IMPLICIT_RATINGS[self.action][1]

    @property
    def result_id(self) -> str:
        return self.result.doi or self.result.url or self.result.title.lower()


@dataclass
class UserPreferencePattern:
    """Per-user statistical profile learned from feedback."""

    user_id: str
    preferred_authors: list[str] = field(default_factory=list)
    preferred_journals: list[str] = field(default_factory=list)
    preferred_year_range: tuple[int, int] = (2010, datetime.now().year)
    preferred_citation_range: tuple[int, int] = (0, 10000)
    topic_preferences: dict[str, float] = field(default_factory=dict)
    quality_threshold: float = 0.5
    relevance_threshold: float = 0.5
    rejected_authors: list[str] = field(default_factory=list)
    rejected_journals: list[str] = field(default_factory=list)
    rejected_keywords: list[str] = field(default_factory=list)
    feedback_count: int = 0
    last_updated: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "preferredAuthors": list(self.preferred_authors),
            "preferredJournals": list(self.preferred_journals),
            "preferredYearRange": {"start": self.preferred_year_range[0], "end": self.preferred_year_range[1]},
            "preferredCitationRange": {
                "min": self.preferred_citation_range[0],
                "max": self.preferred_citation_range[1],
            },
            "topicPreferences": dict(self.topic_preferences),
            "qualityThreshold": self.quality_threshold,
            "relevanceThreshold": self.relevance_threshold,
            "rejectionPatterns": {
                "authors": list(self.rejected_authors),
                "journals": list(self.rejected_journals),
                "keywords": list(self.rejected_keywords),
            },
            "feedbackCount": self.feedback_count,
        }


class FilterType(Enum):
    AUTHOR = "author"
    JOURNAL = "journal"
    YEAR = "year"
    CITATION = "citation"
    TOPIC = "topic"


class FilterAction(Enum):
    BOOST = "boost"
    PENALIZE = "penalize"
    INCLUDE = "include"
    EXCLUDE = "exclude"


@dataclass(frozen=True)
class AdaptiveFilter:
    type: FilterType
    action: FilterAction
    values: tuple[Any, ...]
    weight: float
    confidence: float


@dataclass(frozen=True)
class LearningMetrics:
    total_feedback_count: int = 0
    positive_count: int = 0
    negative_count: int = 0
    average_rating: float = 0.0
    improvement_trend: float = 0.0
    confidence_level: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFeedbackCount": self.total_feedback_count,
            "positiveCount": self.positive_count,
            "negativeCount": self.negative_count,
            "averageRating": round(self.average_rating, 3),
            "improvementTrend": self.improvement_trend,
            "confidenceLevel": round(self.confidence_level, 3),
        }
