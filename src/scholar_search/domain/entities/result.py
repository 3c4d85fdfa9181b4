"""
Search Result Entities

``ScholarSearchResult`` is one candidate paper exactly as parsed from the
external index. ``RankedResult`` extends it with the scores computed by the
scoring engine and a 1-based rank. Both are immutable; stages that reorder
or adjust scores return new instances via ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class ScholarSearchResult:
    """A single candidate paper returned by the scholarly index."""

    title: str
    authors: tuple[str, ...] = ()
    journal: str | None = None
    year: int | None = None
    citations: int | None = None
    doi: str | None = None
    url: str | None = None
    abstract: str | None = None
    keywords: tuple[str, ...] = ()
    confidence: float = 0.5
    relevance_score: float = 0.5

    def __post_init__(self) -> None:
        object.__setattr__(self, "authors", tuple(self.authors))
        object.__setattr__(self, "keywords", tuple(self.keywords))

    @property
    def publication_date(self) -> str | None:
        return str(self.year) if self.year else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "authors": list(self.authors),
            "journal": self.journal,
            "year": self.year,
            "citations": self.citations,
            "citation_count": self.citations,
            "publication_date": self.publication_date,
            "doi": self.doi,
            "url": self.url,
            "abstract": self.abstract,
            "keywords": list(self.keywords),
            "confidence": self.confidence,
            "relevance_score": self.relevance_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScholarSearchResult:
        return cls(
            title=data.get("title", ""),
            authors=tuple(data.get("authors") or ()),
            journal=data.get("journal"),
            year=data.get("year"),
            citations=data.get("citations", data.get("citation_count")),
            doi=data.get("doi"),
            url=data.get("url"),
            abstract=data.get("abstract"),
            keywords=tuple(data.get("keywords") or ()),
            confidence=float(data.get("confidence", 0.5)),
            relevance_score=float(data.get("relevance_score", 0.5)),
        )


@dataclass(frozen=True)
class ScoringBreakdown:
    """Every sub-metric that fed into the three sub-scores."""

    text_similarity: float = 0.0
    keyword_match: float = 0.0
    topic_overlap: float = 0.0
    semantic_similarity: float = 0.0
    citation_score: float = 0.0
    recency_score: float = 0.0
    author_authority: float = 0.0
    journal_quality: float = 0.0
    completeness_score: float = 0.0
    metadata_completeness: float = 0.0
    source_reliability: float = 0.0
    extraction_quality: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {key: round(value, 4) for key, value in asdict(self).items()}


@dataclass(frozen=True)
class LearningAdjustments:
    """Record of how feedback learning changed a result's score."""

    author_boost: float = 0.0
    journal_boost: float = 0.0
    topic_boost: float = 0.0
    filter_adjustment: float = 0.0
    quality_penalty: float = 0.0
    original_overall_score: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class RankedResult(ScholarSearchResult):
    """A scored result with a 1-based rank (0 until ranked)."""

    relevance_score_computed: float = 0.0
    quality_score: float = 0.0
    confidence_score: float = 0.0
    overall_score: float = 0.0
    rank: int = 0
    scoring_breakdown: ScoringBreakdown = field(default_factory=ScoringBreakdown)
    learning_adjustments: LearningAdjustments | None = None

    @property
    def base(self) -> ScholarSearchResult:
        """The underlying raw result without scores."""
        return ScholarSearchResult(
            title=self.title,
            authors=self.authors,
            journal=self.journal,
            year=self.year,
            citations=self.citations,
            doi=self.doi,
            url=self.url,
            abstract=self.abstract,
            keywords=self.keywords,
            confidence=self.confidence,
            relevance_score=self.relevance_score,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "relevanceScore": round(self.relevance_score_computed, 4),
                "qualityScore": round(self.quality_score, 4),
                "confidenceScore": round(self.confidence_score, 4),
                "overallScore": round(self.overall_score, 4),
                "rank": self.rank,
                "scoringBreakdown": self.scoring_breakdown.to_dict(),
            }
        )
        if self.learning_adjustments is not None:
            result["learningAdjustments"] = self.learning_adjustments.to_dict()
        return result


class MatchType(Enum):
    DOI = "doi"
    URL = "url"
    TITLE_AUTHOR = "title_author"
    FUZZY = "fuzzy"


@dataclass
class DuplicateGroup:
    """A set of results judged to describe the same paper."""

    primary: ScholarSearchResult
    duplicates: list[ScholarSearchResult]
    match_type: MatchType
    confidence: float
    merged: ScholarSearchResult | None = None
    conflicting_fields: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return 1 + len(self.duplicates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "primaryTitle": self.primary.title,
            "duplicateTitles": [d.title for d in self.duplicates],
            "matchType": self.match_type.value,
            "confidence": round(self.confidence, 3),
            "size": self.size,
            "conflictingFields": list(self.conflicting_fields),
        }
