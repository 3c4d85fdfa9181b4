"""
Query Entities - Generated Queries and Refinement Analysis

Key Entities:
    - SearchQuery: a query string plus the content it came from
    - QueryOptimization: breadth/specificity/academic scores for a query
    - QueryRefinement: breadth analysis, alternative terms, validation,
      recommendations and refined variants for an existing query

All entities are immutable; refinement produces new values rather than
editing a ``SearchQuery``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .content import ExtractedContent


class QueryType(Enum):
    BASIC = "basic"
    COMBINED = "combined"


class CombineStrategy(Enum):
    """How keywords/topics from several sources are merged."""

    UNION = "union"
    INTERSECTION = "intersection"
    WEIGHTED = "weighted"


@dataclass(frozen=True)
class QueryGenerationOptions:
    """
    Knobs for query generation.

    ``max_keywords``/``max_topics`` default to 8/5 for a single source and
    10/6 for a combined query when left as ``None``.
    """

    max_keywords: int | None = None
    max_topics: int | None = None
    include_alternatives: bool = False
    optimize_for_academic: bool = True
    combine_strategy: CombineStrategy = CombineStrategy.WEIGHTED

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> QueryGenerationOptions:
        if not data:
            return cls()
        strategy = data.get("combineStrategy", data.get("combine_strategy", "weighted"))
        return cls(
            max_keywords=data.get("maxKeywords", data.get("max_keywords")),
            max_topics=data.get("maxTopics", data.get("max_topics")),
            include_alternatives=bool(data.get("includeAlternatives", data.get("include_alternatives", False))),
            optimize_for_academic=bool(data.get("optimizeForAcademic", data.get("optimize_for_academic", True))),
            combine_strategy=CombineStrategy(strategy),
        )

    def cache_key_dict(self) -> dict[str, Any]:
        return {
            "max_keywords": self.max_keywords,
            "max_topics": self.max_topics,
            "include_alternatives": self.include_alternatives,
            "optimize_for_academic": self.optimize_for_academic,
            "combine_strategy": self.combine_strategy.value,
        }


@dataclass(frozen=True)
class QueryOptimization:
    breadth_score: float
    specificity_score: float
    academic_relevance: float
    suggestions: tuple[str, ...] = ()
    alternative_queries: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "breadthScore": self.breadth_score,
            "specificityScore": self.specificity_score,
            "academicRelevance": self.academic_relevance,
            "suggestions": list(self.suggestions),
            "alternativeQueries": list(self.alternative_queries),
        }


@dataclass(frozen=True)
class SearchQuery:
    """A generated search query. Never mutated after creation."""

    id: str
    query: str
    original_content: tuple[ExtractedContent, ...]
    query_type: QueryType
    confidence: float
    keywords: tuple[str, ...]
    topics: tuple[str, ...]
    optimization: QueryOptimization
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "queryType": self.query_type.value,
            "confidence": self.confidence,
            "keywords": list(self.keywords),
            "topics": list(self.topics),
            "sourceIds": [c.source_id for c in self.original_content],
            "optimization": self.optimization.to_dict(),
            "generatedAt": self.generated_at.isoformat(),
        }


# =============================================================================
# Breadth analysis
# =============================================================================


class BreadthClassification(Enum):
    TOO_NARROW = "too_narrow"
    OPTIMAL = "optimal"
    TOO_BROAD = "too_broad"


class SpecificityLevel(Enum):
    VERY_SPECIFIC = "very_specific"
    SPECIFIC = "specific"
    MODERATE = "moderate"
    BROAD = "broad"
    VERY_BROAD = "very_broad"


class Impact(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class BreadthSuggestion:
    type: str  # broaden | narrow | refocus
    suggestion: str
    reasoning: str
    impact: Impact


@dataclass(frozen=True)
class BreadthAnalysis:
    breadth_score: float
    classification: BreadthClassification
    reasoning: str
    term_count: int
    specificity_level: SpecificityLevel
    suggestions: tuple[BreadthSuggestion, ...] = ()


# =============================================================================
# Alternative terms
# =============================================================================


class TermCategory(Enum):
    SYNONYM = "synonym"
    RELATED = "related"
    BROADER = "broader"
    NARROWER = "narrower"
    ACADEMIC = "academic"


@dataclass(frozen=True)
class TermSuggestion:
    term: str
    confidence: float
    reasoning: str
    category: TermCategory
    original_term: str | None = None


@dataclass(frozen=True)
class AlternativeTerms:
    synonyms: tuple[TermSuggestion, ...] = ()
    related_terms: tuple[TermSuggestion, ...] = ()
    broader_terms: tuple[TermSuggestion, ...] = ()
    narrower_terms: tuple[TermSuggestion, ...] = ()
    academic_variants: tuple[TermSuggestion, ...] = ()


# =============================================================================
# Validation, recommendations and refined variants
# =============================================================================


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    issues: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()
    confidence: float = 1.0


class RecommendationType(Enum):
    ADD_TERM = "add_term"
    REMOVE_TERM = "remove_term"
    REPLACE_TERM = "replace_term"
    ADD_OPERATOR = "add_operator"
    RESTRUCTURE = "restructure"


@dataclass(frozen=True)
class OptimizationRecommendation:
    """A suggested edit; lower ``priority`` means more important."""

    type: RecommendationType
    description: str
    impact: Impact
    priority: int
    before_query: str
    after_query: str
    reasoning: str


class RefinementType(Enum):
    BROADENED = "broadened"
    NARROWED = "narrowed"
    ACADEMIC_ENHANCED = "academic_enhanced"
    OPERATOR_OPTIMIZED = "operator_optimized"


class ExpectedResults(Enum):
    FEWER = "fewer"
    SIMILAR = "similar"
    MORE = "more"


class ChangeType(Enum):
    ADDED = "added"
    REMOVED = "removed"
    REPLACED = "replaced"
    REORDERED = "reordered"


@dataclass(frozen=True)
class QueryChange:
    type: ChangeType
    element: str
    reasoning: str


@dataclass(frozen=True)
class RefinedQuery:
    query: str
    refinement_type: RefinementType
    confidence: float
    expected_results: ExpectedResults
    description: str
    changes: tuple[QueryChange, ...] = ()


@dataclass(frozen=True)
class QueryRefinement:
    breadth_analysis: BreadthAnalysis
    alternative_terms: AlternativeTerms
    validation_results: ValidationResult
    optimization_recommendations: tuple[OptimizationRecommendation, ...]
    refined_queries: tuple[RefinedQuery, ...]
