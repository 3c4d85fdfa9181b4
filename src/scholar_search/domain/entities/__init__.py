"""
Domain Entities

Core data objects for literature discovery.
"""

from __future__ import annotations

from .content import ContentReference, ExtractedContent, SourceType
from .feedback import (
    AdaptiveFilter,
    FeedbackAction,
    FilterAction,
    FilterType,
    LearningMetrics,
    UserFeedback,
    UserPreferencePattern,
)
from .filters import DateRange, FilterValidation, SearchFilters, SortBy
from .loading import BatchResult, ProgressiveLoadingState
from .query import (
    AlternativeTerms,
    BreadthAnalysis,
    BreadthClassification,
    BreadthSuggestion,
    ChangeType,
    CombineStrategy,
    ExpectedResults,
    Impact,
    OptimizationRecommendation,
    QueryChange,
    QueryGenerationOptions,
    QueryOptimization,
    QueryRefinement,
    QueryType,
    RecommendationType,
    RefinedQuery,
    RefinementType,
    SearchQuery,
    SpecificityLevel,
    TermCategory,
    TermSuggestion,
    ValidationResult,
)
from .result import (
    DuplicateGroup,
    LearningAdjustments,
    MatchType,
    RankedResult,
    ScholarSearchResult,
    ScoringBreakdown,
)
from .tasks import (
    BackgroundTask,
    ContentExtractionTask,
    QueryGenerationTask,
    SearchPreloadTask,
    TaskPayload,
    TaskPriority,
    TaskStatus,
)

__all__ = [
    # Content
    "SourceType",
    "ContentReference",
    "ExtractedContent",
    # Filters
    "SortBy",
    "DateRange",
    "SearchFilters",
    "FilterValidation",
    # Queries
    "QueryType",
    "CombineStrategy",
    "QueryGenerationOptions",
    "QueryOptimization",
    "SearchQuery",
    "BreadthClassification",
    "SpecificityLevel",
    "Impact",
    "BreadthSuggestion",
    "BreadthAnalysis",
    "TermCategory",
    "TermSuggestion",
    "AlternativeTerms",
    "ValidationResult",
    "RecommendationType",
    "OptimizationRecommendation",
    "RefinementType",
    "ExpectedResults",
    "ChangeType",
    "QueryChange",
    "RefinedQuery",
    "QueryRefinement",
    # Results
    "ScholarSearchResult",
    "ScoringBreakdown",
    "LearningAdjustments",
    "RankedResult",
    "MatchType",
    "DuplicateGroup",
    # Feedback
    "FeedbackAction",
    "UserFeedback",
    "UserPreferencePattern",
    "FilterType",
    "FilterAction",
    "AdaptiveFilter",
    "LearningMetrics",
    # Optimizer
    "TaskPriority",
    "TaskStatus",
    "ContentExtractionTask",
    "QueryGenerationTask",
    "SearchPreloadTask",
    "TaskPayload",
    "BackgroundTask",
    "ProgressiveLoadingState",
    "BatchResult",
]
