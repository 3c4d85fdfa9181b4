"""
Search Application Layer - query generation, scoring and deduplication.

Components:
- QueryGenerator: content → SearchQuery (basic / combined)
- QueryRefiner: breadth analysis, alternative terms, refined variants
- ResultScorer: relevance / quality / confidence ranking
- DuplicateDetector: DOI / URL / title-author / fuzzy grouping and merging
- apply_filters / validate_filters: local result filters
"""

from .duplicate_detector import (
    DuplicateDetectionOptions,
    DuplicateDetector,
    DuplicateMatch,
    MergeStrategy,
)
from .query_generator import QueryGenerator, generate_query_id
from .query_refiner import QueryRefiner, extract_query_terms, validate_query
from .result_filters import apply_filters, matches_filters, sort_results, validate_filters
from .result_scorer import ResultScorer, ScoringWeights, assign_ranks, normalize_text

__all__ = [
    # Query generation
    "QueryGenerator",
    "QueryRefiner",
    "generate_query_id",
    "extract_query_terms",
    "validate_query",
    # Scoring
    "ResultScorer",
    "ScoringWeights",
    "assign_ranks",
    "normalize_text",
    # Duplicates
    "DuplicateDetector",
    "DuplicateDetectionOptions",
    "DuplicateMatch",
    "MergeStrategy",
    # Filters
    "apply_filters",
    "matches_filters",
    "sort_results",
    "validate_filters",
]
