"""
Domain Layer - Core Data Model

Contains:
- entities: content, queries, results, feedback and optimizer state
"""

from .entities import (
    ExtractedContent,
    RankedResult,
    ScholarSearchResult,
    SearchFilters,
    SearchQuery,
    UserFeedback,
    UserPreferencePattern,
)

__all__ = [
    "ExtractedContent",
    "SearchQuery",
    "SearchFilters",
    "ScholarSearchResult",
    "RankedResult",
    "UserFeedback",
    "UserPreferencePattern",
]
