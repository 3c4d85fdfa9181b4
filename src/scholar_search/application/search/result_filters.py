"""
Local result filters.

Applied to parsed results after the search and before scoring:

    date_range → authors → journals → min_citations → sort_by → max_results

Author and journal filters are case-insensitive substring matches; a
result passes when it matches any of the requested values.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from typing_extensions import assert_never

from scholar_search.domain.entities import FilterValidation, ScholarSearchResult, SearchFilters, SortBy

from .result_scorer import ResultScorer

R = TypeVar("R", bound=ScholarSearchResult)

MAX_RESULTS_LIMIT = 100


def validate_filters(filters: SearchFilters) -> FilterValidation:
    errors: list[str] = []
    if filters.date_range is not None:
        if filters.date_range.start > filters.date_range.end:
            errors.append(
                f"Date range start ({filters.date_range.start}) is after end ({filters.date_range.end})"
            )
        if filters.date_range.start < 1000:
            errors.append(f"Date range start ({filters.date_range.start}) is not a valid year")
    if filters.min_citations is not None and filters.min_citations < 0:
        errors.append("min_citations must be non-negative")
    if not 1 <= filters.max_results <= MAX_RESULTS_LIMIT:
        errors.append(f"max_results must be between 1 and {MAX_RESULTS_LIMIT}")
    if any(not a.strip() for a in filters.authors):
        errors.append("Author filters must not be empty")
    if any(not j.strip() for j in filters.journals):
        errors.append("Journal filters must not be empty")
    return FilterValidation(is_valid=not errors, errors=errors)


def matches_filters(result: ScholarSearchResult, filters: SearchFilters) -> bool:
    if filters.date_range is not None and not filters.date_range.contains(result.year):
        return False

    if filters.authors:
        names = [a.lower() for a in result.authors]
        wanted = [a.lower() for a in filters.authors]
        if not any(w in name for w in wanted for name in names):
            return False

    if filters.journals:
        journal = (result.journal or "").lower()
        if not journal or not any(j.lower() in journal for j in filters.journals):
            return False

    return filters.min_citations is None or (result.citations or 0) >= filters.min_citations


def sort_results(results: Sequence[R], sort_by: SortBy) -> list[R]:
    """Stable sort; ``relevance`` keeps the index's own order."""
    if sort_by is SortBy.RELEVANCE:
        return list(results)
    if sort_by is SortBy.DATE:
        return sorted(results, key=lambda r: r.year or 0, reverse=True)
    if sort_by is SortBy.CITATIONS:
        return sorted(results, key=lambda r: r.citations or 0, reverse=True)
    if sort_by is SortBy.QUALITY:
        scorer = ResultScorer()
        return sorted(results, key=scorer.score_quality, reverse=True)
    assert_never(sort_by)


def apply_filters(results: Sequence[R], filters: SearchFilters) -> list[R]:
    kept = [r for r in results if matches_filters(r, filters)]
    return sort_results(kept, filters.sort_by)[: filters.max_results]
