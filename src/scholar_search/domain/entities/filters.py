"""
Search Filter Entities

Filters travel with a search request. ``date_range``, ``sort_by`` and
``max_results`` are forwarded to the scholarly index; ``authors``,
``journals`` and ``min_citations`` are applied locally to parsed results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SortBy(Enum):
    """Result ordering requested by the caller."""

    RELEVANCE = "relevance"
    DATE = "date"
    CITATIONS = "citations"
    QUALITY = "quality"


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive publication-year range."""

    start: int
    end: int

    def contains(self, year: int | None) -> bool:
        return year is not None and self.start <= year <= self.end


@dataclass(frozen=True)
class SearchFilters:
    """Caller-supplied search constraints."""

    date_range: DateRange | None = None
    authors: tuple[str, ...] = ()
    journals: tuple[str, ...] = ()
    min_citations: int | None = None
    max_results: int = 20
    sort_by: SortBy = SortBy.RELEVANCE

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SearchFilters:
        """Build filters from a request dict (camelCase keys accepted)."""
        if not data:
            return cls()
        date_range = data.get("dateRange") or data.get("date_range")
        return cls(
            date_range=DateRange(int(date_range["start"]), int(date_range["end"])) if date_range else None,
            authors=tuple(data.get("authors") or ()),
            journals=tuple(data.get("journals") or ()),
            min_citations=data.get("minCitations", data.get("min_citations")),
            max_results=int(data.get("maxResults", data.get("max_results", 20))),
            sort_by=SortBy(data.get("sortBy", data.get("sort_by", "relevance"))),
        )

    def cache_key_dict(self) -> dict[str, Any]:
        """Stable, JSON-serializable form used for cache keys."""
        return {
            "date_range": [self.date_range.start, self.date_range.end] if self.date_range else None,
            "authors": sorted(a.lower() for a in self.authors),
            "journals": sorted(j.lower() for j in self.journals),
            "min_citations": self.min_citations,
            "max_results": self.max_results,
            "sort_by": self.sort_by.value,
        }

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "maxResults": self.max_results,
            "sortBy": self.sort_by.value,
        }
        if self.date_range:
            result["dateRange"] = {"start": self.date_range.start, "end": self.date_range.end}
        if self.authors:
            result["authors"] = list(self.authors)
        if self.journals:
            result["journals"] = list(self.journals)
        if self.min_citations is not None:
            result["minCitations"] = self.min_citations
        return result


@dataclass
class FilterValidation:
    """Outcome of ``validate_filters``."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
