"""
Duplicate Detection - collapse results that describe the same paper.

Pairs are compared in decreasing order of certainty:

    1. DOI          normalized DOI equality              confidence 1.0
    2. URL          normalized URL equality              confidence 0.95
    3. title_author title ≥ 0.85 and authors ≥ 0.8       mean of both
    4. fuzzy        title/author/year/journal blend ≥ 0.8

Matches are grouped transitively with Union-Find. Within a group the
member with the highest overall score is the primary; the output list
keeps every primary at its original position and drops the rest.

Merge strategies:
    - keep_highest_quality: best DOI, max citations, longest abstract,
      author/keyword union, averaged confidence
    - keep_most_complete: fields taken from the most complete member first
    - manual_review: groups are reported, nothing is merged or removed
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from scholar_search.domain.entities import DuplicateGroup, MatchType, RankedResult, ScholarSearchResult

from .result_scorer import ResultScorer, normalize_text

R = TypeVar("R", bound=ScholarSearchResult)

logger = logging.getLogger(__name__)

_DOI_PREFIX = re.compile(r"^https?://(dx\.)?doi\.org/")
_DOI_PATTERN = re.compile(r"^10\.\d{4,}/\S+$")
_URL_SCHEME = re.compile(r"^https?://")

FUZZY_THRESHOLD = 0.8


class MergeStrategy(Enum):
    KEEP_HIGHEST_QUALITY = "keep_highest_quality"
    KEEP_MOST_COMPLETE = "keep_most_complete"
    MANUAL_REVIEW = "manual_review"


@dataclass(frozen=True)
class DuplicateDetectionOptions:
    title_similarity_threshold: float = 0.85
    author_similarity_threshold: float = 0.8
    enable_fuzzy_matching: bool = True
    merge_strategy: MergeStrategy = MergeStrategy.KEEP_HIGHEST_QUALITY

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DuplicateDetectionOptions:
        return cls(
            title_similarity_threshold=float(data.get("title_similarity_threshold", 0.85)),
            author_similarity_threshold=float(data.get("author_similarity_threshold", 0.8)),
            enable_fuzzy_matching=bool(data.get("enable_fuzzy_matching", True)),
            merge_strategy=MergeStrategy(data.get("merge_strategy", MergeStrategy.KEEP_HIGHEST_QUALITY.value)),
        )


@dataclass(frozen=True)
class DuplicateMatch:
    match_type: MatchType
    confidence: float


# =============================================================================
# Union-Find
# =============================================================================


class UnionFind:
    """Disjoint-set with path compression and union by rank."""

    def __init__(self, n: int):
        self.parent = list(range(n))
        self.rank = [0] * n

    def find(self, x: int) -> int:
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, x: int, y: int) -> bool:
        px, py = self.find(x), self.find(y)
        if px == py:
            return False
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True

    def groups(self) -> list[list[int]]:
        """Groups ordered by their first member; members in index order."""
        by_root: dict[int, list[int]] = {}
        for i in range(len(self.parent)):
            by_root.setdefault(self.find(i), []).append(i)
        return sorted(by_root.values(), key=lambda members: members[0])


# =============================================================================
# Similarity
# =============================================================================


def normalize_doi(doi: str) -> str:
    return _DOI_PREFIX.sub("", doi.lower()).removeprefix("doi:").strip()


def normalize_url(url: str) -> str:
    url = _URL_SCHEME.sub("", url.lower())
    return url.removesuffix("/").replace("www.", "", 1)


def is_valid_doi(doi: str) -> bool:
    return bool(_DOI_PATTERN.match(normalize_doi(doi)))


def edit_distance(a: str, b: str) -> int:
    """Levenshtein edit distance between two strings."""
    if len(a) > len(b):
        a, b = b, a
    distances: list[int] = list(range(len(a) + 1))
    for j, ch_b in enumerate(b):
        new_distances = [j + 1]
        for i, ch_a in enumerate(a):
            if ch_a == ch_b:
                new_distances.append(distances[i])
            else:
                new_distances.append(1 + min(distances[i], distances[i + 1], new_distances[-1]))
        distances = new_distances
    return distances[-1]


def string_similarity(a: str, b: str) -> float:
    """1 - edit_distance / len(longer)."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longer = max(len(a), len(b))
    return (longer - edit_distance(a, b)) / longer


def title_similarity(a: str, b: str) -> float:
    return string_similarity(normalize_text(a), normalize_text(b))


def author_similarity(a: Sequence[str], b: Sequence[str]) -> float:
    """Jaccard over normalized names; 1.0 if both empty, 0.5 if only one is."""
    if not a or not b:
        return 1.0 if len(a) == len(b) else 0.5
    set_a = {normalize_text(name) for name in a}
    set_b = {normalize_text(name) for name in b}
    return len(set_a & set_b) / len(set_a | set_b)


def fuzzy_score(a: ScholarSearchResult, b: ScholarSearchResult) -> float:
    year_sim = 1.0
    if a.year and b.year:
        year_sim = max(0.0, 1 - abs(a.year - b.year) / 5)
    journal_sim = 0.5
    if a.journal and b.journal:
        journal_sim = string_similarity(a.journal.lower(), b.journal.lower())
    return (
        title_similarity(a.title, b.title) * 0.4
        + author_similarity(a.authors, b.authors) * 0.3
        + year_sim * 0.2
        + journal_sim * 0.1
    )


def merge_authors(author_lists: Sequence[Sequence[str]]) -> tuple[str, ...]:
    """Union in first-seen order, comparing normalized names."""
    merged: dict[str, str] = {}
    for authors in author_lists:
        for author in authors:
            if author and author.strip():
                merged.setdefault(normalize_text(author), author)
    return tuple(merged.values())


def select_best_year(years: Sequence[int], current_year: int | None = None) -> int:
    """Most common plausible year; ties resolve to the latest."""
    limit = (current_year or datetime.now().year) + 1
    valid = [y for y in years if 1900 <= y <= limit]
    if not valid:
        return years[0]
    counts = Counter(valid)
    top = max(counts.values())
    return max(year for year, count in counts.items() if count == top)


def _overall(result: ScholarSearchResult) -> float:
    return result.overall_score if isinstance(result, RankedResult) else 0.0


# =============================================================================
# DuplicateDetector
# =============================================================================


class DuplicateDetector:
    """
    Detect and merge duplicate search results.

    Usage:
        detector = DuplicateDetector()
        unique, groups = detector.deduplicate(ranked)
    """

    _CONFLICT_FIELDS = ("title", "authors", "journal", "year", "doi", "url", "abstract", "citations")

    def __init__(self, options: DuplicateDetectionOptions | None = None):
        self.options = options or DuplicateDetectionOptions()

    def compare(self, a: ScholarSearchResult, b: ScholarSearchResult) -> DuplicateMatch | None:
        """Return how two results match, or None if they are distinct."""
        if a.doi and b.doi and normalize_doi(a.doi) == normalize_doi(b.doi):
            return DuplicateMatch(MatchType.DOI, 1.0)

        if a.url and b.url and normalize_url(a.url) == normalize_url(b.url):
            return DuplicateMatch(MatchType.URL, 0.95)

        title_sim = title_similarity(a.title, b.title)
        author_sim = author_similarity(a.authors, b.authors)
        if (
            title_sim >= self.options.title_similarity_threshold
            and author_sim >= self.options.author_similarity_threshold
        ):
            return DuplicateMatch(MatchType.TITLE_AUTHOR, (title_sim + author_sim) / 2)

        if self.options.enable_fuzzy_matching:
            score = fuzzy_score(a, b)
            if score >= FUZZY_THRESHOLD:
                return DuplicateMatch(MatchType.FUZZY, score)
        return None

    def detect_duplicates(self, results: Sequence[R]) -> list[DuplicateGroup]:
        """Find duplicate groups; results with no match form no group."""
        return [group for group, _, _ in self._grouped(results)]

    def deduplicate(self, results: Sequence[R]) -> tuple[list[R], list[DuplicateGroup]]:
        """
        Remove duplicates, keeping each group's primary in its original slot.

        Returns:
            (deduplicated results, detected groups). With ``manual_review``
            the input is returned unchanged alongside the groups.
        """
        grouped = self._grouped(results)
        groups = [group for group, _, _ in grouped]
        if not groups or self.options.merge_strategy is MergeStrategy.MANUAL_REVIEW:
            return list(results), groups

        replacements: dict[int, R] = {}
        dropped: set[int] = set()
        for group, primary_index, members in grouped:
            group.merged = self.merge(group)
            replacements[primary_index] = group.merged  # type: ignore[assignment]
            dropped.update(idx for idx in members if idx != primary_index)

        deduped = [
            replacements.get(index, result) for index, result in enumerate(results) if index not in dropped
        ]
        logger.debug(f"Duplicate detection: {len(groups)} groups, {len(results) - len(deduped)} results removed")
        return deduped, groups

    def _grouped(self, results: Sequence[ScholarSearchResult]) -> list[tuple[DuplicateGroup, int, list[int]]]:
        uf = UnionFind(len(results))
        matches: list[tuple[int, DuplicateMatch]] = []
        for i in range(len(results)):
            for j in range(i + 1, len(results)):
                match = self.compare(results[i], results[j])
                if match is not None:
                    uf.union(i, j)
                    matches.append((i, match))

        best: dict[int, DuplicateMatch] = {}
        for i, match in matches:
            root = uf.find(i)
            if root not in best or match.confidence > best[root].confidence:
                best[root] = match

        grouped: list[tuple[DuplicateGroup, int, list[int]]] = []
        for members in uf.groups():
            if len(members) < 2:
                continue
            # Highest overall score wins; ties go to the earliest member
            primary_index = max(members, key=lambda idx: (_overall(results[idx]), -idx))
            match = best[uf.find(primary_index)]
            group = DuplicateGroup(
                primary=results[primary_index],
                duplicates=[results[idx] for idx in members if idx != primary_index],
                match_type=match.match_type,
                confidence=match.confidence,
            )
            group.conflicting_fields = self.find_conflicts(group)
            grouped.append((group, primary_index, members))
        return grouped

    # ── Merging ──────────────────────────────────────────────────────

    def merge(self, group: DuplicateGroup) -> ScholarSearchResult:
        strategy = self.options.merge_strategy
        if strategy is MergeStrategy.KEEP_HIGHEST_QUALITY:
            return self._merge_by_quality(group)
        if strategy is MergeStrategy.KEEP_MOST_COMPLETE:
            return self._merge_by_completeness(group)
        return group.primary

    @staticmethod
    def _merge_by_quality(group: DuplicateGroup) -> ScholarSearchResult:
        members = [group.primary, *group.duplicates]
        primary = group.primary

        valid_dois = [m.doi for m in members if m.doi and is_valid_doi(m.doi)]
        years = [m.year for m in members if m.year]
        abstracts = [m.abstract for m in members if m.abstract and m.abstract.strip()]
        journals = [m.journal for m in members if m.journal and m.journal.strip()]

        return replace(
            primary,
            doi=valid_dois[0] if valid_dois else primary.doi,
            citations=max(m.citations or 0 for m in members),
            year=select_best_year(years) if years else primary.year,
            abstract=max(abstracts, key=len) if abstracts else primary.abstract,
            journal=journals[0] if journals else primary.journal,
            authors=merge_authors([m.authors for m in members]),
            keywords=tuple(dict.fromkeys(k for m in members for k in m.keywords)),
            confidence=sum(m.confidence for m in members) / len(members),
            relevance_score=sum(m.relevance_score for m in members) / len(members),
        )

    @staticmethod
    def _merge_by_completeness(group: DuplicateGroup) -> ScholarSearchResult:
        members = sorted(
            [group.primary, *group.duplicates],
            key=ResultScorer.completeness,
            reverse=True,
        )

        def first(attr: str) -> Any:
            for member in members:
                value = getattr(member, attr)
                if value not in (None, ""):
                    return value
            return getattr(group.primary, attr)

        citations = [m.citations for m in members if m.citations is not None]
        return replace(
            group.primary,
            doi=first("doi"),
            url=first("url"),
            abstract=first("abstract"),
            journal=first("journal"),
            year=first("year"),
            citations=max(citations) if citations else group.primary.citations,
            keywords=tuple(dict.fromkeys(k for m in members for k in m.keywords)),
            authors=merge_authors([m.authors for m in members]),
        )

    def find_conflicts(self, group: DuplicateGroup) -> list[str]:
        """Fields on which group members disagree (missing values ignored)."""
        members = [group.primary, *group.duplicates]
        conflicts: list[str] = []
        for attr in self._CONFLICT_FIELDS:
            values = {_conflict_key(getattr(m, attr)) for m in members if getattr(m, attr) not in (None, "", ())}
            if len(values) > 1:
                conflicts.append(attr)
        return conflicts


def _conflict_key(value: Any) -> Any:
    if isinstance(value, str):
        return normalize_text(value)
    if isinstance(value, tuple):
        return tuple(sorted(normalize_text(v) for v in value))
    return value
