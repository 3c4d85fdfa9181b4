"""
QueryGenerator - Search Queries from Extracted Content

Turns one or more ``ExtractedContent`` into boolean search strings for a
scholarly index:

1. Term selection: keywords + key phrases ranked by academic relevance
2. Source merging (``union`` / ``intersection`` / ``weighted``)
3. Query assembly: quoted primary keywords AND-ed, topics OR-ed
4. Quality analysis: breadth, specificity, academic relevance

Architecture Decision:
    QueryGenerator is stateless and purely local - no API calls.
    Refinement of an existing query lives in ``QueryRefiner``.

Example:
    >>> generator = QueryGenerator()
    >>> [query] = generator.generate_queries([content])
    >>> query.query
    '"machine learning" AND "NLP"'
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence

from scholar_search.domain.entities import (
    CombineStrategy,
    ExtractedContent,
    QueryGenerationOptions,
    QueryOptimization,
    QueryRefinement,
    QueryType,
    SearchQuery,
    ValidationResult,
)
from scholar_search.shared.exceptions import InvalidContentError, InvalidQueryError

from .query_refiner import QueryRefiner, validate_query
from .vocabulary import is_academic, is_stop_word

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 150

# (max_keywords, max_topics) when options leave them unset
SINGLE_SOURCE_LIMITS = (8, 5)
COMBINED_LIMITS = (10, 6)


def generate_query_id() -> str:
    return f"query_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _dedupe_case_insensitive(terms: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for term in terms:
        key = term.lower()
        if key not in seen:
            seen.add(key)
            unique.append(term)
    return unique


def merge_and_rank_terms(terms: Sequence[str]) -> list[str]:
    """Unique terms ordered by how many times they occur (first-seen on ties)."""
    counts: dict[str, int] = {}
    display: dict[str, str] = {}
    for term in terms:
        key = term.lower()
        counts[key] = counts.get(key, 0) + 1
        display.setdefault(key, term)
    ranked = sorted(counts, key=lambda key: counts[key], reverse=True)
    return [display[key] for key in ranked]


def find_common_terms(term_lists: Sequence[Sequence[str]]) -> list[str]:
    """Terms present (case-insensitively) in every list, in first-list order."""
    if not term_lists:
        return []
    if len(term_lists) == 1:
        return list(term_lists[0])
    common = _dedupe_case_insensitive(term_lists[0])
    for terms in term_lists[1:]:
        present = {t.lower() for t in terms}
        common = [t for t in common if t.lower() in present]
    return common


def weighted_combine_terms(contents: Sequence[ExtractedContent], field: str) -> list[str]:
    """Rank terms by the summed confidence of the sources that contain them."""
    weights: dict[str, float] = {}
    display: dict[str, str] = {}
    for content in contents:
        weight = content.confidence or 0.5
        for term in getattr(content, field):
            key = term.lower()
            weights[key] = weights.get(key, 0.0) + weight
            display.setdefault(key, term)
    ranked = sorted(weights, key=lambda key: weights[key], reverse=True)
    return [display[key] for key in ranked]


class QueryGenerator:
    """
    Generate, combine, optimize and validate scholarly search queries.

    Usage:
        generator = QueryGenerator()
        queries = generator.generate_queries(contents, QueryGenerationOptions(include_alternatives=True))
        refinement = generator.refine_query(queries[0].query, contents)
    """

    def __init__(self, refiner: QueryRefiner | None = None) -> None:
        self._refiner = refiner or QueryRefiner()

    # =========================================================================
    # Generation
    # =========================================================================

    def generate_queries(
        self,
        contents: Sequence[ExtractedContent],
        options: QueryGenerationOptions | None = None,
    ) -> list[SearchQuery]:
        """
        Generate queries from extracted content.

        Args:
            contents: One or more extracted sources
            options: Generation options (defaults apply when omitted)

        Returns:
            One ``basic`` query for a single source; otherwise one
            ``combined`` query, followed by one ``basic`` query per source
            when ``include_alternatives`` is set.

        Raises:
            InvalidContentError: No content, or a source without keywords/topics
            InvalidQueryError: Term filtering left nothing to build a query from
        """
        if not contents:
            raise InvalidContentError()
        for content in contents:
            if not content.has_terms:
                raise InvalidContentError(
                    f"Source {content.source_id} has no keywords or topics",
                    source_id=content.source_id,
                )

        options = options or QueryGenerationOptions()
        query_id = generate_query_id()

        if len(contents) == 1:
            return [self._single_source_query(contents[0], query_id, options)]

        queries = [self._combined_query(contents, query_id, options)]
        if options.include_alternatives:
            for index, content in enumerate(contents):
                queries.append(self._single_source_query(content, f"{query_id}-alt-{index}", options))
        logger.debug(f"Generated {len(queries)} queries from {len(contents)} sources")
        return queries

    def _single_source_query(
        self,
        content: ExtractedContent,
        query_id: str,
        options: QueryGenerationOptions,
    ) -> SearchQuery:
        max_keywords = options.max_keywords or SINGLE_SOURCE_LIMITS[0]
        max_topics = options.max_topics or SINGLE_SOURCE_LIMITS[1]
        keywords = self.select_keywords(content, max_keywords)
        topics = self.select_topics(content, max_topics)

        query = self.build_query_string(keywords, topics)
        return SearchQuery(
            id=query_id,
            query=query,
            original_content=(content,),
            query_type=QueryType.BASIC,
            confidence=self.calculate_query_confidence(content, keywords, topics),
            keywords=tuple(keywords),
            topics=tuple(topics),
            optimization=self.optimize_query(query, keywords, topics, options.optimize_for_academic),
        )

    def _combined_query(
        self,
        contents: Sequence[ExtractedContent],
        query_id: str,
        options: QueryGenerationOptions,
    ) -> SearchQuery:
        max_keywords = options.max_keywords or COMBINED_LIMITS[0]
        max_topics = options.max_topics or COMBINED_LIMITS[1]
        keywords = self._combine_terms(contents, "keywords", options.combine_strategy, max_keywords)
        topics = self._combine_terms(contents, "topics", options.combine_strategy, max_topics)

        query = self.build_query_string(keywords, topics)
        return SearchQuery(
            id=query_id,
            query=query,
            original_content=tuple(contents),
            query_type=QueryType.COMBINED,
            confidence=sum(c.confidence for c in contents) / len(contents),
            keywords=tuple(keywords),
            topics=tuple(topics),
            optimization=self.optimize_query(query, keywords, topics, options.optimize_for_academic),
        )

    def _combine_terms(
        self,
        contents: Sequence[ExtractedContent],
        field: str,
        strategy: CombineStrategy,
        limit: int,
    ) -> list[str]:
        if strategy is CombineStrategy.UNION:
            return merge_and_rank_terms([t for c in contents for t in getattr(c, field)])[:limit]
        if strategy is CombineStrategy.INTERSECTION:
            return find_common_terms([getattr(c, field) for c in contents])
        return weighted_combine_terms(contents, field)[:limit]

    # =========================================================================
    # Term selection
    # =========================================================================

    def select_keywords(self, content: ExtractedContent, max_keywords: int) -> list[str]:
        """Keywords and key phrases, filtered and ranked by relevance."""
        candidates = [
            term
            for term in (*content.keywords, *content.key_phrases)
            if term and len(term) > 2 and not is_stop_word(term)
        ]
        unique = _dedupe_case_insensitive(candidates)
        # sorted() is stable, so equally relevant terms keep source order
        ranked = sorted(unique, key=lambda term: self.term_relevance(term, content), reverse=True)
        return ranked[:max_keywords]

    def select_topics(self, content: ExtractedContent, max_topics: int) -> list[str]:
        topics = [t for t in content.topics if t and len(t) > 2 and not is_stop_word(t)]
        return _dedupe_case_insensitive(topics)[:max_topics]

    @staticmethod
    def term_relevance(term: str, content: ExtractedContent) -> float:
        score = 0.0
        if is_academic(term):
            score += 0.3
        if len(term) > 6:
            score += 0.2
        lowered = term.lower()
        if any(k.lower() == lowered for k in content.keywords):
            score += 0.4
        if any(t.lower() == lowered for t in content.topics):
            score += 0.3
        return score

    # =========================================================================
    # Assembly and analysis
    # =========================================================================

    def build_query_string(self, keywords: Sequence[str], topics: Sequence[str]) -> str:
        """
        Assemble a boolean query.

        Format: ``"k1" AND "k2" AND "k3" AND ("t1" OR "t2") AND (k4 OR k5 OR k6)``
        """
        if not keywords and not topics:
            raise InvalidQueryError(None, "No keywords or topics available for query generation")

        parts: list[str] = []
        if keywords:
            parts.append(" AND ".join(f'"{k}"' for k in keywords[:3]))
        if topics:
            quoted = [f'"{t}"' for t in topics[:2]]
            if parts:
                parts.append(f"({' OR '.join(quoted)})")
            else:
                parts.append(" AND ".join(quoted))
        if len(keywords) > 3:
            parts.append(f"({' OR '.join(keywords[3:6])})")

        query = " AND ".join(parts)
        if len(query) > MAX_QUERY_LENGTH:
            query = " AND ".join(query.split(" AND ")[:3])
        return query

    def optimize_query(
        self,
        query: str,
        keywords: Sequence[str],
        topics: Sequence[str],
        optimize_for_academic: bool = True,
    ) -> QueryOptimization:
        breadth, specificity, academic = self.analyze_query_quality(query, keywords, topics)
        suggestions: list[str] = []

        has_academic = any(is_academic(t) for t in (*keywords, *topics))
        if not has_academic and keywords:
            suggestions.append("Added academic context terms to improve scholarly relevance")

        if breadth < 0.3:
            suggestions.append("Query may be too narrow - consider adding broader terms")
        elif breadth > 0.7:
            suggestions.append("Query may be too broad - consider adding more specific terms")
        if specificity < 0.4:
            suggestions.append("Consider adding more specific terminology or quoted phrases")
        if academic < 0.5:
            suggestions.append('Add academic terms like "methodology", "framework", or "empirical"')

        alternatives = self.generate_alternative_queries(keywords, topics)
        if optimize_for_academic and not has_academic and keywords:
            academic_form = f"({query}) AND (research OR study OR analysis)"
            if academic_form not in alternatives:
                alternatives.append(academic_form)

        return QueryOptimization(
            breadth_score=breadth,
            specificity_score=specificity,
            academic_relevance=academic,
            suggestions=tuple(suggestions),
            alternative_queries=tuple(alternatives),
        )

    @staticmethod
    def analyze_query_quality(
        query: str,
        keywords: Sequence[str],
        topics: Sequence[str],
    ) -> tuple[float, float, float]:
        """Return ``(breadth, specificity, academic_relevance)``."""
        term_count = len(keywords) + len(topics)
        if term_count < 3:
            breadth = 0.2
        elif term_count > 8:
            breadth = 0.8
        else:
            breadth = 0.3 + term_count / 10

        specificity = 0.3
        if '"' in query:
            specificity += 0.3
        if "AND" in query or "OR" in query:
            specificity += 0.2
        if len(query) > 50:
            specificity += 0.2

        academic_count = sum(1 for t in (*keywords, *topics) if is_academic(t))
        academic = min(1.0, academic_count / max(1, term_count) + 0.2)
        return min(1.0, breadth), min(1.0, specificity), academic

    @staticmethod
    def generate_alternative_queries(keywords: Sequence[str], topics: Sequence[str]) -> list[str]:
        alternatives: list[str] = []
        if len(keywords) >= 2:
            alternatives.append(" OR ".join(f'"{k}"' for k in keywords[:4]))
            if topics:
                specific = " AND ".join(f'"{k}"' for k in keywords[:3])
                alternatives.append(f'{specific} AND "{topics[0]}"')
        if len(topics) >= 2:
            alternatives.append(" AND ".join(f'"{t}"' for t in topics[:2]))
        if keywords:
            alternatives.append(f'"{keywords[0]}" AND (research OR study OR analysis)')
        return alternatives[:3]

    @staticmethod
    def calculate_query_confidence(
        content: ExtractedContent,
        keywords: Sequence[str],
        topics: Sequence[str],
    ) -> float:
        confidence = content.confidence or 0.5
        if len(keywords) >= 3:
            confidence += 0.1
        if len(topics) >= 2:
            confidence += 0.1
        if any(is_academic(t) for t in (*keywords, *topics)):
            confidence += 0.1
        return min(1.0, confidence)

    # =========================================================================
    # Combination, validation, refinement
    # =========================================================================

    def combine_queries(self, queries: Sequence[SearchQuery]) -> SearchQuery:
        """Merge queries into one ``combined`` query; a single query is returned as-is."""
        if not queries:
            raise InvalidQueryError(None, "No queries to combine")
        if len(queries) == 1:
            return queries[0]

        keywords = merge_and_rank_terms([k for q in queries for k in q.keywords])
        topics = merge_and_rank_terms([t for q in queries for t in q.topics])
        query = self.build_query_string(keywords, topics)
        return SearchQuery(
            id=generate_query_id(),
            query=query,
            original_content=tuple(c for q in queries for c in q.original_content),
            query_type=QueryType.COMBINED,
            confidence=sum(q.confidence for q in queries) / len(queries),
            keywords=tuple(keywords),
            topics=tuple(topics),
            optimization=self.optimize_query(query, keywords, topics),
        )

    def validate_query(self, query: str) -> ValidationResult:
        return validate_query(query)

    def refine_query(self, query: str, contents: Sequence[ExtractedContent]) -> QueryRefinement:
        return self._refiner.refine_query(query, contents)
