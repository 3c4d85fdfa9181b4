"""
Result Scoring Engine - multi-factor relevance, quality and confidence.

Each candidate paper is scored against the content that produced the query:

    relevance  = 0.30·text + 0.30·keywords + 0.25·topics + 0.15·semantic
    quality    = 0.30·citations + 0.20·recency + 0.20·authors
                 + 0.20·journal + 0.10·completeness
    confidence = 0.40·metadata + 0.40·source + 0.20·extraction

    overall    = 0.5·relevance + 0.3·quality + 0.2·confidence

Weights are fixed at construction. ``rank_results`` sorts descending by
overall score with a stable sort, so equal scores keep their input order.

Architecture:
    Stateless scoring functions grouped on one class. All sub-metrics are
    surfaced in ``ScoringBreakdown`` so callers can explain a ranking.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any
from urllib.parse import urlparse

from scholar_search.domain.entities import (
    ExtractedContent,
    RankedResult,
    ScholarSearchResult,
    ScoringBreakdown,
)
from scholar_search.shared.exceptions import ConfigurationError

# =============================================================================
# Reference Data
# =============================================================================

ACADEMIC_DOMAINS = {
    "scholar.google.com",
    "pubmed.ncbi.nlm.nih.gov",
    "ieee.org",
    "acm.org",
    "springer.com",
    "wiley.com",
    "elsevier.com",
    "nature.com",
    "science.org",
    "jstor.org",
    "arxiv.org",
    "researchgate.net",
}

HIGH_IMPACT_JOURNALS = {
    "Nature",
    "Science",
    "Cell",
    "The Lancet",
    "New England Journal of Medicine",
    "JAMA",
    "Proceedings of the National Academy of Sciences",
    "Journal of the American Chemical Society",
    "Physical Review Letters",
    "Nature Medicine",
    "Nature Biotechnology",
    "Nature Genetics",
    "Cell Metabolism",
    "Immunity",
    "Neuron",
}

STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "up", "about", "into", "through", "during", "before",
    "after", "above", "below", "between", "among", "that", "this", "these",
    "those", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "must", "can",
}

# Checked in order; first tier with any matching marker wins.
_JOURNAL_TIERS: list[tuple[tuple[str, ...], float]] = [
    (("ieee", "acm"), 0.85),
    (("springer", "wiley", "elsevier", "taylor"), 0.75),
    (("university", "press", "society", "association"), 0.65),
    (("proceedings", "conference", "symposium", "workshop"), 0.6),
    (("journal", "review", "letters", "communications"), 0.5),
    (("arxiv", "preprint", "working paper"), 0.4),
]

_CREDENTIALS = re.compile(r"\b(prof|professor|dr|phd|md|ph\.d|m\.d)\b", re.IGNORECASE)
_INSTITUTION = re.compile(r"\b(university|institute|college|lab|laboratory)\b", re.IGNORECASE)
_ACADEMIC_TERM_PATTERNS = [
    re.compile(r"\b\w*ology\b"),
    re.compile(r"\b\w*tion\b"),
    re.compile(r"\b\w*ment\b"),
    re.compile(r"\b\w*ness\b"),
    re.compile(r"\b\w*ism\b"),
    re.compile(r"\b\w*ity\b"),
    re.compile(r"\b\w{6,}\b"),
]
_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ScoringWeights:
    relevance: float = 0.5
    quality: float = 0.3
    confidence: float = 0.2

    def __post_init__(self) -> None:
        values = (self.relevance, self.quality, self.confidence)
        if any(v < 0 for v in values) or sum(values) <= 0:
            raise ConfigurationError(f"Invalid scoring weights: {values}")


# =============================================================================
# Text Utilities
# =============================================================================


def normalize_text(text: str) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace."""
    text = _NON_WORD.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def dice_similarity(a: str, b: str) -> float:
    """
    Sørensen-Dice coefficient over character bigrams (whitespace ignored).

    Identical strings score 1.0; strings shorter than two characters
    cannot form bigrams and score 0.0.
    """
    a = a.replace(" ", "")
    b = b.replace(" ", "")
    if a == b:
        return 1.0 if a else 0.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    bigrams_a = Counter(a[i : i + 2] for i in range(len(a) - 1))
    bigrams_b = Counter(b[i : i + 2] for i in range(len(b) - 1))
    overlap = sum((bigrams_a & bigrams_b).values())
    return 2.0 * overlap / (len(a) + len(b) - 2)


def _jaccard(set_a: set[str], set_b: set[str]) -> float:
    union = set_a | set_b
    return len(set_a & set_b) / len(union) if union else 0.0


def _unique(words: Sequence[str], limit: int) -> list[str]:
    return list(dict.fromkeys(words))[:limit]


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


# =============================================================================
# ResultScorer
# =============================================================================


class ResultScorer:
    """
    Score and rank search results against extracted content.

    Usage:
        scorer = ResultScorer()
        ranked = scorer.rank_results(results, content)
        ranked[0].rank  # 1
    """

    def __init__(self, weights: ScoringWeights | None = None, *, current_year: int | None = None):
        self.weights = weights or ScoringWeights()
        self._current_year = current_year

    @property
    def current_year(self) -> int:
        return self._current_year or datetime.now().year

    # ── Public API ───────────────────────────────────────────────────

    def score_result(self, result: ScholarSearchResult, content: ExtractedContent) -> RankedResult:
        """Score one result; the returned ``rank`` stays 0 until ranked."""
        breakdown = self.breakdown(result, content)
        relevance = self._relevance_from(breakdown)
        quality = self._quality_from(breakdown)
        confidence = self._confidence_from(breakdown)
        overall = (
            relevance * self.weights.relevance
            + quality * self.weights.quality
            + confidence * self.weights.confidence
        )
        return RankedResult(
            **_result_fields(result),
            relevance_score_computed=relevance,
            quality_score=quality,
            confidence_score=confidence,
            overall_score=max(0.0, min(1.0, overall)),
            scoring_breakdown=breakdown,
        )

    def score_relevance(self, result: ScholarSearchResult, content: ExtractedContent) -> float:
        return self._relevance_from(self.breakdown(result, content))

    def score_quality(self, result: ScholarSearchResult) -> float:
        return self._quality_from(self._quality_breakdown(result))

    def calculate_confidence(self, result: ScholarSearchResult) -> float:
        return self._confidence_from(self._quality_breakdown(result))

    def rank_results(
        self,
        results: Sequence[ScholarSearchResult],
        content: ExtractedContent,
    ) -> list[RankedResult]:
        scored = [self.score_result(result, content) for result in results]
        return assign_ranks(sorted(scored, key=lambda r: r.overall_score, reverse=True))

    def breakdown(self, result: ScholarSearchResult, content: ExtractedContent) -> ScoringBreakdown:
        base = self._quality_breakdown(result)
        return ScoringBreakdown(
            text_similarity=self.text_similarity(result, content),
            keyword_match=self.keyword_match(result, content),
            topic_overlap=self.topic_overlap(result, content),
            semantic_similarity=self.semantic_similarity(result, content),
            citation_score=base.citation_score,
            recency_score=base.recency_score,
            author_authority=base.author_authority,
            journal_quality=base.journal_quality,
            completeness_score=base.completeness_score,
            metadata_completeness=base.metadata_completeness,
            source_reliability=base.source_reliability,
            extraction_quality=base.extraction_quality,
        )

    # ── Sub-score blends ─────────────────────────────────────────────

    @staticmethod
    def _relevance_from(b: ScoringBreakdown) -> float:
        score = b.text_similarity * 0.3 + b.keyword_match * 0.3 + b.topic_overlap * 0.25 + b.semantic_similarity * 0.15
        return max(0.0, min(1.0, score))

    @staticmethod
    def _quality_from(b: ScoringBreakdown) -> float:
        score = (
            b.citation_score * 0.3
            + b.recency_score * 0.2
            + b.author_authority * 0.2
            + b.journal_quality * 0.2
            + b.completeness_score * 0.1
        )
        return max(0.0, min(1.0, score))

    @staticmethod
    def _confidence_from(b: ScoringBreakdown) -> float:
        score = b.metadata_completeness * 0.4 + b.source_reliability * 0.4 + b.extraction_quality * 0.2
        return max(0.1, min(1.0, score))

    def _quality_breakdown(self, result: ScholarSearchResult) -> ScoringBreakdown:
        completeness = self.completeness(result)
        return ScoringBreakdown(
            citation_score=self.citation_score(result.citations or 0),
            recency_score=self.recency_score(result.year),
            author_authority=self.author_authority(result.authors),
            journal_quality=self.journal_quality(result.journal),
            completeness_score=completeness,
            metadata_completeness=completeness,
            source_reliability=self.source_reliability(result),
            extraction_quality=self.extraction_quality(result),
        )

    # ── Relevance metrics ────────────────────────────────────────────

    @staticmethod
    def text_similarity(result: ScholarSearchResult, content: ExtractedContent) -> float:
        result_text = normalize_text(f"{result.title} {result.abstract or ''}")
        content_text = normalize_text(content.content or "")
        if not result_text or not content_text:
            return 0.0

        similarity = dice_similarity(result_text, content_text)
        content_words = {w for w in content_text.split(" ") if len(w) > 4}
        common = [w for w in result_text.split(" ") if len(w) > 4 and w in content_words]
        if common:
            return min(1.0, similarity + min(0.3, len(common) * 0.1))
        return similarity

    @staticmethod
    def keyword_match(result: ScholarSearchResult, content: ExtractedContent) -> float:
        result_keywords = result_keyword_terms(result)
        if not result_keywords or not content.keywords:
            return 0.0
        return _jaccard({k.lower() for k in result_keywords}, {k.lower() for k in content.keywords})

    @staticmethod
    def topic_overlap(result: ScholarSearchResult, content: ExtractedContent) -> float:
        result_topics = result_topic_terms(result)
        if not result_topics or not content.topics:
            return 0.0
        return _jaccard({t.lower() for t in result_topics}, {t.lower() for t in content.topics})

    @staticmethod
    def semantic_similarity(result: ScholarSearchResult, content: ExtractedContent) -> float:
        result_terms = set(academic_terms(result.abstract or result.title or ""))
        content_terms = set(academic_terms(content.content or ""))
        if not result_terms or not content_terms:
            return 0.0
        return len(result_terms & content_terms) / max(len(result_terms), len(content_terms))

    # ── Quality metrics ──────────────────────────────────────────────

    @staticmethod
    def citation_score(citations: int) -> float:
        """Piecewise log-like scale: 10 → 0.5, 50 → 0.7, 100 → 0.8, 1000 → 1.0."""
        if citations <= 0:
            return 0.1
        if citations <= 10:
            return 0.2 + (citations / 10) * 0.3
        if citations <= 50:
            return 0.5 + ((citations - 10) / 40) * 0.2
        if citations <= 100:
            return 0.7 + ((citations - 50) / 50) * 0.1
        return min(1.0, 0.8 + math.log10(citations / 100) * 0.2)

    def recency_score(self, year: int | None) -> float:
        if not year:
            return 0.3
        age = self.current_year - year
        for limit, score in ((1, 1.0), (3, 0.9), (5, 0.8), (10, 0.6), (15, 0.4), (25, 0.3)):
            if age <= limit:
                return score
        return 0.2

    @staticmethod
    def author_authority(authors: Sequence[str]) -> float:
        if not authors:
            return 0.2

        score = 0.4
        if 3 <= len(authors) <= 8:
            score += 0.2
        elif len(authors) > 8:
            score += 0.1
        elif len(authors) == 1:
            score -= 0.1

        if any(_CREDENTIALS.search(a) for a in authors):
            score += 0.2
        if any(_INSTITUTION.search(a) for a in authors):
            score += 0.1
        return max(0.1, min(1.0, score))

    @staticmethod
    def journal_quality(journal: str | None) -> float:
        if not journal:
            return 0.3
        if journal in HIGH_IMPACT_JOURNALS:
            return 1.0

        lowered = journal.lower()
        if "nature" in lowered and "communications" not in lowered:
            return 0.95
        if "science" in lowered and "journal" in lowered:
            return 0.9
        for markers, score in _JOURNAL_TIERS:
            if any(m in lowered for m in markers):
                return score
        return 0.3

    @staticmethod
    def completeness(result: ScholarSearchResult) -> float:
        """Present-field ratio; title and authors weigh 2, DOI/URL/citations 0.5."""
        fields = (
            (bool(result.title), 2.0),
            (bool(result.authors), 2.0),
            (bool(result.year), 1.0),
            (bool(result.journal), 1.0),
            (bool(result.abstract), 1.0),
            (bool(result.doi), 0.5),
            (bool(result.url), 0.5),
            (result.citations is not None, 0.5),
        )
        return sum(weight for present, weight in fields if present) / sum(weight for _, weight in fields)

    # ── Confidence metrics ───────────────────────────────────────────

    @staticmethod
    def source_reliability(result: ScholarSearchResult) -> float:
        score = 0.5
        if result.url:
            host = _hostname(result.url)
            if host in ACADEMIC_DOMAINS:
                score += 0.3
            elif "edu" in host or "ac." in host:
                score += 0.2
        if result.doi:
            score += 0.2
        if result.journal and "preprint" not in result.journal.lower():
            score += 0.1
        return max(0.1, min(1.0, score))

    @staticmethod
    def extraction_quality(result: ScholarSearchResult) -> float:
        score = 0.5
        if result.confidence < 0.5:
            score -= 0.2
        if result.title and result.authors and result.year:
            score += 0.3
        if result.title and (len(result.title) < 10 or "..." in result.title):
            score -= 0.2
        if not result.title or not result.authors:
            score -= 0.3
        return max(0.1, min(1.0, score))


# =============================================================================
# Helpers shared with duplicate detection and feedback ranking
# =============================================================================


def result_keyword_terms(result: ScholarSearchResult) -> list[str]:
    """Unique title/abstract words of 4+ characters, stop words removed (max 15)."""
    words = normalize_text(f"{result.title} {result.abstract or ''}").split(" ")
    return _unique([w for w in words if len(w) >= 4 and w not in STOP_WORDS], 15)


def result_topic_terms(result: ScholarSearchResult) -> list[str]:
    """Journal words over 3 characters plus title words over 5 (max 8)."""
    topics: list[str] = []
    if result.journal:
        topics.extend(w for w in normalize_text(result.journal).split(" ") if len(w) > 3 and w not in STOP_WORDS)
    if result.title:
        topics.extend(w for w in normalize_text(result.title).split(" ") if len(w) > 5 and w not in STOP_WORDS)
    return _unique(topics, 8)


def academic_terms(text: str) -> list[str]:
    normalized = normalize_text(text)
    terms: list[str] = []
    for pattern in _ACADEMIC_TERM_PATTERNS:
        terms.extend(t for t in pattern.findall(normalized) if t not in STOP_WORDS)
    return _unique(terms, 10)


def assign_ranks(results: Sequence[RankedResult]) -> list[RankedResult]:
    """Return copies numbered 1..n in the given order."""
    return [replace(result, rank=index) for index, result in enumerate(results, start=1)]


def _result_fields(result: ScholarSearchResult) -> dict[str, Any]:
    return {
        "title": result.title,
        "authors": result.authors,
        "journal": result.journal,
        "year": result.year,
        "citations": result.citations,
        "doi": result.doi,
        "url": result.url,
        "abstract": result.abstract,
        "keywords": result.keywords,
        "confidence": result.confidence,
        "relevance_score": result.relevance_score,
    }
