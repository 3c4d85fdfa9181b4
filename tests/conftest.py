"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from scholar_search.domain.entities import (
    ExtractedContent,
    RankedResult,
    ScholarSearchResult,
    SourceType,
)

# ============================================================
# Clocks
# ============================================================


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def utc_now():
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# Content
# ============================================================


@pytest.fixture
def ml_content():
    """Extracted content about machine learning for NLP."""
    return ExtractedContent(
        source_type=SourceType.IDEAS,
        source_id="idea-1",
        title="Machine learning for natural language processing",
        content=(
            "Machine learning methods for natural language processing. Transformer models "
            "and neural networks improve text classification and language understanding."
        ),
        keywords=["machine learning", "natural language processing", "transformer", "neural networks"],
        key_phrases=["text classification", "language understanding"],
        topics=["deep learning", "nlp"],
        confidence=0.8,
    )


@pytest.fixture
def bio_content():
    """Extracted content about protein folding."""
    return ExtractedContent(
        source_type=SourceType.BUILDER,
        source_id="doc-7",
        title="Protein structure prediction",
        content="Protein folding and structure prediction with deep learning.",
        keywords=["protein folding", "structure prediction"],
        topics=["bioinformatics", "deep learning"],
        confidence=0.7,
    )


# ============================================================
# Results
# ============================================================


@pytest.fixture
def make_result():
    """Factory for ScholarSearchResult with sensible defaults."""

    def _create(
        title: str = "Deep Learning for Natural Language Processing",
        authors: tuple[str, ...] = ("Smith, J.", "Doe, A."),
        journal: str | None = "Nature",
        year: int | None = 2022,
        citations: int | None = 150,
        doi: str | None = None,
        url: str | None = None,
        abstract: str | None = "We study transformer models for machine learning in natural language processing.",
        **kwargs,
    ) -> ScholarSearchResult:
        return ScholarSearchResult(
            title=title,
            authors=authors,
            journal=journal,
            year=year,
            citations=citations,
            doi=doi,
            url=url,
            abstract=abstract,
            **kwargs,
        )

    return _create


@pytest.fixture
def make_ranked(make_result):
    """Factory for RankedResult with explicit scores."""

    def _create(title: str = "Ranked Paper", overall: float = 0.5, quality: float = 0.5, **kwargs) -> RankedResult:
        base = make_result(title=title, **kwargs)
        return RankedResult(
            **{f: getattr(base, f) for f in base.__dataclass_fields__},
            relevance_score_computed=overall,
            quality_score=quality,
            confidence_score=0.5,
            overall_score=overall,
        )

    return _create


# ============================================================
# HTML
# ============================================================


def result_block(
    title: str,
    byline: str,
    *,
    href: str = "https://example.org/paper",
    snippet: str = "",
    cited_by: int | None = None,
) -> str:
    footer = f'<div class="gs_fl"><a href="/scholar?cites=1">Cited by {cited_by}</a></div>' if cited_by else ""
    return (
        '<div class="gs_r gs_or gs_scl"><div class="gs_ri">'
        f'<h3 class="gs_rt"><a href="{href}">{title}</a></h3>'
        f'<div class="gs_a">{byline}</div>'
        f'<div class="gs_rs">{snippet}</div>'
        f"{footer}</div></div>"
    )


def results_page(*blocks: str) -> str:
    return f'<html><body><div id="gs_res_ccl_mid">{"".join(blocks)}</div></body></html>'


@pytest.fixture
def scholar_page():
    """A results page with three distinct papers."""
    return results_page(
        result_block(
            "Attention is all you need",
            "A Vaswani, N Shazeer - Advances in neural information processing systems, 2017 - proceedings.neurips.cc",
            href="https://proceedings.neurips.cc/paper/7181",
            snippet="The dominant sequence transduction models are based on complex recurrent or convolutional neural networks.",
            cited_by=100000,
        ),
        result_block(
            "BERT: Pre-training of deep bidirectional transformers for language understanding",
            "J Devlin, MW Chang, K Lee - arXiv preprint arXiv:1810.04805, 2018 - arxiv.org",
            href="https://arxiv.org/abs/1810.04805",
            snippet="We introduce a new language representation model called BERT for natural language processing.",
            cited_by=80000,
        ),
        result_block(
            "Machine learning for natural language processing: a survey",
            "T Young, D Hazarika - IEEE Computational Intelligence Magazine, 2018 - ieeexplore.ieee.org",
            href="https://ieeexplore.ieee.org/document/8416973",
            snippet="Deep learning methods employ multiple processing layers to learn hierarchical representations of data.",
            cited_by=3000,
        ),
    )
