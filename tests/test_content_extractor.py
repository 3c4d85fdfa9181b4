"""
Tests for content extraction - text analysis, extraction service, combining.
"""

from unittest.mock import AsyncMock

import pytest

from scholar_search.application.content import (
    ContentExtractor,
    InMemoryContentSource,
    TextAnalysis,
    analyze_text,
    calculate_extraction_confidence,
    combine_contents,
    placeholder_content,
)
from scholar_search.application.content.text_analysis import (
    MAX_KEYWORDS,
    clean_text,
    extract_key_phrases,
    extract_topics,
    tokenize,
)
from scholar_search.application.optimizer import PerformanceOptimizer
from scholar_search.domain.entities import ContentReference, ExtractedContent, SourceType, TaskPriority
from scholar_search.shared.exceptions import ConfigurationError, InvalidContentError, InvalidParameterError

SAMPLE = "Machine learning improves text analysis."


# =============================================================================
# Text analysis
# =============================================================================


class TestTextAnalysis:
    def test_keywords_drop_stop_words(self):
        analysis = analyze_text("The model and the data are in the system.")
        assert "the" not in analysis.keywords
        assert "and" not in analysis.keywords
        assert analysis.keywords[:3] == ["model", "data", "system"]

    def test_keywords_ordered_by_frequency(self):
        analysis = analyze_text("graph neural graph network graph neural")
        assert analysis.keywords == ["graph", "neural", "network"]

    def test_keyword_cap(self):
        text = " ".join(f"term{i}" for i in range(40))
        assert len(analyze_text(text).keywords) == MAX_KEYWORDS

    def test_key_phrases(self):
        tokens = tokenize(clean_text(SAMPLE))
        phrases = extract_key_phrases(tokens)
        assert phrases[0] == "Machine learning"
        assert "Machine learning improves" in phrases

    def test_phrase_never_ends_with_stop_word(self):
        phrases = extract_key_phrases(["learning", "of", "graphs"])
        assert "learning of" not in phrases
        assert "learning of graphs" in phrases

    def test_topics(self):
        topics = extract_topics(tokenize(clean_text(SAMPLE)))
        assert topics[0] == "Machine learning"
        assert "analysis" in topics

    def test_counts_and_readability(self):
        analysis = analyze_text(SAMPLE)
        assert analysis.word_count == 5
        assert analysis.sentence_count == 1
        assert analysis.readability_score == 1.0

    def test_long_sentences_read_worse(self):
        long_sentence = " ".join(["word"] * 40) + "."
        assert analyze_text(long_sentence).readability_score == 0.0

    def test_clean_text_collapses_whitespace(self):
        assert clean_text("line one\n\tline  two ") == "line one line two"

    def test_clean_text_strips_special_characters(self):
        assert "@" not in clean_text("contact @home")

    def test_empty(self):
        analysis = analyze_text("")
        assert analysis.keywords == []
        assert analysis.readability_score == 0.0


class TestExtractionConfidence:
    def test_base_confidence(self):
        assert calculate_extraction_confidence(TextAnalysis(content="")) == pytest.approx(0.4)

    def test_sample_confidence(self):
        assert calculate_extraction_confidence(analyze_text(SAMPLE)) == pytest.approx(0.65)

    def test_rich_content_capped(self):
        analysis = TextAnalysis(
            content="x",
            keywords=[f"k{i}" for i in range(10)],
            topics=[f"t{i}" for i in range(5)],
            readability_score=0.9,
            word_count=500,
        )
        assert calculate_extraction_confidence(analysis) == 1.0


# =============================================================================
# ContentExtractor
# =============================================================================


@pytest.fixture
def idea_ref():
    return ContentReference(SourceType.IDEAS, "42")


@pytest.fixture
def source(idea_ref):
    return InMemoryContentSource({idea_ref: ("ML idea", SAMPLE)})


class TestContentExtractor:
    async def test_extract(self, source, idea_ref):
        content = await ContentExtractor(source).extract(idea_ref, "conv-1")
        assert content.source_type is SourceType.IDEAS
        assert content.source_id == "42"
        assert content.title == "ML idea"
        assert content.keywords[:2] == ("machine", "learning")
        assert content.confidence == pytest.approx(0.65)

    async def test_placeholder_for_empty_source(self):
        ref = ContentReference(SourceType.IDEAS, "missing")
        content = await ContentExtractor(InMemoryContentSource()).extract(ref, "conv-1")
        assert content.title == "Research Topic missing"
        assert "placeholder" in content.content

    async def test_builder_requires_conversation(self, source):
        ref = ContentReference(SourceType.BUILDER, "doc")
        with pytest.raises(InvalidParameterError):
            await ContentExtractor(source).extract(ref, "")

    async def test_uses_optimizer_cache(self, idea_ref):
        source = InMemoryContentSource({idea_ref: ("ML idea", SAMPLE)})
        source.fetch = AsyncMock(wraps=source.fetch)
        optimizer = PerformanceOptimizer()
        extractor = ContentExtractor(source, optimizer=optimizer)

        first = await extractor.extract(idea_ref, "conv-1")
        second = await extractor.extract(idea_ref, "conv-1")

        assert source.fetch.await_count == 1
        assert second == first
        assert optimizer.stage_metrics.get("content_extraction").count == 1

    async def test_cache_is_per_conversation(self, idea_ref):
        source = InMemoryContentSource({idea_ref: ("ML idea", SAMPLE)})
        source.fetch = AsyncMock(wraps=source.fetch)
        extractor = ContentExtractor(source, optimizer=PerformanceOptimizer())

        await extractor.extract(idea_ref, "conv-1")
        await extractor.extract(idea_ref, "conv-2")
        assert source.fetch.await_count == 2

    async def test_extract_many_preserves_order(self, idea_ref):
        other = ContentReference(SourceType.BUILDER, "doc-1")
        source = InMemoryContentSource(
            {
                idea_ref: ("ML idea", SAMPLE),
                other: ("Draft", "Protein folding prediction with deep networks."),
            }
        )
        contents = await ContentExtractor(source).extract_many([idea_ref, other], "conv-1")
        assert [c.source_id for c in contents] == ["42", "doc-1"]

    async def test_extract_many_raises_first_failure(self, idea_ref):
        source = AsyncMock()
        source.fetch.side_effect = RuntimeError("store offline")
        with pytest.raises(RuntimeError, match="store offline"):
            await ContentExtractor(source).extract_many([idea_ref], "conv-1")


class TestPreload:
    async def test_worker_tick_fills_content_cache(self, source, idea_ref):
        optimizer = PerformanceOptimizer()
        extractor = ContentExtractor(source, optimizer=optimizer)

        [task_id] = extractor.preload([idea_ref], "conv-1")
        [task] = optimizer.tasks.pending
        assert task.id == task_id
        assert task.priority is TaskPriority.LOW
        assert optimizer.get_cached_content_extraction("conv-1", idea_ref) is None

        assert await optimizer.process_background_tasks() == 1

        cached = optimizer.get_cached_content_extraction("conv-1", idea_ref)
        assert cached is not None
        assert cached.title == "ML idea"

    async def test_one_task_per_reference(self, source, idea_ref):
        optimizer = PerformanceOptimizer()
        other = ContentReference(SourceType.BUILDER, "doc-1")
        task_ids = ContentExtractor(source, optimizer=optimizer).preload(
            [idea_ref, other], "conv-1", priority=TaskPriority.HIGH
        )
        assert len(task_ids) == 2
        assert len(optimizer.tasks) == 2

    def test_requires_optimizer(self, source, idea_ref):
        with pytest.raises(ConfigurationError):
            ContentExtractor(source).preload([idea_ref], "conv-1")


class TestPlaceholder:
    def test_builder_placeholder(self):
        title, text = placeholder_content(ContentReference(SourceType.BUILDER, "d"), "conv-9")
        assert title == "Document conv-9"
        assert "Builder source" in text


# =============================================================================
# combine_contents
# =============================================================================


class TestCombineContents:
    def test_empty_raises(self):
        with pytest.raises(InvalidContentError):
            combine_contents([])

    def test_single_returned_unchanged(self, ml_content):
        assert combine_contents([ml_content]) is ml_content

    def test_merges_terms(self, ml_content, bio_content):
        combined = combine_contents([ml_content, bio_content])
        assert combined.source_id == "idea-1+doc-7"
        assert "machine learning" in combined.keywords
        assert "protein folding" in combined.keywords
        # "deep learning" appears in both topic lists but only once here
        assert combined.topics.count("deep learning") == 1
        assert combined.confidence == pytest.approx(0.75)

    def test_keywords_deduplicated_case_insensitively(self):
        a = ExtractedContent(SourceType.IDEAS, "a", keywords=["Graph"])
        b = ExtractedContent(SourceType.IDEAS, "b", keywords=["graph", "node"])
        assert combine_contents([a, b]).keywords == ("Graph", "node")
