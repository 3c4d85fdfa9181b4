"""
Content Extraction Service

Turns a ``{source, id}`` reference into ``ExtractedContent``:

    ContentSource.fetch() → analyze_text() → confidence → cache

The raw text comes from a ``ContentSource`` supplied by the surrounding
application (idea cards, draft documents). Results are cached in the
optimizer's content-extraction cache when one is provided.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from functools import partial
from typing import TYPE_CHECKING, Protocol

from scholar_search.domain.entities import (
    ContentExtractionTask,
    ContentReference,
    ExtractedContent,
    SourceType,
    TaskPriority,
)
from scholar_search.shared.async_utils import gather_with_errors
from scholar_search.shared.exceptions import ConfigurationError, InvalidContentError, InvalidParameterError

from .text_analysis import TextAnalysis, analyze_text

if TYPE_CHECKING:
    from scholar_search.application.optimizer import PerformanceOptimizer

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    """Retrieves raw ``(title, content)`` for a source reference."""

    async def fetch(self, reference: ContentReference, conversation_id: str) -> tuple[str, str]: ...


class InMemoryContentSource:
    """Dict-backed ``ContentSource``; unknown references yield empty text."""

    def __init__(self, documents: dict[ContentReference, tuple[str, str]] | None = None) -> None:
        self._documents = dict(documents or {})

    def add(self, reference: ContentReference, title: str, content: str) -> None:
        self._documents[reference] = (title, content)

    async def fetch(self, reference: ContentReference, conversation_id: str) -> tuple[str, str]:
        return self._documents.get(reference, ("", ""))


def calculate_extraction_confidence(analysis: TextAnalysis) -> float:
    confidence = 0.4

    if analysis.word_count > 200:
        confidence += 0.3
    elif analysis.word_count > 100:
        confidence += 0.2
    elif analysis.word_count > 50:
        confidence += 0.1

    keyword_count = len(analysis.keywords)
    if keyword_count > 8:
        confidence += 0.15
    elif keyword_count > 5:
        confidence += 0.1
    elif keyword_count > 2:
        confidence += 0.05

    topic_count = len(analysis.topics)
    if topic_count > 4:
        confidence += 0.1
    elif topic_count > 2:
        confidence += 0.05

    if analysis.readability_score > 0.7:
        confidence += 0.1
    elif analysis.readability_score > 0.5:
        confidence += 0.05

    return max(0.1, min(1.0, confidence))


def placeholder_content(reference: ContentReference, conversation_id: str) -> tuple[str, str]:
    """Fallback ``(title, content)`` used when a source yields no text."""
    if reference.source is SourceType.IDEAS:
        return (
            f"Research Topic {reference.id}",
            f"Research Topic {reference.id}. This is a placeholder for content "
            "that could not be extracted from the Ideas source.",
        )
    return (
        f"Document {conversation_id}",
        f"Document content for {conversation_id}. This is a placeholder for content "
        "that could not be extracted from the Builder source.",
    )


def combine_contents(contents: Sequence[ExtractedContent]) -> ExtractedContent:
    """
    Merge several extractions into one.

    Terms are concatenated in source order (case-insensitive duplicates
    dropped); confidence is the plain average.
    """
    if not contents:
        raise InvalidContentError("No content to combine")
    if len(contents) == 1:
        return contents[0]

    analysis = analyze_text("\n\n".join(c.content for c in contents))
    return ExtractedContent(
        source_type=SourceType.IDEAS,
        source_id="+".join(c.source_id for c in contents),
        title=" / ".join(c.title for c in contents if c.title),
        content=analysis.content,
        keywords=tuple(k for c in contents for k in c.keywords),
        key_phrases=tuple(dict.fromkeys(p for c in contents for p in c.key_phrases)),
        topics=tuple(dict.fromkeys(t for c in contents for t in c.topics)),
        confidence=sum(c.confidence for c in contents) / len(contents),
    )


class ContentExtractor:
    """
    Extract and analyze content from user sources.

    Usage:
        extractor = ContentExtractor(source, optimizer=optimizer)
        content = await extractor.extract(ContentReference(SourceType.IDEAS, "42"), "conv-1")
    """

    def __init__(
        self,
        source: ContentSource,
        optimizer: PerformanceOptimizer | None = None,
    ) -> None:
        self._source = source
        self._optimizer = optimizer

    async def extract(self, reference: ContentReference, conversation_id: str) -> ExtractedContent:
        if reference.source is SourceType.BUILDER and not conversation_id:
            raise InvalidParameterError("conversation_id", conversation_id, "a conversation id for builder sources")

        if self._optimizer is not None:
            cached = self._optimizer.get_cached_content_extraction(conversation_id, reference)
            if cached is not None:
                logger.debug(f"Content extraction cache hit: {reference.source.value}:{reference.id}")
                return cached

        start = time.perf_counter()
        title, text = await self._source.fetch(reference, conversation_id)
        if not text or not text.strip():
            logger.warning(f"No content found in {reference.source.value} source {reference.id}, using placeholder")
            title, text = placeholder_content(reference, conversation_id)

        analysis = analyze_text(text)
        content = ExtractedContent(
            source_type=reference.source,
            source_id=reference.id,
            title=title,
            content=analysis.content,
            keywords=tuple(analysis.keywords),
            key_phrases=tuple(analysis.key_phrases),
            topics=tuple(analysis.topics),
            confidence=calculate_extraction_confidence(analysis),
        )

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"Content extraction completed for {reference.source.value}:{reference.id} in {elapsed_ms:.0f}ms")
        if self._optimizer is not None:
            self._optimizer.record_content_extraction_time(elapsed_ms)
            self._optimizer.cache_content_extraction(conversation_id, reference, content)
        return content

    async def extract_many(
        self,
        references: Sequence[ContentReference],
        conversation_id: str,
    ) -> list[ExtractedContent]:
        """Extract all references concurrently; the first failure is raised."""
        outcomes = await gather_with_errors(
            *(self.extract(ref, conversation_id) for ref in references),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                raise outcome
        return outcomes  # type: ignore[return-value]

    def preload(
        self,
        references: Sequence[ContentReference],
        conversation_id: str,
        priority: TaskPriority = TaskPriority.LOW,
    ) -> list[str]:
        """
        Queue background extraction of ``references`` into the content cache.

        Returns:
            The ids of the scheduled tasks, one per reference

        Raises:
            ConfigurationError: the extractor has no optimizer to schedule on
        """
        if self._optimizer is None:
            raise ConfigurationError("Content preloading requires a PerformanceOptimizer")

        task_ids = [
            self._optimizer.schedule_background_task(
                ContentExtractionTask(conversation_id, ref, partial(self.extract, ref, conversation_id)),
                priority,
            )
            for ref in references
        ]
        logger.debug(f"Queued {len(task_ids)} content preloads for conversation {conversation_id}")
        return task_ids
