"""
SearchWorkflow - end-to-end literature discovery for one request.

Stages (each timed, each wrapped in ``StageFailureError`` on failure):

    validation → content_extraction → query_generation → search
    → result_processing (filter + score) → duplicate_detection
    → feedback_application → progressive loading of the first batch

Every stage reads and writes through the shared ``PerformanceOptimizer``
caches where one applies. The workflow never raises for a failed request:
the first failing stage is converted into

    {"success": False, "error": "Failed to execute AI search workflow: <stage>: <msg>",
     "processingTime": <ms>}

With ``partial_results_on_failure`` enabled, a failure after scoring
returns the scored list with ``success: True`` and a ``warnings`` entry.

Example:
    workflow = container.workflow()
    response = await workflow.execute({"query": '"machine learning" AND "NLP"'})
    more = workflow.get_next_batch(response["sessionId"])
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

from cachetools import TTLCache

from scholar_search.application.content import ContentExtractor, combine_contents
from scholar_search.application.feedback import FeedbackLearningSystem
from scholar_search.application.optimizer import MAX_SESSIONS, SESSION_TTL_SECONDS, PerformanceOptimizer
from scholar_search.application.search import (
    DuplicateDetector,
    QueryGenerator,
    ResultScorer,
    apply_filters,
    assign_ranks,
    extract_query_terms,
    sort_results,
    validate_filters,
    validate_query,
)
from scholar_search.domain.entities import (
    ContentReference,
    DuplicateGroup,
    ExtractedContent,
    QueryGenerationOptions,
    RankedResult,
    ScholarSearchResult,
    SearchFilters,
    SearchQuery,
    SortBy,
    SourceType,
    UserFeedback,
)
from scholar_search.infrastructure.scholar import ScholarClient
from scholar_search.shared.exceptions import (
    InvalidParameterError,
    InvalidQueryError,
    NotFoundError,
    StageFailureError,
)
from scholar_search.shared.metrics import StageMetrics

T = TypeVar("T")

logger = logging.getLogger(__name__)

WORKFLOW_ERROR_PREFIX = "Failed to execute AI search workflow"

STAGE_VALIDATION = "validation"
STAGE_CONTENT_EXTRACTION = "content_extraction"
STAGE_QUERY_GENERATION = "query_generation"
STAGE_SEARCH = "search"
STAGE_RESULT_PROCESSING = "result_processing"
STAGE_DUPLICATE_DETECTION = "duplicate_detection"
STAGE_FEEDBACK_APPLICATION = "feedback_application"

# Stage → key in the ``performance_metrics`` block of the response
PERFORMANCE_METRIC_KEYS = {
    STAGE_CONTENT_EXTRACTION: "content_extraction_time",
    STAGE_QUERY_GENERATION: "query_generation_time",
    STAGE_SEARCH: "search_execution_time",
    STAGE_RESULT_PROCESSING: "result_processing_time",
    STAGE_DUPLICATE_DETECTION: "duplicate_detection_time",
    STAGE_FEEDBACK_APPLICATION: "feedback_application_time",
}

SATISFACTION_TOP_N = 5


@dataclass(frozen=True)
class WorkflowConfig:
    progressive_batch_size: int = 10
    partial_results_on_failure: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> WorkflowConfig:
        data = data or {}
        return cls(
            progressive_batch_size=int(data.get("progressive_batch_size", 10)),
            partial_results_on_failure=bool(data.get("partial_results_on_failure", False)),
        )


@dataclass(frozen=True)
class WorkflowRequest:
    """
    One search request.

    Either ``content_sources`` (resolved through the content extractor) or a
    ready-made ``query`` must be given. When both are present the query is
    searched and the extracted content is only used for scoring.
    """

    conversation_id: str = ""
    content_sources: tuple[ContentReference, ...] = ()
    query: str | None = None
    query_options: QueryGenerationOptions = field(default_factory=QueryGenerationOptions)
    filters: SearchFilters = field(default_factory=SearchFilters)
    user_id: str | None = None
    session_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowRequest:
        """
        Build from a request dict (camelCase keys accepted).

        Raises:
            InvalidParameterError: a section has unknown values, missing keys
                or values of the wrong type
        """
        sources = data.get("contentSources", data.get("content_sources")) or []
        options = data.get("queryOptions", data.get("query_options"))
        filters = data.get("filters")
        return cls(
            conversation_id=str(data.get("conversationId", data.get("conversation_id", "")) or ""),
            content_sources=_parse_section("contentSources", sources, _content_references),
            query=data.get("query"),
            query_options=_parse_section("queryOptions", options, QueryGenerationOptions.from_dict),
            filters=_parse_section("filters", filters, SearchFilters.from_dict),
            user_id=data.get("userId", data.get("user_id")),
            session_id=data.get("sessionId", data.get("session_id")),
        )


def _content_references(sources: Sequence[Any]) -> tuple[ContentReference, ...]:
    return tuple(s if isinstance(s, ContentReference) else ContentReference.from_dict(s) for s in sources)


def _parse_section(name: str, value: Any, parse: Callable[[Any], T]) -> T:
    try:
        return parse(value)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise InvalidParameterError(name, value, f"a well-formed {name} object ({e})") from e


def content_from_query(query: str, conversation_id: str = "") -> ExtractedContent:
    """Scoring context for query-only requests: the query's own terms."""
    return ExtractedContent(
        source_type=SourceType.BUILDER,
        source_id=conversation_id or "query",
        title=query,
        content=query,
        keywords=tuple(extract_query_terms(query)),
        confidence=1.0,
    )


def query_complexity(query: str) -> str:
    terms = extract_query_terms(query)
    if len(terms) <= 3:
        return "simple"
    if len(terms) <= 6:
        return "moderate"
    return "complex"


def result_diversity(results: Sequence[RankedResult]) -> float:
    """Share of distinct venues (journal, else first author) among results."""
    if not results:
        return 0.0
    venues = {
        (r.journal or (r.authors[0] if r.authors else r.title)).strip().lower()
        for r in results
    }
    return round(len(venues) / len(results), 3)


def search_metadata(query: str, results: Sequence[RankedResult]) -> dict[str, Any]:
    top = results[:SATISFACTION_TOP_N]
    return {
        "query_complexity": query_complexity(query),
        "result_diversity": result_diversity(results),
        "user_satisfaction_estimate": round(sum(r.overall_score for r in top) / len(top), 3) if top else 0.0,
        "average_result_quality": (
            round(sum(r.quality_score for r in results) / len(results), 3) if results else 0.0
        ),
    }


class SearchWorkflow:
    """Orchestrates content extraction, search, ranking and learning."""

    def __init__(
        self,
        optimizer: PerformanceOptimizer,
        extractor: ContentExtractor,
        generator: QueryGenerator,
        client: ScholarClient,
        scorer: ResultScorer,
        detector: DuplicateDetector,
        learning: FeedbackLearningSystem,
        config: WorkflowConfig | None = None,
    ) -> None:
        self._optimizer = optimizer
        self._extractor = extractor
        self._generator = generator
        self._client = client
        self._scorer = scorer
        self._detector = detector
        self._learning = learning
        self.config = config or WorkflowConfig()
        self.stage_metrics = StageMetrics()
        # Ranked results held for get_next_batch, keyed by session id
        self._sessions: TTLCache[str, list[RankedResult]] = TTLCache(maxsize=MAX_SESSIONS, ttl=SESSION_TTL_SECONDS)

    # =========================================================================
    # Public API
    # =========================================================================

    async def execute(self, raw_request: WorkflowRequest | dict[str, Any]) -> dict[str, Any]:
        start = time.perf_counter()
        timings: dict[str, float] = {}
        request: WorkflowRequest | None = None
        ranked: list[RankedResult] | None = None
        search_query = ""
        try:
            with self._stage(STAGE_VALIDATION, timings):
                request = (
                    WorkflowRequest.from_dict(raw_request) if isinstance(raw_request, dict) else raw_request
                )
                self._validate(request)
                search_query = request.query or ""

            with self._stage(STAGE_CONTENT_EXTRACTION, timings):
                contents = await self._extract(request)

            with self._stage(STAGE_QUERY_GENERATION, timings):
                search_query, queries = self._queries(request, contents)

            with self._stage(STAGE_SEARCH, timings):
                results = await self._optimizer.get_or_search(
                    search_query,
                    request.filters,
                    lambda: self._client.search_with_filters(search_query, request.filters),
                )

            with self._stage(STAGE_RESULT_PROCESSING, timings):
                ranked = self._rank(results, contents, request.filters)

            with self._stage(STAGE_DUPLICATE_DETECTION, timings):
                deduplicated, groups = self._detector.deduplicate(ranked)
                ranked = assign_ranks(deduplicated)

            with self._stage(STAGE_FEEDBACK_APPLICATION, timings):
                if request.user_id:
                    ranked = await self._learning.apply_feedback_based_ranking(request.user_id, ranked)
        except StageFailureError as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.exception(f"Search workflow failed at {e.stage}")
            if self.config.partial_results_on_failure and request is not None and ranked is not None:
                return self._response(
                    request, search_query, [], [], ranked, [], timings, elapsed_ms, warnings=[str(e)]
                )
            return {
                "success": False,
                "error": f"{WORKFLOW_ERROR_PREFIX}: {e}",
                "processingTime": round(elapsed_ms, 1),
            }

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Search workflow completed: {len(ranked)} results for '{search_query}' in {elapsed_ms:.0f}ms"
        )
        return self._response(request, search_query, queries, contents, ranked, groups, timings, elapsed_ms)

    def get_next_batch(self, session_id: str) -> dict[str, Any]:
        """
        Next slice of a previous ``execute`` result.

        Raises:
            NotFoundError: unknown or expired session
        """
        results = self._sessions.get(session_id)
        if results is None:
            raise NotFoundError("Search session", session_id)
        batch = self._optimizer.get_next_batch(session_id, results)
        return {
            "success": True,
            "sessionId": session_id,
            "results": [r.to_dict() for r in batch.batch],
            "loaded_results": batch.state.loaded_results,
            "has_more": batch.state.has_more,
            "isComplete": batch.is_complete,
        }

    def close_session(self, session_id: str) -> bool:
        held = self._sessions.pop(session_id, None) is not None
        return self._optimizer.cleanup_progressive_loading(session_id) or held

    async def record_feedback(self, feedback: UserFeedback) -> None:
        await self._learning.record_feedback(feedback)

    def get_performance_metrics(self) -> dict[str, Any]:
        return {
            "optimizer": self._optimizer.get_metrics(),
            "stages": self.stage_metrics.snapshot(),
        }

    # =========================================================================
    # Stages
    # =========================================================================

    @contextmanager
    def _stage(self, name: str, timings: dict[str, float]) -> Iterator[None]:
        stage_start = time.perf_counter()
        try:
            yield
        except StageFailureError:
            raise
        except Exception as e:
            raise StageFailureError(name, e) from e
        finally:
            elapsed_ms = (time.perf_counter() - stage_start) * 1000
            timings[name] = elapsed_ms
            self.stage_metrics.record(name, elapsed_ms)
            logger.debug(f"[STAGE] {name}: {elapsed_ms:.1f}ms")

    def _validate(self, request: WorkflowRequest) -> None:
        if not request.content_sources and not (request.query and request.query.strip()):
            raise InvalidParameterError("contentSources", [], "at least one content source or a query")
        validation = validate_filters(request.filters)
        if not validation.is_valid:
            raise InvalidParameterError("filters", request.filters.to_dict(), "; ".join(validation.errors))

    async def _extract(self, request: WorkflowRequest) -> list[ExtractedContent]:
        if request.content_sources:
            return await self._extractor.extract_many(request.content_sources, request.conversation_id)
        return [content_from_query((request.query or "").strip(), request.conversation_id)]

    def _queries(
        self,
        request: WorkflowRequest,
        contents: Sequence[ExtractedContent],
    ) -> tuple[str, list[SearchQuery]]:
        """Return the query to search plus any generated queries."""
        if request.query and request.query.strip():
            query = request.query.strip()
            validation = validate_query(query)
            if not validation.is_valid:
                raise InvalidQueryError(query, "; ".join(validation.issues))
            return query, []

        queries = self._optimizer.get_cached_query_generation(contents, request.query_options)
        if queries is None:
            generation_start = time.perf_counter()
            queries = self._generator.generate_queries(contents, request.query_options)
            self._optimizer.record_query_generation_time((time.perf_counter() - generation_start) * 1000)
            self._optimizer.cache_query_generation(contents, request.query_options, queries)
        else:
            logger.debug(f"Query generation cache hit for {len(contents)} sources")
        return queries[0].query, queries

    def _rank(
        self,
        results: Sequence[ScholarSearchResult],
        contents: Sequence[ExtractedContent],
        filters: SearchFilters,
    ) -> list[RankedResult]:
        filtered = apply_filters(results, filters)
        ranked = self._scorer.rank_results(filtered, combine_contents(contents))
        if filters.sort_by is not SortBy.RELEVANCE:
            ranked = assign_ranks(sort_results(ranked, filters.sort_by))
        return ranked

    # =========================================================================
    # Response
    # =========================================================================

    def _response(
        self,
        request: WorkflowRequest,
        search_query: str,
        queries: Sequence[SearchQuery],
        contents: Sequence[ExtractedContent],
        ranked: list[RankedResult],
        groups: Sequence[DuplicateGroup],
        timings: dict[str, float],
        elapsed_ms: float,
        *,
        warnings: list[str] | None = None,
    ) -> dict[str, Any]:
        session_id = request.session_id or f"search-{uuid.uuid4().hex[:12]}"
        self._sessions[session_id] = ranked
        self._optimizer.initialize_progressive_loading(session_id, len(ranked), self.config.progressive_batch_size)
        batch = self._optimizer.get_next_batch(session_id, ranked)

        performance = {key: round(timings.get(stage, 0.0), 1) for stage, key in PERFORMANCE_METRIC_KEYS.items()}
        performance["total_time"] = round(elapsed_ms, 1)

        response: dict[str, Any] = {
            "success": True,
            "results": [r.to_dict() for r in batch.batch],
            "total_results": len(ranked),
            "loaded_results": batch.state.loaded_results,
            "has_more": batch.state.has_more,
            "sessionId": session_id,
            "processingTime": round(elapsed_ms, 1),
            "learningApplied": any(r.learning_adjustments is not None for r in ranked),
            "performance_metrics": performance,
            "search_metadata": search_metadata(search_query, ranked),
            "query": search_query,
            "originalQuery": request.query,
            "generatedQueries": [q.to_dict() for q in queries],
            "extractedContent": [c.to_dict() for c in contents],
            "filters": request.filters.to_dict(),
            "duplicateGroups": [g.to_dict() for g in groups],
            "progressive_loading_session": batch.state.to_dict(),
        }
        if warnings:
            response["warnings"] = warnings
        return response
