"""
Tests for SearchWorkflow - the end-to-end pipeline over a mocked index.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from scholar_search.application.content import ContentExtractor, InMemoryContentSource
from scholar_search.application.feedback import FeedbackLearningSystem, InMemoryFeedbackStore
from scholar_search.application.optimizer import PerformanceOptimizer
from scholar_search.application.pipeline import (
    WORKFLOW_ERROR_PREFIX,
    SearchWorkflow,
    WorkflowConfig,
    WorkflowRequest,
    content_from_query,
    search_metadata,
)
from scholar_search.application.search import DuplicateDetector, QueryGenerator, ResultScorer
from scholar_search.domain.entities import ContentReference, FeedbackAction, SortBy, SourceType, UserFeedback
from scholar_search.infrastructure.scholar import ScholarClient
from scholar_search.shared.exceptions import InvalidParameterError, NotFoundError

QUERY = '"machine learning" AND "NLP"'

IDEA_TEXT = (
    "Transformer models for natural language processing. Machine learning improves "
    "text classification and language understanding."
)


class PageServer:
    """MockTransport handler serving one fixed response."""

    def __init__(self, response: httpx.Response):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


@pytest.fixture
def server(scholar_page):
    return PageServer(httpx.Response(200, text=scholar_page))


@pytest.fixture
def source():
    return InMemoryContentSource({ContentReference(SourceType.IDEAS, "42"): ("NLP idea", IDEA_TEXT)})


@pytest.fixture
def learning():
    return FeedbackLearningSystem(InMemoryFeedbackStore())


@pytest.fixture
def make_workflow(server, source, learning, clock):
    def _create(config=None, *, handler=None, learning_system=None):
        optimizer = PerformanceOptimizer()
        client = ScholarClient(transport=httpx.MockTransport(handler or server), clock=clock, sleep=AsyncMock())
        return SearchWorkflow(
            optimizer=optimizer,
            extractor=ContentExtractor(source, optimizer=optimizer),
            generator=QueryGenerator(),
            client=client,
            scorer=ResultScorer(current_year=2024),
            detector=DuplicateDetector(),
            learning=learning_system or learning,
            config=config,
        )

    return _create


@pytest.fixture
def workflow(make_workflow):
    return make_workflow()


# =============================================================================
# Query requests
# =============================================================================


class TestQueryRequest:
    async def test_end_to_end(self, workflow, server):
        response = await workflow.execute({"query": QUERY})

        assert response["success"] is True
        assert response["total_results"] == 3
        assert [r["rank"] for r in response["results"]] == [1, 2, 3]
        assert response["loaded_results"] == 3
        assert response["has_more"] is False
        assert response["query"] == QUERY
        assert response["originalQuery"] == QUERY
        assert response["generatedQueries"] == []
        assert response["learningApplied"] is False
        assert response["sessionId"].startswith("search-")
        assert server.requests[0].url.params["q"] == QUERY

    async def test_scores_descending(self, workflow):
        response = await workflow.execute({"query": QUERY})
        scores = [r["overallScore"] for r in response["results"]]
        assert scores == sorted(scores, reverse=True)

    async def test_performance_and_metadata(self, workflow):
        response = await workflow.execute({"query": QUERY})

        performance = response["performance_metrics"]
        assert set(performance) == {
            "content_extraction_time",
            "query_generation_time",
            "search_execution_time",
            "result_processing_time",
            "duplicate_detection_time",
            "feedback_application_time",
            "total_time",
        }
        metadata = response["search_metadata"]
        assert metadata["query_complexity"] == "simple"
        assert metadata["result_diversity"] == 1.0
        assert 0.0 < metadata["user_satisfaction_estimate"] <= 1.0

    async def test_repeat_search_served_from_cache(self, workflow, server):
        await workflow.execute({"query": QUERY})
        await workflow.execute({"query": QUERY})
        assert len(server.requests) == 1
        assert workflow.get_performance_metrics()["optimizer"]["cached_searches"] == 1

    async def test_sort_by_citations(self, workflow):
        response = await workflow.execute({"query": QUERY, "filters": {"sortBy": "citations"}})
        assert [r["citations"] for r in response["results"]] == [100000, 80000, 3000]
        assert [r["rank"] for r in response["results"]] == [1, 2, 3]

    async def test_local_filters(self, workflow):
        response = await workflow.execute({"query": QUERY, "filters": {"journals": ["IEEE"]}})
        assert response["total_results"] == 1
        assert response["results"][0]["journal"] == "IEEE Computational Intelligence Magazine"


# =============================================================================
# Content-source requests
# =============================================================================


class TestContentRequest:
    async def test_generated_query_is_searched(self, workflow, server):
        response = await workflow.execute(
            {"conversationId": "conv-1", "contentSources": [{"source": "ideas", "id": "42"}]}
        )

        assert response["success"] is True
        assert len(response["generatedQueries"]) == 1
        assert response["query"] == response["generatedQueries"][0]["query"]
        assert response["originalQuery"] is None
        assert response["extractedContent"][0]["id"] == "42"
        assert server.requests[0].url.params["q"] == response["query"]

    async def test_request_object(self, workflow):
        request = WorkflowRequest(
            conversation_id="conv-1",
            content_sources=(ContentReference(SourceType.IDEAS, "42"),),
        )
        response = await workflow.execute(request)
        assert response["total_results"] == 3


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    async def test_missing_sources_and_query(self, workflow):
        response = await workflow.execute({})
        assert response["success"] is False
        assert response["error"].startswith(f"{WORKFLOW_ERROR_PREFIX}: validation:")
        assert "processingTime" in response

    async def test_invalid_filters(self, workflow):
        response = await workflow.execute({"query": QUERY, "filters": {"maxResults": 0}})
        assert response["error"].startswith(f"{WORKFLOW_ERROR_PREFIX}: validation:")

    @pytest.mark.parametrize(
        "request_data",
        [
            {"query": QUERY, "filters": {"sortBy": "bogus"}},
            {"query": QUERY, "filters": {"dateRange": {"start": 2020}}},
            {"query": QUERY, "filters": {"maxResults": "many"}},
            {"query": QUERY, "queryOptions": {"combineStrategy": "random"}},
            {"contentSources": [{"source": "unknown", "id": "1"}]},
        ],
    )
    async def test_malformed_request(self, workflow, server, request_data):
        response = await workflow.execute(request_data)
        assert response["success"] is False
        assert response["error"].startswith(f"{WORKFLOW_ERROR_PREFIX}: validation: Invalid parameter")
        assert "processingTime" in response
        assert server.requests == []

    async def test_invalid_query(self, workflow):
        response = await workflow.execute({"query": "ab"})
        assert response["error"].startswith(f"{WORKFLOW_ERROR_PREFIX}: query_generation:")

    async def test_search_failure(self, make_workflow):
        failing = PageServer(httpx.Response(503))
        workflow = make_workflow(handler=failing)

        response = await workflow.execute({"query": QUERY})

        assert response["success"] is False
        assert response["error"].startswith("Failed to execute AI search workflow: search:")
        assert len(failing.requests) == 3

    async def test_failure_without_partial_results(self, make_workflow):
        broken = MagicMock()
        broken.apply_feedback_based_ranking = AsyncMock(side_effect=RuntimeError("store offline"))
        workflow = make_workflow(learning_system=broken)

        response = await workflow.execute({"query": QUERY, "userId": "u1"})
        assert response["success"] is False
        assert response["error"].endswith("feedback_application: store offline")

    async def test_partial_results(self, make_workflow):
        broken = MagicMock()
        broken.apply_feedback_based_ranking = AsyncMock(side_effect=RuntimeError("store offline"))
        workflow = make_workflow(WorkflowConfig(partial_results_on_failure=True), learning_system=broken)

        response = await workflow.execute({"query": QUERY, "userId": "u1"})
        assert response["success"] is True
        assert response["total_results"] == 3
        assert response["warnings"] == ["feedback_application: store offline"]


# =============================================================================
# Sessions and feedback
# =============================================================================


class TestSessions:
    async def test_next_batch(self, make_workflow):
        workflow = make_workflow(WorkflowConfig(progressive_batch_size=2))
        response = await workflow.execute({"query": QUERY})
        assert response["loaded_results"] == 2
        assert response["has_more"] is True

        more = workflow.get_next_batch(response["sessionId"])
        assert len(more["results"]) == 1
        assert more["results"][0]["rank"] == 3
        assert more["isComplete"] is True

    async def test_given_session_id(self, workflow):
        response = await workflow.execute({"query": QUERY, "sessionId": "my-session"})
        assert response["sessionId"] == "my-session"
        assert response["progressive_loading_session"]["sessionId"] == "my-session"

    def test_unknown_session(self, workflow):
        with pytest.raises(NotFoundError):
            workflow.get_next_batch("missing")

    async def test_close_session(self, workflow):
        response = await workflow.execute({"query": QUERY})
        assert workflow.close_session(response["sessionId"]) is True
        with pytest.raises(NotFoundError):
            workflow.get_next_batch(response["sessionId"])


class TestFeedback:
    async def test_learning_applied(self, workflow, make_result):
        liked = make_result(title="Attention is all you need", authors=("A Vaswani",), journal="Neural Systems")
        await workflow.record_feedback(UserFeedback("u1", liked, FeedbackAction.ADDED))

        response = await workflow.execute({"query": QUERY, "userId": "u1"})

        assert response["learningApplied"] is True
        assert all("learningAdjustments" in r for r in response["results"])
        attention = next(r for r in response["results"] if r["title"] == "Attention is all you need")
        assert attention["learningAdjustments"]["author_boost"] == pytest.approx(0.3)

    async def test_unknown_user_unchanged(self, workflow):
        response = await workflow.execute({"query": QUERY, "userId": "nobody"})
        assert response["learningApplied"] is False


# =============================================================================
# Helpers
# =============================================================================


class TestHelpers:
    def test_content_from_query(self):
        content = content_from_query(QUERY, "conv-1")
        assert content.source_type is SourceType.BUILDER
        assert content.keywords == ("machine", "learning", "nlp")

    def test_search_metadata(self, make_ranked):
        results = [
            make_ranked("A", overall=0.8, quality=0.6),
            make_ranked("B", overall=0.4, quality=0.2),
        ]
        metadata = search_metadata("graph OR nodes OR edges OR paths", results)
        assert metadata["query_complexity"] == "moderate"
        # both share the default journal
        assert metadata["result_diversity"] == 0.5
        assert metadata["user_satisfaction_estimate"] == pytest.approx(0.6)
        assert metadata["average_result_quality"] == pytest.approx(0.4)

    def test_search_metadata_empty(self):
        metadata = search_metadata("x", [])
        assert metadata["user_satisfaction_estimate"] == 0.0

    def test_request_from_dict(self):
        request = WorkflowRequest.from_dict({"query": "q", "filters": {"sortBy": "date"}, "userId": "u"})
        assert request.filters.sort_by is SortBy.DATE
        assert request.user_id == "u"

    def test_request_from_dict_rejects_bad_filters(self):
        with pytest.raises(InvalidParameterError, match="filters"):
            WorkflowRequest.from_dict({"query": "q", "filters": {"dateRange": {"start": 2020}}})
