"""
Scholar Search - Academic Literature Discovery Pipeline

Turns a user's source material (idea cards, draft documents) or a ready-made
query into a ranked, de-duplicated list of scholarly papers.

Usage:
    from scholar_search import create_container

    container = create_container({"scholar": {"requests_per_minute": 5}})
    workflow = container.workflow()
    response = await workflow.execute({"query": '"machine learning" AND "NLP"'})

    for paper in response["results"]:
        print(f"{paper['rank']}. {paper['title']}")

Features:
    - Keyword/topic query generation with breadth analysis and refinement
    - Rate-limited scholarly index client with retry and circuit breaker
    - Relevance / quality / confidence scoring
    - DOI / URL / title-author / fuzzy duplicate detection
    - Feedback-driven re-ranking per user
    - Result, content and query caches with progressive loading
"""

from .application.feedback import FeedbackLearningSystem, InMemoryFeedbackStore
from .application.optimizer import PerformanceOptimizer
from .application.pipeline import SearchWorkflow, WorkflowRequest
from .application.search import DuplicateDetector, QueryGenerator, QueryRefiner, ResultScorer
from .container import ApplicationContainer, create_container
from .domain.entities import (
    ExtractedContent,
    RankedResult,
    ScholarSearchResult,
    SearchFilters,
    SearchQuery,
    UserFeedback,
)
from .infrastructure.scholar import ScholarClient
from .shared.exceptions import ScholarSearchError

__version__ = "0.4.0"

__all__ = [
    # Entry points
    "ApplicationContainer",
    "create_container",
    "SearchWorkflow",
    "WorkflowRequest",
    # Services
    "PerformanceOptimizer",
    "ScholarClient",
    "QueryGenerator",
    "QueryRefiner",
    "ResultScorer",
    "DuplicateDetector",
    "FeedbackLearningSystem",
    "InMemoryFeedbackStore",
    # Entities
    "ExtractedContent",
    "SearchQuery",
    "SearchFilters",
    "ScholarSearchResult",
    "RankedResult",
    "UserFeedback",
    # Errors
    "ScholarSearchError",
]
