"""
Application DI Container (dependency-injector).

Owns one instance of every long-lived service: the shared
``PerformanceOptimizer``, the rate-limited ``ScholarClient``, the search
engines, the feedback store and the ``SearchWorkflow`` wired from them.

Usage::

    from scholar_search.container import ApplicationContainer, DEFAULT_CONFIG

    container = ApplicationContainer()
    container.config.from_dict(DEFAULT_CONFIG)
    container.config.scholar.requests_per_minute.from_value(5)

    workflow = container.workflow()

    # Supply the surrounding application's content store:
    container.content_source.override(providers.Object(my_source))

    # In tests, replace the HTTP client:
    container.scholar_client.override(providers.Object(mock_client))
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from dependency_injector import containers, providers

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "scholar": {
        "base_url": "https://scholar.google.com/scholar",
        "timeout": 30.0,
        "requests_per_minute": 10,
        "requests_per_hour": 100,
        "max_retries": 3,
        "base_delay": 1.0,
        "max_delay": 30.0,
    },
    "optimizer": {
        "search_cache": {"max_entries": 200, "ttl_seconds": 3600, "max_access_count": 10},
        "content_cache": {"max_entries": 500, "ttl_seconds": 14400, "max_access_count": 20},
        "query_cache": {"max_entries": 300, "ttl_seconds": 7200, "max_access_count": 15},
        "tick_interval": 1.0,
        "tasks_per_tick": 3,
        "task_max_retries": 3,
    },
    "feedback": {
        "max_events_per_user": 1000,
    },
    "workflow": {
        "progressive_batch_size": 10,
        "partial_results_on_failure": False,
    },
}


def _create_optimizer(settings: dict[str, Any] | None) -> object:
    """Lazy factory for PerformanceOptimizer (avoids top-level import)."""
    from scholar_search.application.optimizer import OptimizerConfig, PerformanceOptimizer

    return PerformanceOptimizer(OptimizerConfig.from_dict(settings))


def _create_scholar_client(settings: dict[str, Any] | None) -> object:
    """Lazy factory for ScholarClient."""
    from scholar_search.infrastructure.scholar import ScholarClient, ScholarClientConfig

    return ScholarClient(ScholarClientConfig.from_dict(settings))


def _create_content_source() -> object:
    from scholar_search.application.content import InMemoryContentSource

    return InMemoryContentSource()


def _create_extractor(source: object, optimizer: object) -> object:
    from scholar_search.application.content import ContentExtractor

    return ContentExtractor(source, optimizer=optimizer)  # type: ignore[arg-type]


def _create_query_generator() -> object:
    from scholar_search.application.search import QueryGenerator

    return QueryGenerator()


def _create_scorer() -> object:
    from scholar_search.application.search import ResultScorer

    return ResultScorer()


def _create_duplicate_detector() -> object:
    from scholar_search.application.search import DuplicateDetector

    return DuplicateDetector()


def _create_feedback_store(settings: dict[str, Any] | None) -> object:
    from scholar_search.application.feedback import InMemoryFeedbackStore

    return InMemoryFeedbackStore(max_events_per_user=int((settings or {}).get("max_events_per_user", 1000)))


def _create_learning_system(store: object) -> object:
    from scholar_search.application.feedback import FeedbackLearningSystem

    return FeedbackLearningSystem(store)  # type: ignore[arg-type]


def _create_workflow(
    optimizer: object,
    extractor: object,
    generator: object,
    client: object,
    scorer: object,
    detector: object,
    learning: object,
    settings: dict[str, Any] | None,
) -> object:
    """Lazy factory for SearchWorkflow."""
    from scholar_search.application.pipeline import SearchWorkflow, WorkflowConfig

    return SearchWorkflow(
        optimizer,  # type: ignore[arg-type]
        extractor,  # type: ignore[arg-type]
        generator,  # type: ignore[arg-type]
        client,  # type: ignore[arg-type]
        scorer,  # type: ignore[arg-type]
        detector,  # type: ignore[arg-type]
        learning,  # type: ignore[arg-type]
        WorkflowConfig.from_dict(settings),
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the literature discovery pipeline.

    Manages creation and lifecycle of all core services:
    - ``optimizer``: caches, background tasks, progressive loading
    - ``scholar_client``: rate-limited scholarly index client
    - ``content_source`` / ``extractor``: source material → ExtractedContent
    - ``query_generator`` / ``scorer`` / ``duplicate_detector``: search engines
    - ``feedback_store`` / ``learning``: feedback history and re-ranking
    - ``workflow``: the end-to-end SearchWorkflow
    """

    config = providers.Configuration()

    optimizer = providers.Singleton(_create_optimizer, settings=config.optimizer)

    scholar_client = providers.Singleton(_create_scholar_client, settings=config.scholar)

    content_source = providers.Singleton(_create_content_source)

    extractor = providers.Singleton(_create_extractor, source=content_source, optimizer=optimizer)

    query_generator = providers.Singleton(_create_query_generator)

    scorer = providers.Singleton(_create_scorer)

    duplicate_detector = providers.Singleton(_create_duplicate_detector)

    feedback_store = providers.Singleton(_create_feedback_store, settings=config.feedback)

    learning = providers.Singleton(_create_learning_system, store=feedback_store)

    workflow = providers.Singleton(
        _create_workflow,
        optimizer=optimizer,
        extractor=extractor,
        generator=query_generator,
        client=scholar_client,
        scorer=scorer,
        detector=duplicate_detector,
        learning=learning,
        settings=config.workflow,
    )


def create_container(overrides: dict[str, Any] | None = None) -> ApplicationContainer:
    """Container loaded with ``DEFAULT_CONFIG`` plus any nested overrides."""
    settings = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and isinstance(settings.get(section), dict):
            settings[section].update(values)
        else:
            settings[section] = values

    container = ApplicationContainer()
    container.config.from_dict(settings)
    logger.debug(f"Container configured with sections: {sorted(settings)}")
    return container


__all__ = ["ApplicationContainer", "DEFAULT_CONFIG", "create_container"]
