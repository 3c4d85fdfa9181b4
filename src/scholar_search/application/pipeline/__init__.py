"""
Search Pipeline - end-to-end workflow orchestration.
"""

from .workflow import (
    WORKFLOW_ERROR_PREFIX,
    SearchWorkflow,
    WorkflowConfig,
    WorkflowRequest,
    content_from_query,
    search_metadata,
)

__all__ = [
    "SearchWorkflow",
    "WorkflowConfig",
    "WorkflowRequest",
    "WORKFLOW_ERROR_PREFIX",
    "content_from_query",
    "search_metadata",
]
