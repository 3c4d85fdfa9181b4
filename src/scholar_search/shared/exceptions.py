"""
Unified Exception Hierarchy for Scholar Search.

Every stage of the discovery pipeline raises from this hierarchy so callers
can branch on category and retryability instead of parsing messages.

Exception Hierarchy:
    ScholarSearchError (base)
    ├── APIError
    │   ├── RateLimitError
    │   ├── NetworkError
    │   │   └── RequestTimeoutError
    │   ├── ServiceUnavailableError
    │   └── AccessBlockedError
    ├── ValidationError
    │   ├── InvalidQueryError
    │   ├── InvalidContentError
    │   └── InvalidParameterError
    ├── DataError
    │   ├── NotFoundError
    │   ├── ParseError
    │   └── StageFailureError
    └── ConfigurationError
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """How badly a failure affects the current pipeline run."""
    WARNING = auto()      # Caller input problem; pipeline not touched
    ERROR = auto()        # Stage failed
    CRITICAL = auto()     # Blocked or misconfigured; retrying will not help
    TRANSIENT = auto()    # Quota or outage; clears on its own


class ErrorCategory(Enum):
    """Where in the pipeline an error originates."""
    API = "api"
    VALIDATION = "validation"
    DATA = "data"
    CONFIGURATION = "config"
    NETWORK = "network"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Operation, offending input and a hint for the caller."""
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    example: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ScholarSearchError(Exception):
    """
    Base exception for all Scholar Search errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.API,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Structured form used in workflow warnings and logs."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.operation:
            result["operation"] = self.context.operation
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.example:
            result["example"] = self.context.example
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result

    def to_agent_message(self) -> str:
        """Format as a short Markdown message for display."""
        parts = [f"**Error**: {self}"]

        if self.context.suggestion:
            parts.append(f"**Suggestion**: {self.context.suggestion}")
        if self.context.example:
            parts.append(f"**Example**: `{self.context.example}`")
        if self.retryable:
            if self.context.retry_after:
                parts.append(f"Retry after {self.context.retry_after:.1f} seconds")
            else:
                parts.append("This error is retryable")

        return "\n".join(parts)


# =============================================================================
# API Errors
# =============================================================================

class APIError(ScholarSearchError):
    """Base class for errors talking to the external scholarly index."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        retryable: bool = True,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.API,
            retryable=retryable,
        )
        self.status_code = status_code


class RateLimitError(APIError):
    """Raised when a request quota is exhausted."""

    def __init__(
        self,
        message: str = "Scholar request quota exhausted",
        *,
        retry_after: float = 60.0,
        context: ErrorContext | None = None,
        status_code: int | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(
            ctx,
            suggestion=ctx.suggestion or "Wait for the rate-limit window to clear",
            retry_after=retry_after,
        )
        super().__init__(message, context=ctx, retryable=True, status_code=status_code)
        self.severity = ErrorSeverity.TRANSIENT
        self.retry_after = retry_after


class NetworkError(APIError):
    """Transport failure or unexpected HTTP status from the index."""

    def __init__(
        self,
        message: str = "Could not reach the scholarly index",
        *,
        context: ErrorContext | None = None,
        retryable: bool = True,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, context=context, retryable=retryable, status_code=status_code)
        self.category = ErrorCategory.NETWORK


class RequestTimeoutError(NetworkError):
    """Raised when a request exceeds its timeout."""

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, context=context, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT


class ServiceUnavailableError(APIError):
    """HTTP 5xx from the index; prefixed with the service name."""

    def __init__(
        self,
        message: str = "index temporarily unavailable",
        *,
        service: str = "Scholar",
        context: ErrorContext | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"{service}: {message}", context=context, retryable=True, status_code=status_code)
        self.severity = ErrorSeverity.TRANSIENT


class AccessBlockedError(APIError):
    """Raised when the index refuses access (403, captcha or robot check)."""

    def __init__(
        self,
        message: str = "Access blocked by the scholarly index",
        *,
        context: ErrorContext | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, context=context, retryable=False, status_code=status_code)
        self.severity = ErrorSeverity.CRITICAL


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(ScholarSearchError):
    """Bad caller input: content, query, filters or options. Never retried."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when a search query is invalid or cannot be built."""

    def __init__(
        self,
        query: str | None,
        reason: str = "Query cannot be empty",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(
            ctx,
            input_value=query,
            suggestion=ctx.suggestion or "Pass a query of 3 to 200 characters",
            example=ctx.example or '"machine learning" AND "nlp"',
        )
        super().__init__(f"Invalid query: {reason}", context=ctx)
        self.reason = reason


class InvalidContentError(ValidationError):
    """Raised when extracted content cannot be used for query generation."""

    def __init__(
        self,
        reason: str = "No content provided for query generation",
        *,
        source_id: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(
            ctx,
            input_value=source_id,
            suggestion=ctx.suggestion or "Provide content with keywords or topics",
        )
        super().__init__(f"Invalid content: {reason}", context=ctx)


class InvalidParameterError(ValidationError):
    """A single option or filter value is out of range."""

    def __init__(
        self,
        param_name: str,
        value: Any,
        expected: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(ctx, input_value=value, suggestion=f"Expected {expected}")
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=ctx,
        )
        self.param_name = param_name


# =============================================================================
# Data Errors
# =============================================================================

class DataError(ScholarSearchError):
    """Failures on data the pipeline already holds (sessions, payloads, stages)."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class NotFoundError(DataError):
    """Raised when a requested session or entry does not exist."""

    def __init__(
        self,
        resource: str,
        identifier: str | None = None,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} not found: {identifier}"

        ctx = context or ErrorContext()
        ctx = replace(
            ctx,
            input_value=identifier,
            suggestion=ctx.suggestion or "Start a new search to obtain a fresh session",
        )
        super().__init__(message, context=ctx)
        self.resource = resource
        self.identifier = identifier


class ParseError(DataError):
    """Raised when a payload cannot be parsed at all."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        text = f"Parse error: {message}"
        if source:
            text = f"Parse error ({source}): {message}"
        super().__init__(text, context=context)


class StageFailureError(DataError):
    """Raised by the workflow when one pipeline stage fails irrecoverably."""

    def __init__(
        self,
        stage: str,
        cause: BaseException,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext(operation=stage)
        super().__init__(f"{stage}: {cause}", context=ctx)
        self.stage = stage
        self.cause = cause


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(ScholarSearchError):
    """Invalid cache, client or optimizer settings."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


# =============================================================================
# Retry helpers
# =============================================================================

def is_retryable_error(error: BaseException) -> bool:
    """True for errors worth another request; foreign errors are matched on message."""
    if isinstance(error, ScholarSearchError):
        return error.retryable

    text = str(error).lower()
    transient_markers = (
        "too many requests",
        "temporarily unavailable",
        "service unavailable",
        "connection reset",
        "timeout",
    )
    return any(marker in text for marker in transient_markers)


def get_retry_delay(error: BaseException, attempt: int, base_delay: float = 1.0) -> float:
    """
    Calculate retry delay with exponential backoff.

    Args:
        error: The exception that occurred
        attempt: Current attempt number (0-based)
        base_delay: Delay for the first retry when the error carries no hint

    Returns:
        Delay in seconds before next retry
    """
    if isinstance(error, ScholarSearchError) and error.context.retry_after:
        base_delay = error.context.retry_after

    delay = base_delay * (2 ** attempt)
    jitter = random.uniform(0, 0.1 * delay)

    # Cap at 30 seconds
    return min(delay + jitter, 30.0)
