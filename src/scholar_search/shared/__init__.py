"""
Shared building blocks for Scholar Search.

Provides:
- Unified exception hierarchy
- Rate limiting, circuit breaker and parallel helpers
- Rolling per-stage latency metrics
"""

from .async_utils import (
    CircuitBreaker,
    RateLimitStatus,
    SlidingWindowRateLimiter,
    gather_with_errors,
)
from .exceptions import (
    AccessBlockedError,
    APIError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidContentError,
    InvalidParameterError,
    InvalidQueryError,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitError,
    RequestTimeoutError,
    ScholarSearchError,
    ServiceUnavailableError,
    StageFailureError,
    ValidationError,
    get_retry_delay,
    is_retryable_error,
)
from .metrics import StageMetrics, StageStats

__all__ = [
    # Exceptions
    "ScholarSearchError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "APIError",
    "RateLimitError",
    "NetworkError",
    "RequestTimeoutError",
    "ServiceUnavailableError",
    "AccessBlockedError",
    "ValidationError",
    "InvalidQueryError",
    "InvalidContentError",
    "InvalidParameterError",
    "DataError",
    "NotFoundError",
    "ParseError",
    "StageFailureError",
    "ConfigurationError",
    "is_retryable_error",
    "get_retry_delay",
    # Async utilities
    "SlidingWindowRateLimiter",
    "RateLimitStatus",
    "CircuitBreaker",
    "gather_with_errors",
    # Metrics
    "StageMetrics",
    "StageStats",
]
