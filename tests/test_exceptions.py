"""Tests for exceptions.py — hierarchy, context, retry helpers."""

from unittest.mock import patch

from scholar_search.shared.exceptions import (
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


class TestScholarSearchError:
    def test_basic_creation(self):
        e = ScholarSearchError("test error")
        assert str(e) == "test error"
        assert e.severity == ErrorSeverity.ERROR
        assert e.category == ErrorCategory.API
        assert e.retryable is False

    def test_to_dict(self):
        ctx = ErrorContext(operation="search", suggestion="s", example="e", retry_after=5.0)
        e = ScholarSearchError("fail", context=ctx, retryable=True)
        d = e.to_dict()
        assert d["error"] == "fail"
        assert d["operation"] == "search"
        assert d["suggestion"] == "s"
        assert d["example"] == "e"
        assert d["retry_after_seconds"] == 5.0
        assert d["retryable"] is True
        assert d["severity"] == "error"

    def test_to_dict_minimal(self):
        d = ScholarSearchError("fail").to_dict()
        assert "operation" not in d
        assert "suggestion" not in d

    def test_to_agent_message(self):
        ctx = ErrorContext(suggestion="fix it", example="do_it()")
        msg = ScholarSearchError("fail", context=ctx, retryable=True).to_agent_message()
        assert "**Error**: fail" in msg
        assert "fix it" in msg
        assert "`do_it()`" in msg
        assert "retryable" in msg

    def test_to_agent_message_retry_after(self):
        ctx = ErrorContext(retry_after=2.5)
        msg = ScholarSearchError("slow down", context=ctx, retryable=True).to_agent_message()
        assert "Retry after 2.5 seconds" in msg


class TestAPIErrors:
    def test_rate_limit(self):
        e = RateLimitError(retry_after=12.0, status_code=429)
        assert isinstance(e, APIError)
        assert e.retryable is True
        assert e.retry_after == 12.0
        assert e.context.retry_after == 12.0
        assert e.severity == ErrorSeverity.TRANSIENT
        assert e.status_code == 429

    def test_rate_limit_keeps_suggestion(self):
        e = RateLimitError(context=ErrorContext(suggestion="custom"))
        assert e.context.suggestion == "custom"

    def test_network_error(self):
        e = NetworkError("boom")
        assert e.category == ErrorCategory.NETWORK
        assert e.retryable is True

    def test_network_error_not_retryable(self):
        e = NetworkError("HTTP 404", retryable=False, status_code=404)
        assert e.retryable is False
        assert e.status_code == 404

    def test_timeout_is_network_error(self):
        e = RequestTimeoutError()
        assert isinstance(e, NetworkError)
        assert e.retryable is True
        assert e.severity == ErrorSeverity.TRANSIENT

    def test_service_unavailable_prefix(self):
        e = ServiceUnavailableError("down", status_code=503)
        assert str(e) == "Scholar: down"
        assert e.retryable is True

    def test_access_blocked(self):
        e = AccessBlockedError(status_code=403)
        assert e.retryable is False
        assert e.severity == ErrorSeverity.CRITICAL


class TestValidationErrors:
    def test_invalid_query(self):
        e = InvalidQueryError("", "Search query cannot be empty")
        assert isinstance(e, ValidationError)
        assert str(e) == "Invalid query: Search query cannot be empty"
        assert e.context.input_value == ""
        assert e.category == ErrorCategory.VALIDATION
        assert e.retryable is False

    def test_invalid_content(self):
        e = InvalidContentError("no terms", source_id="idea-1")
        assert "Invalid content: no terms" in str(e)
        assert e.context.input_value == "idea-1"

    def test_invalid_content_default(self):
        assert "No content provided" in str(InvalidContentError())

    def test_invalid_parameter(self):
        e = InvalidParameterError("batch_size", 0, "a positive integer")
        assert e.param_name == "batch_size"
        assert "Invalid parameter 'batch_size': 0" in str(e)
        assert e.context.suggestion == "Expected a positive integer"


class TestDataErrors:
    def test_not_found(self):
        e = NotFoundError("Search session", "abc")
        assert isinstance(e, DataError)
        assert str(e) == "Search session not found: abc"
        assert e.identifier == "abc"

    def test_not_found_without_identifier(self):
        assert str(NotFoundError("Entry")) == "Entry not found"

    def test_parse_error_with_source(self):
        assert str(ParseError("bad html", source="scholar")) == "Parse error (scholar): bad html"

    def test_stage_failure(self):
        cause = RateLimitError("quota exhausted")
        e = StageFailureError("search", cause)
        assert str(e) == "search: quota exhausted"
        assert e.stage == "search"
        assert e.cause is cause
        assert e.context.operation == "search"

    def test_configuration_error(self):
        e = ConfigurationError("bad")
        assert e.category == ErrorCategory.CONFIGURATION
        assert e.retryable is False


class TestRetryHelpers:
    def test_retryable_hierarchy(self):
        assert is_retryable_error(NetworkError()) is True
        assert is_retryable_error(RateLimitError()) is True
        assert is_retryable_error(InvalidQueryError("")) is False
        assert is_retryable_error(AccessBlockedError()) is False

    def test_retryable_plain_exceptions(self):
        assert is_retryable_error(Exception("Connection reset by peer")) is True
        assert is_retryable_error(Exception("read timeout")) is True
        assert is_retryable_error(ValueError("bad value")) is False

    def test_delay_grows_exponentially(self):
        with patch("scholar_search.shared.exceptions.random.uniform", return_value=0.0):
            assert get_retry_delay(NetworkError(), 0) == 1.0
            assert get_retry_delay(NetworkError(), 1) == 2.0
            assert get_retry_delay(NetworkError(), 2) == 4.0

    def test_delay_uses_retry_after(self):
        with patch("scholar_search.shared.exceptions.random.uniform", return_value=0.0):
            assert get_retry_delay(RateLimitError(retry_after=3.0), 0) == 3.0

    def test_delay_capped(self):
        assert get_retry_delay(NetworkError(), 10) == 30.0
