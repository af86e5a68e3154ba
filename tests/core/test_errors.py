"""Tests for the error hierarchy."""

from marketspine.core.errors import (
    ErrorCategory,
    IntegrityError,
    MarketSpineError,
    MergeCycleError,
    ParseError,
    RateLimitError,
    SourceError,
    SourceTimeoutError,
    SourceUnavailableError,
    StorageError,
    is_retryable,
)


class TestErrorHierarchy:
    def test_source_unavailable_is_retryable_source_error(self):
        err = SourceUnavailableError("SEAP export returned 503")
        assert isinstance(err, SourceError)
        assert err.retryable is True
        assert err.category is ErrorCategory.SOURCE

    def test_parse_error_not_retryable(self):
        assert is_retryable(ParseError("bad header")) is False

    def test_merge_cycle_is_integrity_and_storage(self):
        err = MergeCycleError("cycle")
        assert isinstance(err, IntegrityError)
        assert isinstance(err, StorageError)

    def test_rate_limit_default_retry_after(self):
        err = RateLimitError()
        assert err.retry_after == 60
        assert err.category is ErrorCategory.RATE_LIMIT
        assert isinstance(err, SourceUnavailableError)
        assert err.retryable is True

    def test_timeout_is_retryable_source_error(self):
        err = SourceTimeoutError("Registry timed out after 10.0s")
        assert err.category is ErrorCategory.TIMEOUT
        assert isinstance(err, SourceError)
        assert is_retryable(err)
        assert not issubclass(SourceTimeoutError, TimeoutError)

    def test_retryable_override(self):
        assert SourceError("x", retryable=True).retryable is True

    def test_stdlib_connection_errors_are_retryable(self):
        assert is_retryable(ConnectionError("reset"))
        assert not is_retryable(ValueError("nope"))


class TestWithContext:
    def test_known_fields_and_metadata(self):
        err = SourceError("Download failed").with_context(
            source_name="SEAP", url="https://example.test/seap.csv", http_status=502, attempt=2
        )
        assert err.context.source_name == "SEAP"
        assert err.context.http_status == 502
        assert err.context.metadata == {"attempt": 2}

    def test_to_dict(self):
        cause = OSError("disk")
        err = MarketSpineError("boom", cause=cause).with_context(job="national")
        data = err.to_dict()
        assert data["error_type"] == "MarketSpineError"
        assert data["context"] == {"job": "national"}
        assert data["cause"] == "disk"
        assert err.__cause__ is cause

