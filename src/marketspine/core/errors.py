"""
Typed error hierarchy for the ingestion pipeline.

Every failure the pipeline can classify carries a category, a retry
hint and structured context, so that the orchestrator can turn it into
data (a status, a counter, an item-error row) instead of aborting.

Manifesto:
    Ingestion runs against flaky public registries. A timeout on one
    procurement row must not look the same as a broken lock backend.

    - **Categorised:** NETWORK, SOURCE, PARSE, LOCK, STORAGE, ...
    - **Retry-aware:** ``retryable`` defaults per subclass
    - **Contextual:** ``with_context(source_name=..., item_ref=...)``
    - **Chained:** ``cause=`` keeps the original exception

Architecture:
    ::

        MarketSpineError
        ├── NetworkError
        ├── SourceError ────── SourceUnavailableError ─── SourceTimeoutError, RateLimitError
        │                  └── ParseError
        ├── ConfigError
        ├── LockError
        └── StorageError ───── IntegrityError, MergeCycleError

Examples:
    >>> err = SourceUnavailableError("SEAP export returned 503")
    >>> err.with_context(source_name="SEAP").retryable
    True
    >>> is_retryable(ParseError("bad header"))
    False

Guardrails:
    ❌ DON'T: raise for a single malformed upstream row
    ✅ DO: yield an error item and keep going

    ❌ DON'T: swallow the original exception
    ✅ DO: pass it as ``cause=``

Tags:
    error-handling, exception-hierarchy, retry-logic, ingestion

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for routing and retry decisions."""

    # Infrastructure
    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    STORAGE = "STORAGE"

    # Source data
    SOURCE = "SOURCE"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    PARSE = "PARSE"

    # Configuration
    CONFIG = "CONFIG"

    # Coordination
    LOCK = "LOCK"

    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        job: Orchestrator job name
        run_id: Run record identifier
        source_name: Source the failure came from (SEAP, EU_FUNDS, ...)
        item_ref: Reference of the failing item (row offset, identifier)
        url: Upstream URL, if any
        http_status: Upstream HTTP status, if any
        metadata: Anything else worth logging
    """

    job: str | None = None
    run_id: str | None = None
    source_name: str | None = None
    item_ref: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return non-empty fields, with metadata flattened in."""
        result: dict[str, Any] = {}
        for key in ("job", "run_id", "source_name", "item_ref", "url", "http_status"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class MarketSpineError(Exception):
    """
    Base class for all pipeline errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> MarketSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SourceError("Download failed").with_context(
                source_name="SEAP",
                url="https://data.gov.ro/seap.csv",
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dictionary for logging and audit rows."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# NETWORK
# =============================================================================


class NetworkError(MarketSpineError):
    """Connection refused, DNS failure, reset by peer, or an error status from a sink."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


# =============================================================================
# SOURCE ERRORS
# =============================================================================


class SourceError(MarketSpineError):
    """A data source could not deliver."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class SourceUnavailableError(SourceError):
    """The whole source is unreachable or returned an error status."""

    default_retryable = True


class SourceTimeoutError(SourceUnavailableError):
    """A source request exceeded its timeout."""

    default_category = ErrorCategory.TIMEOUT


class RateLimitError(SourceUnavailableError):
    """The source asked us to slow down (HTTP 429)."""

    default_category = ErrorCategory.RATE_LIMIT

    def __init__(self, message: str = "Rate limit exceeded", *, retry_after: int | None = 60, **kwargs: Any):
        super().__init__(message, retry_after=retry_after, **kwargs)


class ParseError(SourceError):
    """Upstream content could not be parsed."""

    default_category = ErrorCategory.PARSE


# =============================================================================
# CONFIG / COORDINATION
# =============================================================================


class ConfigError(MarketSpineError):
    """Invalid or missing configuration."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class LockError(MarketSpineError):
    """A lock could not be acquired where the caller required it."""

    default_category = ErrorCategory.LOCK
    default_retryable = True


# =============================================================================
# STORAGE
# =============================================================================


class StorageError(MarketSpineError):
    """A store (SQL or KV) failed."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class IntegrityError(StorageError):
    """A stored invariant does not hold."""

    default_category = ErrorCategory.DATABASE


class MergeCycleError(IntegrityError):
    """A merge would create a cycle in the forwarding chain."""


def is_retryable(error: Exception) -> bool:
    """Check whether an exception is worth retrying."""
    if isinstance(error, MarketSpineError):
        return error.retryable
    retryable_types = (
        ConnectionError,
        BrokenPipeError,
        OSError,
    )
    return isinstance(error, retryable_types)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "MarketSpineError",
    "NetworkError",
    "SourceError",
    "SourceUnavailableError",
    "SourceTimeoutError",
    "RateLimitError",
    "ParseError",
    "ConfigError",
    "LockError",
    "StorageError",
    "IntegrityError",
    "MergeCycleError",
    "is_retryable",
]
