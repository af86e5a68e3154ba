"""
Execution context carried into every structured log entry.

The orchestrator sets ``job`` and ``run_id`` once; each source loop binds
``source``; ``log_step`` pushes span ids. Everything logged underneath
picks these up through ``add_context_processor`` without passing them
around explicitly.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass
from typing import Any

import structlog


@dataclass
class LogContext:
    """
    Context attached to all log entries.

    Run identity:
        job: Orchestrator job name (e.g. "national")
        run_id: Run record id

    Position:
        source: Source currently being processed (SEAP, EU_FUNDS, ...)
        item_ref: Item currently being processed
        step: Current step name

    Tracing:
        span_id / parent_span_id: Nested ``log_step`` blocks
    """

    job: str | None = None
    run_id: str | None = None
    source: str | None = None
    item_ref: str | None = None
    step: str | None = None
    span_id: str | None = None
    parent_span_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return non-None fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs: Any) -> LogContext:
        """Create a new context with ``kwargs`` layered on top."""
        current = asdict(self)
        current.update({k: v for k, v in kwargs.items() if k in current and v is not None})
        return LogContext(**current)


_log_context: ContextVar[LogContext] = ContextVar("marketspine_log_context")  # noqa: B039


def get_context() -> LogContext:
    """Get the current log context."""
    return _log_context.get(LogContext())


def set_context(**kwargs: Any) -> LogContext:
    """Replace the current context. Use ``bind_context`` to add to it."""
    ctx = LogContext().merge(**kwargs)
    _log_context.set(ctx)
    return ctx


def bind_context(**kwargs: Any) -> LogContext:
    """Merge values into the current context."""
    updated = get_context().merge(**kwargs)
    _log_context.set(updated)
    return updated


def clear_context() -> None:
    """Reset to an empty context."""
    _log_context.set(LogContext())


class _ContextToken:
    """Restores the context that was active before ``push_context``."""

    def __init__(self, token: Token[LogContext]):
        self._token = token

    def restore(self) -> None:
        _log_context.reset(self._token)


def push_context(**kwargs: Any) -> _ContextToken:
    """
    Push context values, returning a token to restore later.

    Usage:
        token = push_context(source="SEAP")
        try:
            process_source()
        finally:
            token.restore()
    """
    token = _log_context.set(get_context().merge(**kwargs))
    return _ContextToken(token)


def add_context_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor merging the current context (explicit keys win)."""
    for key, value in get_context().to_dict().items():
        event_dict.setdefault(key, value)
    return event_dict


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger that includes the execution context."""
    return structlog.get_logger(name)
