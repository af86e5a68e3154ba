"""Step timing with span propagation."""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from marketspine.logging.context import get_context, get_logger, push_context


def _span_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class TimingResult:
    """Timing of one step, with metrics added while it runs."""

    step: str
    span_id: str = field(default_factory=_span_id)
    parent_span_id: str | None = None
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)

    def stop(self) -> TimingResult:
        if self.ended_at is None:
            self.ended_at = time.perf_counter()
        return self

    @property
    def duration_ms(self) -> float:
        end = self.ended_at if self.ended_at is not None else time.perf_counter()
        return (end - self.started_at) * 1000

    def add_metric(self, key: str, value: Any) -> TimingResult:
        self.metrics[key] = value
        return self

    def to_log_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"duration_ms": round(self.duration_ms, 2), "span_id": self.span_id}
        if self.parent_span_id:
            result["parent_span_id"] = self.parent_span_id
        result.update(self.metrics)
        return result


@contextmanager
def log_step(event: str, log_start: bool = True, level: str = "info", **extra_metrics: Any) -> Iterator[TimingResult]:
    """
    Log ``<event>.start`` / ``<event>.end`` around a block, with timing.

    On exception logs ``<event>.error`` with the error type and message and
    re-raises. The block's span id becomes ``parent_span_id`` of nested steps.

    Usage:
        with log_step("ingest.source", source="SEAP") as timer:
            n = process()
            timer.add_metric("seen", n)
    """
    log = get_logger("marketspine.timing")
    parent_span = get_context().span_id
    timer = TimingResult(step=event, parent_span_id=parent_span, metrics=dict(extra_metrics))
    token = push_context(span_id=timer.span_id, parent_span_id=parent_span, step=event)

    try:
        if log_start:
            log.debug(f"{event}.start", span_id=timer.span_id, **extra_metrics)
        yield timer
    except Exception as e:
        timer.stop()
        log.error(
            f"{event}.error",
            error_type=type(e).__name__,
            error_message=str(e),
            **timer.to_log_dict(),
        )
        raise
    finally:
        timer.stop()
        token.restore()

    getattr(log, level)(f"{event}.end", **timer.to_log_dict())
