"""
Per-invocation work allowance.

A ``RunBudget`` bounds one orchestrator invocation in two dimensions,
items processed and wall-clock time. It is polled, never preemptive:
callers ask ``is_exhausted()`` between units of work and stop pulling new
work once it answers ``True``. Exhaustion is sticky for the lifetime of
the budget.

Examples:
    >>> budget = RunBudget(max_items=2, max_duration_ms=60_000)
    >>> budget.consume()
    >>> budget.remaining_items()
    1
    >>> budget.consume()
    >>> budget.is_exhausted()
    True
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class BudgetSnapshot:
    """Point-in-time view of a budget, for run summaries."""

    max_items: int
    max_duration_ms: int
    consumed_items: int
    elapsed_ms: int
    exhausted: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_items": self.max_items,
            "max_duration_ms": self.max_duration_ms,
            "consumed_items": self.consumed_items,
            "elapsed_ms": self.elapsed_ms,
            "exhausted": self.exhausted,
        }


class RunBudget:
    """Item-count and wall-clock allowance for one run.

    Args:
        max_items: Maximum units of work
        max_duration_ms: Maximum wall-clock time from construction
        clock: Monotonic seconds source (injectable for tests)
    """

    def __init__(
        self,
        max_items: int,
        max_duration_ms: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_items < 0:
            raise ValueError(f"max_items must be >= 0, got {max_items}")
        if max_duration_ms < 0:
            raise ValueError(f"max_duration_ms must be >= 0, got {max_duration_ms}")
        self.max_items = max_items
        self.max_duration_ms = max_duration_ms
        self._clock = clock
        self._started = clock()
        self._consumed = 0
        self._exhausted = False

    def consume(self, n: int = 1) -> None:
        """Charge ``n`` units of work."""
        if n < 0:
            raise ValueError("cannot refund budget")
        self._consumed += n

    def elapsed_ms(self) -> int:
        return int((self._clock() - self._started) * 1000)

    def remaining_items(self) -> int:
        return max(0, self.max_items - self._consumed)

    def remaining_time_ms(self) -> int:
        return max(0, self.max_duration_ms - self.elapsed_ms())

    def is_exhausted(self) -> bool:
        """True once either dimension has run out; stays true afterwards."""
        if not self._exhausted and (self.remaining_items() == 0 or self.remaining_time_ms() == 0):
            self._exhausted = True
        return self._exhausted

    def snapshot(self) -> BudgetSnapshot:
        return BudgetSnapshot(
            max_items=self.max_items,
            max_duration_ms=self.max_duration_ms,
            consumed_items=self._consumed,
            elapsed_ms=self.elapsed_ms(),
            exhausted=self.is_exhausted(),
        )

    def __repr__(self) -> str:
        return (
            f"RunBudget(items={self.remaining_items()}/{self.max_items}, "
            f"time_ms={self.remaining_time_ms()}/{self.max_duration_ms})"
        )


__all__ = ["RunBudget", "BudgetSnapshot"]
