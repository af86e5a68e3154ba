"""Tests for the per-run item and wall-clock budget."""

import pytest

from marketspine.core.budget import RunBudget


class TestRunBudget:
    def test_fresh_budget(self, clock):
        budget = RunBudget(10, 60_000, clock=clock)
        assert budget.remaining_items() == 10
        assert budget.remaining_time_ms() == 60_000
        assert not budget.is_exhausted()

    def test_items_exhaust(self, clock):
        budget = RunBudget(2, 60_000, clock=clock)
        budget.consume()
        assert not budget.is_exhausted()
        budget.consume()
        assert budget.remaining_items() == 0
        assert budget.is_exhausted()

    def test_time_exhausts(self, clock):
        budget = RunBudget(100, 5_000, clock=clock)
        clock.advance(4)
        assert budget.remaining_time_ms() == 1000
        clock.advance(1)
        assert budget.is_exhausted()

    def test_exhaustion_is_sticky(self, clock):
        budget = RunBudget(100, 1_000, clock=clock)
        clock.advance(2)
        assert budget.is_exhausted()
        clock.now -= 10
        assert budget.is_exhausted()

    def test_remaining_items_never_negative(self, clock):
        budget = RunBudget(1, 1_000, clock=clock)
        budget.consume(3)
        assert budget.remaining_items() == 0

    def test_remaining_items_non_increasing(self, clock):
        budget = RunBudget(5, 60_000, clock=clock)
        seen = []
        while not budget.is_exhausted():
            seen.append(budget.remaining_items())
            budget.consume()
        assert seen == sorted(seen, reverse=True)
        assert len(seen) == 5

    def test_zero_budget_is_exhausted(self, clock):
        assert RunBudget(0, 1_000, clock=clock).is_exhausted()

    def test_negative_values_rejected(self, clock):
        with pytest.raises(ValueError):
            RunBudget(-1, 1_000, clock=clock)
        with pytest.raises(ValueError):
            RunBudget(1, -1, clock=clock)
        with pytest.raises(ValueError):
            RunBudget(1, 1_000, clock=clock).consume(-1)

    def test_snapshot(self, clock):
        budget = RunBudget(3, 10_000, clock=clock)
        budget.consume()
        clock.advance(2)
        snap = budget.snapshot().to_dict()
        assert snap == {
            "max_items": 3,
            "max_duration_ms": 10_000,
            "consumed_items": 1,
            "elapsed_ms": 2000,
            "exhausted": False,
        }
