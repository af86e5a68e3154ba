"""Score volatility profile and smoothing."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum


class StabilityProfile(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def score_deltas(scores: Sequence[int]) -> list[int]:
    return [current - previous for previous, current in zip(scores, scores[1:])]


def stability_profile(deltas: Sequence[float]) -> StabilityProfile:
    """LOW: avg < 2 and max < 5; MEDIUM: avg < 5 and max < 10; else HIGH.

    No history is MEDIUM.
    """
    if not deltas:
        return StabilityProfile.MEDIUM
    magnitudes = [abs(d) for d in deltas]
    average = sum(magnitudes) / len(magnitudes)
    largest = max(magnitudes)
    if average < 2 and largest < 5:
        return StabilityProfile.LOW
    if average < 5 and largest < 10:
        return StabilityProfile.MEDIUM
    return StabilityProfile.HIGH


def smooth_ewma(current: int, previous: int | None, alpha: float = 0.3) -> int:
    """Exponentially weighted moving average; lower alpha smooths more."""
    if previous is None:
        return current
    return round(alpha * current + (1 - alpha) * previous)


def smooth_capped(current: int, previous: int | None, max_delta_percent: float = 7) -> int:
    """Limit movement to ``max_delta_percent`` of the previous score."""
    if previous is None:
        return current
    max_delta = round(previous * max_delta_percent / 100)
    delta = current - previous
    if abs(delta) <= max_delta:
        return current
    return previous + (max_delta if delta > 0 else -max_delta)


__all__ = ["StabilityProfile", "score_deltas", "stability_profile", "smooth_ewma", "smooth_capped"]
