"""Numeric helpers shared by the scoring modules."""

from __future__ import annotations

import math
from datetime import datetime


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def norm(value: float | None, low: float, high: float) -> float:
    """Min-max normalise into 0..1. Missing or non-finite input → 0."""
    if value is None or not math.isfinite(value) or high == low:
        return 0.0
    return clamp((value - low) / (high - low), 0.0, 1.0)


def log_norm(value: float | None, maximum: float) -> float:
    """Diminishing-returns normalisation: ``log10(v + 1) / log10(max + 1)``."""
    if value is None or not math.isfinite(value) or maximum <= 0:
        return 0.0
    bounded = clamp(value, 0.0, maximum)
    return math.log10(bounded + 1) / math.log10(maximum + 1)


def days_since(moment: datetime | None, now: datetime) -> float | None:
    if moment is None:
        return None
    return (now - moment).total_seconds() / 86400


def whole_days_since(moment: datetime | None, now: datetime) -> int | None:
    days = days_since(moment, now)
    return None if days is None else math.floor(days)


__all__ = ["clamp", "norm", "log_norm", "days_since", "whole_days_since"]
