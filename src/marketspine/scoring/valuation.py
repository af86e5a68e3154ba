"""Indicative valuation range.

Revenue multiple when revenue is known (tighter for loss makers),
per-employee multiple otherwise. Amounts are stored in RON and reported
in EUR. ``low < high`` always holds for a returned range.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

RON_PER_EUR = 5.0
CURRENCY = "EUR"

PROFITABLE_MULTIPLES = (0.7, 1.4)
UNPROFITABLE_MULTIPLES = (0.35, 0.8)
PER_EMPLOYEE_EUR = (20_000, 60_000)


@dataclass(frozen=True, slots=True)
class ValuationRange:
    low: int
    high: int
    currency: str = CURRENCY
    method: str = "revenue_multiple"

    def to_dict(self) -> dict[str, object]:
        return {"low": self.low, "high": self.high, "currency": self.currency, "method": self.method}


def _ordered(low: float, high: float, method: str) -> ValuationRange:
    low_i = max(0, int(round(low)))
    high_i = max(int(round(high)), low_i + 1)
    return ValuationRange(low_i, high_i, CURRENCY, method)


def estimate_valuation(
    revenue: float | None,
    profit: float | None,
    employees: int | None,
) -> ValuationRange | None:
    """Range in EUR, or None when neither revenue nor headcount is known."""
    if revenue is not None and math.isfinite(revenue) and revenue > 0:
        revenue_eur = revenue / RON_PER_EUR
        low_multiple, high_multiple = (
            PROFITABLE_MULTIPLES if profit is not None and profit > 0 else UNPROFITABLE_MULTIPLES
        )
        return _ordered(revenue_eur * low_multiple, revenue_eur * high_multiple, "revenue_multiple")
    if employees is not None and employees > 0:
        low_per, high_per = PER_EMPLOYEE_EUR
        return _ordered(employees * low_per, employees * high_per, "per_employee")
    return None


__all__ = ["ValuationRange", "estimate_valuation", "RON_PER_EUR"]
