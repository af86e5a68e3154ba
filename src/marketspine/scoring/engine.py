"""
Deterministic company score.

``score(facts, now=...)`` is a pure function: the same facts and the
same ``now`` always give the same result, which is what makes a score
explainable and testable.

Shape:
    ::

        50 baseline
        + website               +6
        + age                   0..10     linear, saturates at 25 years
        + employees             0..12     log scale, saturates at 2 000
        + revenue               0..18     log scale, saturates at 200 M
        + margin               -8..+8     profit / revenue over -20 %..+30 %
        + profitable            +4
        - loss making          -10
        clamp 0..100

    The numeric weights are tuning knobs; the shape (log-scaled size,
    flat bonuses, flag penalties) is what downstream consumers rely on.

Examples:
    >>> result = score(CompanyFacts(revenue=10_000_000, profit=800_000, employees=40), now=NOW)
    >>> 0 <= result.score <= 100
    True
    >>> "MISSING_WEBSITE" in result.risk_flags
    True

Tags:
    scoring, deterministic, risk-flags, valuation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from marketspine.core.timestamps import utc_now
from marketspine.scoring.abuse import AbuseSignals, detect_abuse, integrity_score
from marketspine.scoring.confidence import compute_confidence
from marketspine.scoring.facts import CompanyFacts
from marketspine.scoring.normalize import clamp, log_norm, norm
from marketspine.scoring.valuation import ValuationRange, estimate_valuation

BASELINE = 50
WEBSITE_BONUS = 6
AGE_WEIGHT = 10
AGE_SATURATION_YEARS = 25
EMPLOYEES_WEIGHT = 12
EMPLOYEES_SATURATION = 2_000
REVENUE_WEIGHT = 18
REVENUE_SATURATION = 200_000_000
MARGIN_FLOOR = -0.2
MARGIN_CEILING = 0.3
MARGIN_SPAN = 16
PROFIT_BONUS = 4
LOSS_PENALTY = 10
LOW_EMPLOYEES = 5


@dataclass(frozen=True)
class ScoreResult:
    score: int
    confidence: int
    risk_flags: frozenset[str]
    integrity_score: int
    valuation: ValuationRange | None = None
    signals: AbuseSignals = field(default_factory=AbuseSignals)
    components: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "confidence": self.confidence,
            "risk_flags": sorted(self.risk_flags),
            "integrity_score": self.integrity_score,
            "valuation": self.valuation.to_dict() if self.valuation else None,
            "components": dict(self.components),
        }


def score_components(facts: CompanyFacts, now: datetime) -> dict[str, int]:
    components = {"baseline": BASELINE}
    if facts.website:
        components["website"] = WEBSITE_BONUS
    if facts.founded_year is not None:
        age = now.year - facts.founded_year
        components["age"] = round(AGE_WEIGHT * norm(age, 0, AGE_SATURATION_YEARS))
    if facts.employees is not None:
        components["employees"] = round(EMPLOYEES_WEIGHT * log_norm(facts.employees, EMPLOYEES_SATURATION))
    if facts.revenue is not None:
        components["revenue"] = round(REVENUE_WEIGHT * log_norm(facts.revenue, REVENUE_SATURATION))
    if facts.profit is not None:
        if facts.revenue is not None and facts.revenue > 0:
            margin = facts.profit / facts.revenue
            components["margin"] = round(-MARGIN_SPAN / 2 + MARGIN_SPAN * norm(margin, MARGIN_FLOOR, MARGIN_CEILING))
        if facts.profit > 0:
            components["profit"] = PROFIT_BONUS
        elif facts.profit < 0:
            components["loss"] = -LOSS_PENALTY
    return components


def base_flags(facts: CompanyFacts) -> set[str]:
    flags = set()
    if facts.revenue is None:
        flags.add("MISSING_REVENUE")
    if not facts.website:
        flags.add("MISSING_WEBSITE")
    if facts.employees is not None and facts.employees < LOW_EMPLOYEES:
        flags.add("LOW_EMPLOYEES")
    return flags


def score(facts: CompanyFacts, *, now: datetime | None = None) -> ScoreResult:
    """Score ``facts`` as of ``now`` (defaults to the current time)."""
    now = now or utc_now()
    components = score_components(facts, now)
    total = int(clamp(sum(components.values()), 0, 100))

    flags = base_flags(facts)
    signals = detect_abuse(facts, now)
    integrity = integrity_score(signals, flags)
    flags.update(signals.to_flags())

    return ScoreResult(
        score=total,
        confidence=compute_confidence(facts, now),
        risk_flags=frozenset(flags),
        integrity_score=integrity,
        valuation=estimate_valuation(facts.revenue, facts.profit, facts.employees),
        signals=signals,
        components=components,
    )


__all__ = ["score", "score_components", "base_flags", "ScoreResult", "CompanyFacts"]
