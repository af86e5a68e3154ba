"""
Abuse signals and the integrity score derived from them.

Signals:
    SUBMISSION_SPIKE       more than 5 submissions in the last 7 days
    COORDINATED_CLAIMS     claims from more than 3 distinct users
    ENRICHMENT_FAILURES    enrichment attempted but stale for over 30 days
    ABNORMAL_OSCILLATIONS  at least 3 reversals with swings of 10+ points
                           within the last 30 score points
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from marketspine.scoring.facts import CompanyFacts
from marketspine.scoring.normalize import clamp, days_since

SUBMISSION_SPIKE_THRESHOLD = 5
COORDINATED_CLAIMS_THRESHOLD = 3
ENRICHMENT_STALE_DAYS = 30
OSCILLATION_SWING = 10
OSCILLATION_REVERSALS = 3
OSCILLATION_MIN_POINTS = 4
OSCILLATION_WINDOW = 30

DEDUCTIONS = {
    "SUBMISSION_SPIKE": 20,
    "COORDINATED_CLAIMS": 25,
    "ENRICHMENT_FAILURES": 15,
    "ABNORMAL_OSCILLATIONS": 30,
}
PER_FLAG_DEDUCTION = 10


@dataclass(frozen=True, slots=True)
class AbuseSignals:
    submission_spike: bool = False
    coordinated_claims: bool = False
    enrichment_failures: bool = False
    abnormal_oscillations: bool = False

    def to_flags(self) -> list[str]:
        flags = []
        if self.submission_spike:
            flags.append("SUBMISSION_SPIKE")
        if self.coordinated_claims:
            flags.append("COORDINATED_CLAIMS")
        if self.enrichment_failures:
            flags.append("ENRICHMENT_FAILURES")
        if self.abnormal_oscillations:
            flags.append("ABNORMAL_OSCILLATIONS")
        return flags


def count_reversals(scores: Sequence[int], swing: int = OSCILLATION_SWING) -> int:
    """Direction changes where both adjacent moves are at least ``swing``."""
    reversals = 0
    for previous, current, following in zip(scores, scores[1:], scores[2:]):
        first = current - previous
        second = following - current
        if abs(first) >= swing and abs(second) >= swing and (first > 0) != (second > 0):
            reversals += 1
    return reversals


def has_abnormal_oscillations(scores: Sequence[int]) -> bool:
    window = list(scores)[-OSCILLATION_WINDOW:]
    if len(window) < OSCILLATION_MIN_POINTS:
        return False
    return count_reversals(window) >= OSCILLATION_REVERSALS


def detect_abuse(facts: CompanyFacts, now: datetime) -> AbuseSignals:
    stale = days_since(facts.last_enriched_at, now)
    return AbuseSignals(
        submission_spike=facts.recent_submissions > SUBMISSION_SPIKE_THRESHOLD,
        coordinated_claims=facts.claim_users > COORDINATED_CLAIMS_THRESHOLD,
        enrichment_failures=(
            facts.enrich_version is not None and stale is not None and stale > ENRICHMENT_STALE_DAYS
        ),
        abnormal_oscillations=has_abnormal_oscillations(facts.score_history),
    )


def integrity_score(signals: AbuseSignals, existing_flags: Iterable[str] = ()) -> int:
    """100 minus signal deductions minus 10 per existing flag, clamped to 0..100."""
    score = 100 - sum(DEDUCTIONS[flag] for flag in signals.to_flags())
    score -= PER_FLAG_DEDUCTION * len(list(existing_flags))
    return int(clamp(score, 0, 100))


__all__ = ["AbuseSignals", "detect_abuse", "count_reversals", "has_abnormal_oscillations", "integrity_score"]
