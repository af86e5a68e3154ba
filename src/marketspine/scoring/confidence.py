"""
Data confidence (0..100), independent of the score's magnitude.

    breadth       sources + approvals, 5 each, max 30
    freshness     enriched ≤7d 25, ≤30d 15, ≤90d 5; scored ≤1d 10, ≤7d 5
    approvals     approved claim 15; approved submissions 2 each, max 10
    enrichment    enrich_version > 1: 10; enriched within 30d: 10
    completeness  revenue, profit, employees, website, description: 2 each
"""

from __future__ import annotations

from datetime import datetime

from marketspine.scoring.facts import CompanyFacts
from marketspine.scoring.normalize import clamp, whole_days_since

MIN_DESCRIPTION_LENGTH = 40


def completeness_fields(facts: CompanyFacts) -> int:
    return sum(
        (
            facts.revenue is not None,
            facts.profit is not None,
            facts.employees is not None,
            bool(facts.website),
            len((facts.description or "").strip()) >= MIN_DESCRIPTION_LENGTH,
        )
    )


def compute_confidence(facts: CompanyFacts, now: datetime) -> int:
    score = 0

    breadth = facts.source_count + facts.approved_submissions + facts.approved_claims
    score += min(30, breadth * 5)

    enriched_days = whole_days_since(facts.last_enriched_at, now)
    if enriched_days is not None:
        if enriched_days <= 7:
            score += 25
        elif enriched_days <= 30:
            score += 15
        elif enriched_days <= 90:
            score += 5

    scored_days = whole_days_since(facts.last_scored_at, now)
    if scored_days is not None:
        if scored_days <= 1:
            score += 10
        elif scored_days <= 7:
            score += 5

    if facts.approved_claims > 0:
        score += 15
    if facts.approved_submissions > 0:
        score += min(10, facts.approved_submissions * 2)

    if facts.enrich_version is not None and facts.enrich_version > 1:
        score += 10
    if enriched_days is not None and enriched_days <= 30:
        score += 10

    score += min(10, completeness_fields(facts) * 2)
    return int(clamp(score, 0, 100))


__all__ = ["compute_confidence", "completeness_fields"]
