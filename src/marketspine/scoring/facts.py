"""The fact set a company is scored from."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from marketspine.core.timestamps import from_iso8601


@dataclass(frozen=True)
class CompanyFacts:
    """Everything scoring looks at, and nothing else.

    Identical facts (and the same ``now``) always give identical scores.
    """

    revenue: float | None = None
    profit: float | None = None
    employees: int | None = None
    website: str | None = None
    description: str | None = None
    founded_year: int | None = None

    last_enriched_at: datetime | None = None
    enrich_version: int | None = None
    last_scored_at: datetime | None = None

    # Breadth and approvals
    source_count: int = 0
    approved_claims: int = 0
    approved_submissions: int = 0

    # Abuse inputs
    recent_submissions: int = 0
    claim_users: int = 0
    score_history: tuple[int, ...] = ()

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        *,
        source_count: int = 0,
        activity: Mapping[str, int] | None = None,
        score_history: Sequence[int] = (),
    ) -> CompanyFacts:
        activity = activity or {}
        return cls(
            revenue=row.get("revenue"),
            profit=row.get("profit"),
            employees=row.get("employees"),
            website=row.get("website"),
            description=row.get("description"),
            founded_year=row.get("founded_year"),
            last_enriched_at=from_iso8601(row.get("last_enriched_at")),
            enrich_version=row.get("enrich_version"),
            last_scored_at=from_iso8601(row.get("last_scored_at")),
            source_count=source_count,
            approved_claims=activity.get("approved_claims", 0),
            approved_submissions=activity.get("approved_submissions", 0),
            recent_submissions=activity.get("recent_submissions", 0),
            claim_users=activity.get("claim_users", 0),
            score_history=tuple(score_history),
        )
