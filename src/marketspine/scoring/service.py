"""Recompute and persist a company's score from its stored facts."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from marketspine.core.errors import IntegrityError
from marketspine.core.protocols import Connection
from marketspine.core.timestamps import to_iso8601, utc_now
from marketspine.logging import get_logger
from marketspine.scoring.engine import ScoreResult, score
from marketspine.scoring.facts import CompanyFacts
from marketspine.scoring.stability import score_deltas, stability_profile
from marketspine.stores.companies import CompanyStore
from marketspine.stores.history import LOOKBACK_DAYS, LOOKBACK_POINTS, ActivityStore, ScoreHistoryStore
from marketspine.stores.provenance import ProvenanceLedger

logger = get_logger(__name__)

ACTIVITY_WINDOW_DAYS = 7


class ScoreService:
    """Load facts → score → write derived columns and a history point.

    Does not commit; the caller owns the transaction.
    """

    def __init__(self, conn: Connection, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.companies = CompanyStore(conn)
        self.provenance = ProvenanceLedger(conn)
        self.history = ScoreHistoryStore(conn)
        self.activity = ActivityStore(conn)
        self._clock = clock

    def load_facts(self, company_id: str, now: datetime) -> CompanyFacts:
        row = self.companies.get(company_id)
        if row is None:
            raise IntegrityError(f"Cannot score unknown company {company_id}")
        since = to_iso8601(now - timedelta(days=ACTIVITY_WINDOW_DAYS))
        return CompanyFacts.from_row(
            row,
            source_count=len(self.provenance.sources_for_company(company_id)),
            activity=self.activity.summary(company_id, since=since),
            score_history=self.history.recent_scores(
                company_id, LOOKBACK_POINTS, since=to_iso8601(now - timedelta(days=LOOKBACK_DAYS))
            ),
        )

    def recompute(self, company_id: str) -> ScoreResult:
        """Score the terminal company of ``company_id``'s merge chain."""
        company_id = self.companies.resolve(company_id)
        now = self._clock()
        facts = self.load_facts(company_id, now)
        result = score(facts, now=now)

        profile = stability_profile(score_deltas([*facts.score_history, result.score]))
        valuation = result.valuation
        self.companies.update_scores(
            company_id,
            score=result.score,
            confidence=result.confidence,
            integrity_score=result.integrity_score,
            stability_profile=profile.value,
            risk_flags=result.risk_flags,
            valuation_low=valuation.low if valuation else None,
            valuation_high=valuation.high if valuation else None,
            valuation_currency=valuation.currency if valuation else None,
            last_scored_at=to_iso8601(now),
        )
        self.history.append(company_id, result.score, result.confidence, recorded_at=to_iso8601(now))
        promoted = self.companies.promote_if_eligible(company_id)
        logger.debug(
            "score.recomputed",
            company_id=company_id,
            score=result.score,
            confidence=result.confidence,
            flags=sorted(result.risk_flags),
            promoted=promoted,
        )
        return result
