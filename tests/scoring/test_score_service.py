"""Tests for recomputing and persisting company scores."""

import pytest

from conftest import FIXED_NOW
from marketspine.core.errors import IntegrityError
from marketspine.scoring import ScoreService
from marketspine.stores import ActivityStore, CompanyStore, ProvenanceLedger, ScoreHistoryStore


@pytest.fixture
def companies(conn):
    return CompanyStore(conn)


@pytest.fixture
def service(conn):
    return ScoreService(conn, clock=lambda: FIXED_NOW)


def _skeleton(companies, tax_id="18547290"):
    company, _ = companies.create_skeleton(tax_id=tax_id, name="Alpha SRL", source_confidence=60)
    return company["id"]


class TestScoreService:
    def test_recompute_writes_scores_and_history(self, conn, companies, service):
        company_id = _skeleton(companies)
        ProvenanceLedger(conn).upsert(company_id, "SEAP", "h1", {})

        result = service.recompute(company_id)

        row = companies.get(company_id)
        assert row["score"] == result.score == 50
        assert row["confidence"] == result.confidence == 5
        assert row["risk_flags"] == ["MISSING_REVENUE", "MISSING_WEBSITE"]
        assert row["stability_profile"] == "MEDIUM"
        assert row["last_scored_at"].startswith("2026-03-01T12:00:00")
        assert ScoreHistoryStore(conn).recent_scores(company_id) == [50]
        assert row["is_skeleton"] is True

    def test_recompute_promotes_enriched_skeleton(self, conn, companies, service):
        company_id = _skeleton(companies)
        conn.execute(
            "UPDATE companies SET revenue = ?, profit = ?, employees = ? WHERE id = ?",
            (10_000_000, 800_000, 40, company_id),
        )
        result = service.recompute(company_id)
        row = companies.get(company_id)
        assert row["is_skeleton"] is False
        assert row["valuation_low"] == result.valuation.low
        assert row["valuation_currency"] == "EUR"

    def test_activity_feeds_abuse_signals(self, conn, companies, service):
        company_id = _skeleton(companies)
        activity = ActivityStore(conn)
        for user in ("u1", "u2", "u3", "u4"):
            activity.record(company_id, "CLAIM", user_id=user)
        result = service.recompute(company_id)
        assert "COORDINATED_CLAIMS" in result.risk_flags
        assert result.integrity_score == 100 - 25 - 20

    def test_stability_ignores_history_older_than_a_week(self, conn, companies, service):
        company_id = _skeleton(companies)
        ProvenanceLedger(conn).upsert(company_id, "SEAP", "h1", {})
        history = ScoreHistoryStore(conn)
        for day, value in enumerate([10, 90, 10, 90], start=10):
            history.append(company_id, value, 5, recorded_at=f"2026-02-{day}T00:00:00Z")
        history.append(company_id, 50, 5, recorded_at="2026-02-28T00:00:00Z")

        result = service.recompute(company_id)

        assert "ABNORMAL_OSCILLATIONS" not in result.risk_flags
        assert companies.get(company_id)["stability_profile"] == "LOW"

    def test_oscillation_within_the_week_is_flagged(self, conn, companies, service):
        company_id = _skeleton(companies)
        history = ScoreHistoryStore(conn)
        for day, value in enumerate([10, 90, 10, 90, 10], start=24):
            history.append(company_id, value, 5, recorded_at=f"2026-02-{day}T00:00:00Z")

        result = service.recompute(company_id)

        assert "ABNORMAL_OSCILLATIONS" in result.risk_flags
        assert companies.get(company_id)["stability_profile"] == "HIGH"

    def test_scores_merge_target(self, companies, service):
        source_id = _skeleton(companies, "10000008")
        target_id = _skeleton(companies, "20000005")
        companies.merge(source_id, target_id)
        service.recompute(source_id)
        assert companies.get(target_id)["score"] == 50
        assert companies.get(source_id)["score"] is None

    def test_unknown_company(self, service):
        with pytest.raises(IntegrityError):
            service.recompute("missing")
