"""Score history and moderation activity reads used by scoring."""

from __future__ import annotations

from typing import Any

from marketspine.core.schema import TABLES
from marketspine.core.timestamps import now_iso
from marketspine.stores.base import BaseStore

# Oscillation is judged on at most this many points from the last LOOKBACK_DAYS
LOOKBACK_POINTS = 30
LOOKBACK_DAYS = 7


class ScoreHistoryStore(BaseStore):
    TABLE = TABLES["score_history"]

    def append(self, company_id: str, score: int, confidence: int, *, recorded_at: str | None = None) -> None:
        self.insert(
            self.TABLE,
            {
                "company_id": company_id,
                "score": score,
                "confidence": confidence,
                "recorded_at": recorded_at or now_iso(),
            },
        )

    def recent_scores(self, company_id: str, limit: int = LOOKBACK_POINTS, *, since: str | None = None) -> list[int]:
        """Last ``limit`` scores recorded at or after ``since``, oldest first."""
        if since is None:
            rows = self.query(
                f"SELECT score FROM {self.TABLE} WHERE company_id = ? ORDER BY recorded_at DESC, id DESC LIMIT ?",
                (company_id, limit),
            )
        else:
            rows = self.query(
                f"SELECT score FROM {self.TABLE} WHERE company_id = ? AND recorded_at >= ? "
                f"ORDER BY recorded_at DESC, id DESC LIMIT ?",
                (company_id, since, limit),
            )
        return [row["score"] for row in reversed(rows)]


class ActivityStore(BaseStore):
    """Submissions and claims, written by moderation tooling."""

    TABLE = TABLES["activity"]

    def record(
        self,
        company_id: str,
        kind: str,
        *,
        user_id: str | None = None,
        status: str = "PENDING",
        created_at: str | None = None,
    ) -> None:
        self.insert(
            self.TABLE,
            {
                "company_id": company_id,
                "kind": kind,
                "user_id": user_id,
                "status": status,
                "created_at": created_at or now_iso(),
            },
        )

    def count_since(self, company_id: str, kind: str, since: str) -> int:
        return self.scalar(
            f"SELECT COUNT(*) FROM {self.TABLE} WHERE company_id = ? AND kind = ? AND created_at >= ?",
            (company_id, kind, since),
        ) or 0

    def distinct_users(self, company_id: str, kind: str) -> int:
        return self.scalar(
            f"SELECT COUNT(DISTINCT user_id) FROM {self.TABLE} WHERE company_id = ? AND kind = ? AND user_id IS NOT NULL",
            (company_id, kind),
        ) or 0

    def count_approved(self, company_id: str, kind: str) -> int:
        return self.scalar(
            f"SELECT COUNT(*) FROM {self.TABLE} WHERE company_id = ? AND kind = ? AND status = 'APPROVED'",
            (company_id, kind),
        ) or 0

    def summary(self, company_id: str, *, since: str) -> dict[str, Any]:
        return {
            "recent_submissions": self.count_since(company_id, "SUBMISSION", since),
            "claim_users": self.distinct_users(company_id, "CLAIM"),
            "approved_claims": self.count_approved(company_id, "CLAIM"),
            "approved_submissions": self.count_approved(company_id, "SUBMISSION"),
        }


__all__ = ["ScoreHistoryStore", "ActivityStore", "LOOKBACK_POINTS", "LOOKBACK_DAYS"]
