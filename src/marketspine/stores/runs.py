"""Run records and per-item error trail.

Both tables are append-mostly audit data for operators. The pipeline
writes them and never reads them back to make decisions.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from marketspine.core.hashing import canonical_json
from marketspine.core.schema import TABLES
from marketspine.core.timestamps import now_iso
from marketspine.stores.base import BaseStore


class RunStatus(str, Enum):
    STARTED = "STARTED"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RunLog(BaseStore):
    """Writes ``ingest_runs`` and ``ingest_item_errors``."""

    RUNS = TABLES["runs"]
    ITEM_ERRORS = TABLES["item_errors"]

    def start(self, run_id: str, job_name: str, *, started_at: str | None = None) -> None:
        self.insert(
            self.RUNS,
            {
                "id": run_id,
                "job_name": job_name,
                "status": RunStatus.STARTED.value,
                "started_at": started_at or now_iso(),
            },
        )
        self.commit()

    def finish(
        self,
        run_id: str,
        status: RunStatus,
        *,
        cursors: dict[str, Any],
        stats: dict[str, Any],
        last_error: str | None = None,
        finished_at: str | None = None,
    ) -> None:
        if status is RunStatus.STARTED:
            raise ValueError("finish() needs a terminal status")
        self.execute(
            f"""
            UPDATE {self.RUNS}
            SET status = ?, finished_at = ?, cursors_json = ?, stats_json = ?, last_error = ?
            WHERE id = ?
            """,
            (
                status.value,
                finished_at or now_iso(),
                canonical_json(cursors),
                canonical_json(stats),
                last_error,
                run_id,
            ),
        )
        self.commit()

    def record_item_error(self, run_id: str, source: str, item_ref: str | None, message: str) -> None:
        self.insert(
            self.ITEM_ERRORS,
            {
                "run_id": run_id,
                "source": source,
                "item_ref": item_ref,
                "message": message[:2000],
                "created_at": now_iso(),
            },
        )

    def get(self, run_id: str) -> dict[str, Any] | None:
        row = self.query_one(f"SELECT * FROM {self.RUNS} WHERE id = ?", (run_id,))
        if row is not None:
            row["cursors"] = json.loads(row.pop("cursors_json"))
            row["stats"] = json.loads(row.pop("stats_json"))
        return row

    def list_recent(self, job_name: str | None = None, limit: int = 20) -> list[dict[str, Any]]:
        if job_name is None:
            return self.query(
                f"SELECT id, job_name, status, started_at, finished_at, last_error "
                f"FROM {self.RUNS} ORDER BY started_at DESC LIMIT ?",
                (limit,),
            )
        return self.query(
            f"SELECT id, job_name, status, started_at, finished_at, last_error "
            f"FROM {self.RUNS} WHERE job_name = ? ORDER BY started_at DESC LIMIT ?",
            (job_name, limit),
        )

    def item_errors(self, run_id: str) -> list[dict[str, Any]]:
        return self.query(
            f"SELECT source, item_ref, message, created_at FROM {self.ITEM_ERRORS} WHERE run_id = ? ORDER BY id",
            (run_id,),
        )


__all__ = ["RunLog", "RunStatus"]
