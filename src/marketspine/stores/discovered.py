"""
Discovery staging area (``discovered_companies``).

One row per (identifier, source). Adapters feed it through
:meth:`DiscoveredStore.upsert_discovery`; the verification stage moves
rows through the status machine:

    ::

        NEW ──► VERIFIED        (terminal)
         │  ──► INVALID         (terminal)
         │  ──► ERROR ──► ...   (retryable until MAX_TRIES, then REJECTED)
         └──► DUPLICATE         (terminal, set by moderation tooling)

Tags:
    staging, discovery, status-machine
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from marketspine.core.hashing import canonical_json
from marketspine.core.schema import TABLES
from marketspine.core.timestamps import new_id, now_iso
from marketspine.stores.base import BaseStore

# Attempts after which an ERROR row is rejected instead of retried
MAX_TRIES = 5


class DiscoveryStatus(str, Enum):
    NEW = "NEW"
    VERIFIED = "VERIFIED"
    INVALID = "INVALID"
    ERROR = "ERROR"
    REJECTED = "REJECTED"
    DUPLICATE = "DUPLICATE"

    @property
    def is_terminal(self) -> bool:
        return self not in (DiscoveryStatus.NEW, DiscoveryStatus.ERROR)


def _decode(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    row["evidence"] = json.loads(row.pop("evidence_json") or "{}")
    row["status"] = DiscoveryStatus(row["status"])
    return row


class DiscoveredStore(BaseStore):
    """Staging rows keyed by (identifier, source)."""

    TABLE = TABLES["discovered"]

    def upsert_discovery(
        self,
        *,
        identifier: str,
        source: str,
        company_name: str | None,
        evidence: dict[str, Any],
        discovered_at: str | None = None,
    ) -> tuple[str, bool]:
        """Record a sighting. Returns ``(record_id, is_new)``.

        A repeat sighting refreshes ``last_seen_at``, the evidence and the
        name (when the new row has one). Status is left alone.
        """
        seen = discovered_at or now_iso()
        evidence_json = canonical_json(evidence)
        cursor = self.execute(
            f"""
            INSERT INTO {self.TABLE} (
                id, identifier, source, status, company_name, evidence_json,
                discovered_at, last_seen_at
            ) VALUES (?, ?, ?, 'NEW', ?, ?, ?, ?)
            ON CONFLICT(identifier, source) DO NOTHING
            """,
            (new_id(), identifier, source, company_name, evidence_json, seen, seen),
        )
        is_new = cursor.rowcount == 1
        if not is_new:
            self.execute(
                f"""
                UPDATE {self.TABLE}
                SET last_seen_at = ?, evidence_json = ?,
                    company_name = COALESCE(?, company_name)
                WHERE identifier = ? AND source = ?
                """,
                (seen, evidence_json, company_name, identifier, source),
            )
        record_id = self.scalar(
            f"SELECT id FROM {self.TABLE} WHERE identifier = ? AND source = ?",
            (identifier, source),
        )
        return record_id, is_new

    def get(self, record_id: str) -> dict[str, Any] | None:
        return _decode(self.query_one(f"SELECT * FROM {self.TABLE} WHERE id = ?", (record_id,)))

    def find(self, identifier: str, source: str) -> dict[str, Any] | None:
        return _decode(
            self.query_one(
                f"SELECT * FROM {self.TABLE} WHERE identifier = ? AND source = ?",
                (identifier, source),
            )
        )

    def begin_attempt(self, record_id: str, now: str | None = None) -> None:
        """Bump ``try_count`` and ``last_tried_at``."""
        self.execute(
            f"UPDATE {self.TABLE} SET try_count = try_count + 1, last_tried_at = ? WHERE id = ?",
            (now or now_iso(), record_id),
        )

    def mark_verified(self, record_id: str, company_id: str) -> None:
        self.execute(
            f"UPDATE {self.TABLE} SET status = ?, linked_company_id = ?, last_error = NULL WHERE id = ?",
            (DiscoveryStatus.VERIFIED.value, company_id, record_id),
        )

    def mark_invalid(self, record_id: str, reason: str) -> None:
        self.execute(
            f"UPDATE {self.TABLE} SET status = ?, last_error = ? WHERE id = ?",
            (DiscoveryStatus.INVALID.value, reason, record_id),
        )

    def mark_error(self, record_id: str, message: str) -> DiscoveryStatus:
        """Record a failed attempt; rows past ``MAX_TRIES`` become REJECTED."""
        tries = self.scalar(f"SELECT try_count FROM {self.TABLE} WHERE id = ?", (record_id,)) or 0
        status = DiscoveryStatus.REJECTED if tries >= MAX_TRIES else DiscoveryStatus.ERROR
        self.execute(
            f"UPDATE {self.TABLE} SET status = ?, last_error = ? WHERE id = ?",
            (status.value, message[:1000], record_id),
        )
        return status

    def retryable(self, source: str, limit: int) -> list[dict[str, Any]]:
        """NEW and ERROR rows still under ``MAX_TRIES``, least recently tried first.

        Never-tried rows (``last_tried_at`` NULL) come before everything else.
        """
        if limit <= 0:
            return []
        rows = self.query(
            f"""
            SELECT * FROM {self.TABLE}
            WHERE source = ? AND status IN (?, ?) AND try_count < ?
            ORDER BY last_tried_at IS NOT NULL, last_tried_at, discovered_at, id
            LIMIT ?
            """,
            (source, DiscoveryStatus.NEW.value, DiscoveryStatus.ERROR.value, MAX_TRIES, limit),
        )
        return [_decode(row) for row in rows]

    def counts_by_status(self, source: str | None = None) -> dict[str, int]:
        if source is None:
            rows = self.query(f"SELECT status, COUNT(*) AS n FROM {self.TABLE} GROUP BY status")
        else:
            rows = self.query(
                f"SELECT status, COUNT(*) AS n FROM {self.TABLE} WHERE source = ? GROUP BY status",
                (source,),
            )
        return {row["status"]: row["n"] for row in rows}

    def count(self) -> int:
        return self.scalar(f"SELECT COUNT(*) FROM {self.TABLE}") or 0


__all__ = ["DiscoveredStore", "DiscoveryStatus", "MAX_TRIES"]
