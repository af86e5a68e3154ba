"""
Provenance ledger: who asserted what about a company, and when.

One entry per (company, source, content hash). Re-ingesting an identical
row bumps ``last_seen_at`` and nothing else; a changed row (new contract,
new grant) gets its own entry.

Architecture:
    ::

        upsert(company, source, hash, evidence)
              │
              ├─ INSERT ... ON CONFLICT DO NOTHING ── 1 row ──► CREATED
              │
              └─ 0 rows ── UPDATE last_seen_at ─────────────► REFRESHED

Examples:
    >>> ledger = ProvenanceLedger(conn)
    >>> ledger.upsert("c1", "SEAP", "ab12...", {"contractId": "X"})
    <ProvenanceOutcome.CREATED: 'CREATED'>
    >>> ledger.upsert("c1", "SEAP", "ab12...", {"contractId": "X"})
    <ProvenanceOutcome.REFRESHED: 'REFRESHED'>

Guardrails:
    ❌ DON'T: delete entries from ingestion code
    ✅ DO: let administrative tooling own deletion

Tags:
    provenance, lineage, audit, idempotency
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from marketspine.core.hashing import canonical_json
from marketspine.core.schema import TABLES
from marketspine.core.timestamps import now_iso
from marketspine.stores.base import BaseStore

DEFAULT_CONFIDENCE = 70


class ProvenanceOutcome(str, Enum):
    CREATED = "CREATED"
    REFRESHED = "REFRESHED"


class ProvenanceLedger(BaseStore):
    """Append-or-refresh ledger over ``company_provenance``."""

    TABLE = TABLES["provenance"]

    def upsert(
        self,
        company_id: str,
        source: str,
        content_hash: str,
        evidence: dict[str, Any],
        *,
        confidence: int = DEFAULT_CONFIDENCE,
        external_id: str | None = None,
        evidence_url: str | None = None,
        contract_value: float | None = None,
        contract_year: int | None = None,
        contracting_authority: str | None = None,
        now: str | None = None,
    ) -> ProvenanceOutcome:
        seen = now or now_iso()
        cursor = self.execute(
            f"""
            INSERT INTO {self.TABLE} (
                company_id, source, content_hash, evidence_json, confidence,
                first_seen_at, last_seen_at, external_id, evidence_url,
                contract_value, contract_year, contracting_authority
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(company_id, source, content_hash) DO NOTHING
            """,
            (
                company_id,
                source,
                content_hash,
                canonical_json(evidence),
                confidence,
                seen,
                seen,
                external_id,
                evidence_url,
                contract_value,
                contract_year,
                contracting_authority,
            ),
        )
        if cursor.rowcount == 1:
            return ProvenanceOutcome.CREATED

        self.execute(
            f"""
            UPDATE {self.TABLE} SET last_seen_at = ?
            WHERE company_id = ? AND source = ? AND content_hash = ?
            """,
            (seen, company_id, source, content_hash),
        )
        return ProvenanceOutcome.REFRESHED

    def entries_for_company(self, company_id: str) -> list[dict[str, Any]]:
        rows = self.query(
            f"SELECT * FROM {self.TABLE} WHERE company_id = ? ORDER BY first_seen_at, id",
            (company_id,),
        )
        for row in rows:
            row["evidence"] = json.loads(row.pop("evidence_json"))
        return rows

    def sources_for_company(self, company_id: str) -> list[str]:
        """Every source that has ever asserted facts about ``company_id``."""
        rows = self.query(
            f"SELECT DISTINCT source FROM {self.TABLE} WHERE company_id = ? ORDER BY source",
            (company_id,),
        )
        return [row["source"] for row in rows]

    def source_sees_company(self, source: str, company_id: str, *, since: str | None = None) -> bool:
        """Whether ``source`` has sighted ``company_id`` (at or after ``since``)."""
        sql = f"SELECT 1 FROM {self.TABLE} WHERE source = ? AND company_id = ?"
        params: tuple = (source, company_id)
        if since is not None:
            sql += " AND last_seen_at >= ?"
            params = (*params, since)
        return self.scalar(sql + " LIMIT 1", params) is not None

    def count(self, company_id: str | None = None) -> int:
        if company_id is None:
            return self.scalar(f"SELECT COUNT(*) FROM {self.TABLE}") or 0
        return self.scalar(f"SELECT COUNT(*) FROM {self.TABLE} WHERE company_id = ?", (company_id,)) or 0


__all__ = ["ProvenanceLedger", "ProvenanceOutcome", "DEFAULT_CONFIDENCE"]
