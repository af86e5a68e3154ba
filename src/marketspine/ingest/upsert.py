"""
Verification & upsert stage.

Takes one staging row, confirms the identifier against the authoritative
registry, then creates-if-absent the company and records provenance.

Architecture:
    ::

        run(record_id, budget)
          │
          ├─ budget exhausted? ───────────────────────► ERROR "Budget exhausted"
          ├─ budget.consume()
          ├─ staging row terminal?
          │     VERIFIED ──► refresh provenance ──────► cached outcome
          │     other    ─────────────────────────────► cached outcome
          ├─ begin_attempt (try_count, last_tried_at)
          ├─ verifier.verify(identifier)
          │     PENDING / ERROR ──► mark_error ───────► ERROR | REJECTED
          │     inactive / unknown ─► mark_invalid ────► INVALID
          ├─ company by tax_id, else skeleton (create-if-absent)
          ├─ provenance upsert (company, source, hash)
          ├─ score recompute (new company, or budget to spare)
          └─ mark_verified ─────────────────────────────► VERIFIED

Any exception raised between verification and scoring is rolled back,
recorded on the staging row and reported as ERROR; the budget unit stays
spent.

Guardrails:
    ❌ DON'T: overwrite fields of an existing company with discovered data
    ✅ DO: link the terminal company of a merge chain

    ❌ DON'T: let a failed attempt refund budget
    ✅ DO: commit once per item so a crash loses at most one item

Tags:
    verification, upsert, provenance, staging, idempotency
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from marketspine.core.budget import RunBudget
from marketspine.core.hashing import hash_row
from marketspine.core.identifiers import normalize_cui
from marketspine.core.protocols import Connection
from marketspine.core.timestamps import to_iso8601, utc_now
from marketspine.logging import get_logger
from marketspine.scoring.service import ScoreService
from marketspine.sources.protocol import nominal_trust
from marketspine.sources.tabular import to_number, to_year
from marketspine.stores.companies import CompanyStore
from marketspine.stores.discovered import DiscoveredStore, DiscoveryStatus
from marketspine.stores.provenance import DEFAULT_CONFIDENCE, ProvenanceLedger, ProvenanceOutcome
from marketspine.verification.protocol import VerificationStatus, Verifier

logger = get_logger(__name__)

# Below this many remaining items, existing companies are not rescored
RESCORE_MIN_REMAINING = 10

_EXTERNAL_ID_KEYS = ("contractId", "fundProjectId", "awardNoticeId")
_AUTHORITY_KEYS = ("authorityName", "programName")
_VALUE_KEYS = ("value", "amount")
_URL_KEYS = ("evidenceUrl", "url")
_YEAR = re.compile(r"\b(1[89]\d\d|2[01]\d\d)\b")


@dataclass(frozen=True)
class UpsertOutcome:
    """Result of one pass through the stage."""

    success: bool
    status: DiscoveryStatus
    company_id: str | None = None
    error: str | None = None
    created: bool = False
    provenance: ProvenanceOutcome | None = None
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "company_id": self.company_id,
            "error": self.error,
            "created": self.created,
            "provenance": self.provenance.value if self.provenance else None,
            "cached": self.cached,
        }


def _date_year(value: Any) -> int | None:
    if value is None:
        return None
    match = _YEAR.search(str(value))
    return int(match.group(1)) if match else None


def _first(evidence: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = evidence.get(key)
        if value not in (None, ""):
            return value
    return None


def provenance_fields(evidence: dict[str, Any]) -> dict[str, Any]:
    """Typed ledger columns pulled out of a source's evidence blob."""
    external_id = _first(evidence, _EXTERNAL_ID_KEYS)
    authority = _first(evidence, _AUTHORITY_KEYS)
    value = _first(evidence, _VALUE_KEYS)
    return {
        "external_id": None if external_id is None else str(external_id),
        "evidence_url": _first(evidence, _URL_KEYS),
        "contract_value": to_number(value),
        "contract_year": to_year(evidence.get("year")) or _date_year(evidence.get("date")),
        "contracting_authority": None if authority is None else str(authority),
    }


class VerifyAndUpsert:
    """Drives staging rows to a terminal or retryable state.

    Args:
        conn: Database connection; committed once per item
        verifier: Authoritative registry collaborator
        score_service: Defaults to a ``ScoreService`` on ``conn``
        clock: UTC clock for timestamps
    """

    def __init__(
        self,
        conn: Connection,
        verifier: Verifier,
        *,
        score_service: ScoreService | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.conn = conn
        self.verifier = verifier
        self.staging = DiscoveredStore(conn)
        self.companies = CompanyStore(conn)
        self.ledger = ProvenanceLedger(conn)
        self.scores = score_service or ScoreService(conn, clock=clock)
        self._clock = clock

    def run(self, record_id: str, budget: RunBudget) -> UpsertOutcome:
        if budget.is_exhausted():
            return UpsertOutcome(False, DiscoveryStatus.ERROR, error="Budget exhausted")
        budget.consume()

        record = self.staging.get(record_id)
        if record is None:
            return UpsertOutcome(False, DiscoveryStatus.ERROR, error=f"Unknown staging record {record_id}")
        if record["status"].is_terminal:
            return self._reenter(record)

        now = to_iso8601(self._clock())
        self.staging.begin_attempt(record_id, now=now)
        self.conn.commit()

        try:
            outcome = self._verify_and_link(record, budget, now)
        except Exception as e:
            self.conn.rollback()
            message = f"{type(e).__name__}: {e}"
            status = self.staging.mark_error(record_id, message)
            self.conn.commit()
            logger.warning(
                "upsert.failed",
                record_id=record_id,
                identifier=record["identifier"],
                status=status.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            return UpsertOutcome(False, status, error=message)

        self.conn.commit()
        return outcome

    def _reenter(self, record: dict[str, Any]) -> UpsertOutcome:
        """Idempotent outcome for a staging row that already finished."""
        status = record["status"]
        if status is not DiscoveryStatus.VERIFIED or record["linked_company_id"] is None:
            return UpsertOutcome(False, status, error=record["last_error"], cached=True)

        company_id = self.companies.resolve(record["linked_company_id"])
        provenance = self._record_provenance(company_id, record, to_iso8601(self._clock()))
        self.conn.commit()
        return UpsertOutcome(True, status, company_id=company_id, provenance=provenance, cached=True)

    def _verify_and_link(self, record: dict[str, Any], budget: RunBudget, now: str) -> UpsertOutcome:
        record_id = record["id"]
        identifier = normalize_cui(record["identifier"])
        if identifier is None:
            self.staging.mark_invalid(record_id, "Invalid CUI")
            return UpsertOutcome(False, DiscoveryStatus.INVALID, error="Invalid CUI")

        result = self.verifier.verify(identifier)
        if result.status is not VerificationStatus.SUCCESS:
            message = result.error_message or f"Verification {result.status.value}"
            status = self.staging.mark_error(record_id, message)
            return UpsertOutcome(False, status, error=message)
        if not result.is_active:
            self.staging.mark_invalid(record_id, "Inactive or unknown entity")
            logger.info("upsert.inactive", identifier=identifier, source=record["source"])
            return UpsertOutcome(False, DiscoveryStatus.INVALID, error="Inactive or unknown entity")

        company, created = self.companies.create_skeleton(
            tax_id=identifier,
            name=result.official_name or record["company_name"],
            source_confidence=nominal_trust(record["source"]),
            is_vat_registered=result.is_vat_registered,
            verified_at=to_iso8601(result.verified_at),
            now=now,
        )
        company_id = self.companies.resolve(company["id"])

        provenance = self._record_provenance(company_id, record, now)

        if created or budget.remaining_items() > RESCORE_MIN_REMAINING:
            self.scores.recompute(company_id)

        self.staging.mark_verified(record_id, company_id)
        logger.debug(
            "upsert.verified",
            identifier=identifier,
            company_id=company_id,
            created=created,
            provenance=provenance.value,
        )
        return UpsertOutcome(True, DiscoveryStatus.VERIFIED, company_id=company_id, created=created, provenance=provenance)

    def _record_provenance(self, company_id: str, record: dict[str, Any], now: str) -> ProvenanceOutcome:
        evidence = record["evidence"]
        return self.ledger.upsert(
            company_id,
            record["source"],
            hash_row(evidence),
            evidence,
            confidence=DEFAULT_CONFIDENCE,
            now=now,
            **provenance_fields(evidence),
        )


__all__ = ["VerifyAndUpsert", "UpsertOutcome", "provenance_fields", "RESCORE_MIN_REMAINING"]
