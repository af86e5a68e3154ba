"""
Canonical company records.

Companies are created here as skeletons by the verification stage and
otherwise only mutated by scoring (derived columns) and by moderation
tooling (merge pointer). The ``tax_id`` UNIQUE constraint backs the
application-level create-if-absent check.

Merge pointers:
    ::

        A ──merged_into──► B ──merged_into──► C      resolve(A) == C
        merge(C, A)  ✗ MergeCycleError (C already reaches A through B)

Tags:
    companies, store, merge, skeleton, slug
"""

from __future__ import annotations

import json
import logging
from typing import Any

from marketspine.core.errors import IntegrityError, MergeCycleError
from marketspine.core.schema import TABLES
from marketspine.core.slug import collision_suffixes, make_company_slug
from marketspine.core.timestamps import new_id, now_iso
from marketspine.stores.base import BaseStore

logger = logging.getLogger(__name__)

MAX_MERGE_HOPS = 10

# Columns the scoring service is allowed to write
_SCORE_COLUMNS = (
    "score",
    "confidence",
    "integrity_score",
    "stability_profile",
    "risk_flags",
    "valuation_low",
    "valuation_high",
    "valuation_currency",
    "last_scored_at",
)


def _decode(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    row["risk_flags"] = json.loads(row.get("risk_flags") or "[]")
    for flag in ("is_vat_registered", "is_active", "is_skeleton", "is_claimed"):
        if row.get(flag) is not None:
            row[flag] = bool(row[flag])
    return row


class CompanyStore(BaseStore):
    """CRUD for ``companies`` plus the merge chain."""

    TABLE = TABLES["companies"]

    def get(self, company_id: str) -> dict[str, Any] | None:
        return _decode(self.query_one(f"SELECT * FROM {self.TABLE} WHERE id = ?", (company_id,)))

    def by_tax_id(self, tax_id: str) -> dict[str, Any] | None:
        return _decode(self.query_one(f"SELECT * FROM {self.TABLE} WHERE tax_id = ?", (tax_id,)))

    def by_slug(self, slug: str) -> dict[str, Any] | None:
        return _decode(self.query_one(f"SELECT * FROM {self.TABLE} WHERE slug = ?", (slug,)))

    def slug_exists(self, slug: str) -> bool:
        return self.scalar(f"SELECT 1 FROM {self.TABLE} WHERE slug = ?", (slug,)) is not None

    def count(self) -> int:
        return self.scalar(f"SELECT COUNT(*) FROM {self.TABLE}") or 0

    def _free_slug(self, name: str | None, tax_id: str, company_id: str) -> str:
        base = make_company_slug(name, tax_id)
        if not self.slug_exists(base):
            return base
        for suffix in collision_suffixes(tax_id, company_id):
            candidate = f"{base}{suffix}"
            if not self.slug_exists(candidate):
                return candidate
        # Both suffixes taken only if ids collide; the full id cannot
        return f"{base}-{company_id}"

    def create_skeleton(
        self,
        *,
        tax_id: str,
        name: str | None,
        source_confidence: int,
        is_vat_registered: bool | None = None,
        is_active: bool = True,
        verified_at: str | None = None,
        now: str | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """Create a skeleton company for ``tax_id`` unless one exists.

        Returns ``(company, created)``. A concurrent writer that wins the
        ``tax_id`` race makes this call return that writer's row with
        ``created=False``.
        """
        now = now or now_iso()
        company_id = new_id()
        slug = self._free_slug(name, tax_id, company_id)
        cursor = self.execute(
            f"""
            INSERT INTO {self.TABLE} (
                id, slug, tax_id, name, is_vat_registered, is_active,
                is_skeleton, confidence, source_confidence, verified_at,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?, ?, ?, ?)
            ON CONFLICT(tax_id) DO NOTHING
            """,
            (
                company_id,
                slug,
                tax_id,
                name or tax_id,
                None if is_vat_registered is None else int(is_vat_registered),
                int(is_active),
                source_confidence,
                source_confidence,
                verified_at,
                now,
                now,
            ),
        )
        created = cursor.rowcount == 1
        company = self.by_tax_id(tax_id)
        if company is None:
            raise IntegrityError(f"Company for tax id {tax_id} vanished after insert")
        if created:
            logger.debug(f"Created skeleton company {company['id']} ({slug})")
        return company, created

    def update_scores(self, company_id: str, **values: Any) -> None:
        """Write derived scoring columns. Unknown columns are rejected."""
        unknown = set(values) - set(_SCORE_COLUMNS)
        if unknown:
            raise ValueError(f"Not a scoring column: {sorted(unknown)}")
        if "risk_flags" in values:
            values["risk_flags"] = json.dumps(sorted(values["risk_flags"]))
        assignments = ", ".join(f"{column} = ?" for column in values)
        self.execute(
            f"UPDATE {self.TABLE} SET {assignments}, updated_at = ? WHERE id = ?",
            (*values.values(), now_iso(), company_id),
        )

    def promote_if_eligible(self, company_id: str) -> bool:
        """Clear the skeleton flag once real facts exist. Returns True if promoted."""
        cursor = self.execute(
            f"""
            UPDATE {self.TABLE}
            SET is_skeleton = 0, updated_at = ?
            WHERE id = ? AND is_skeleton = 1
              AND (revenue IS NOT NULL OR employees IS NOT NULL
                   OR last_enriched_at IS NOT NULL OR is_claimed = 1)
            """,
            (now_iso(), company_id),
        )
        return cursor.rowcount == 1

    # -- merge chain -----------------------------------------------------------

    def _merged_into(self, company_id: str) -> str | None:
        return self.scalar(f"SELECT merged_into_id FROM {self.TABLE} WHERE id = ?", (company_id,))

    def resolve(self, company_id: str, max_hops: int = MAX_MERGE_HOPS) -> str:
        """Follow merge pointers from ``company_id`` to the terminal company."""
        current = company_id
        for _ in range(max_hops + 1):
            target = self._merged_into(current)
            if target is None:
                return current
            current = target
        raise IntegrityError(
            f"Merge chain from {company_id} exceeds {max_hops} hops",
        ).with_context(company_id=company_id)

    def merge(self, source_id: str, target_id: str) -> None:
        """Point ``source_id`` at ``target_id``.

        Raises:
            MergeCycleError: self-merge, or the target chain reaches the source
            IntegrityError: either company is missing, or the source is
                already merged elsewhere
        """
        if source_id == target_id:
            raise MergeCycleError(f"Cannot merge company {source_id} into itself")
        source = self.get(source_id)
        if source is None or self.get(target_id) is None:
            raise IntegrityError(f"Unknown company in merge {source_id} -> {target_id}")
        if source["merged_into_id"] is not None:
            raise IntegrityError(f"Company {source_id} is already merged into {source['merged_into_id']}")

        current: str | None = target_id
        hops = 0
        while current is not None:
            if current == source_id:
                raise MergeCycleError(f"Merging {source_id} into {target_id} would create a cycle")
            if hops > MAX_MERGE_HOPS:
                raise IntegrityError(f"Merge chain from {target_id} exceeds {MAX_MERGE_HOPS} hops")
            current = self._merged_into(current)
            hops += 1

        self.execute(
            f"UPDATE {self.TABLE} SET merged_into_id = ?, updated_at = ? WHERE id = ?",
            (target_id, now_iso(), source_id),
        )
        logger.info(f"Merged company {source_id} into {target_id}")


__all__ = ["CompanyStore", "MAX_MERGE_HOPS"]
