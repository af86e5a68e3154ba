"""In-memory adapter for fixtures, tests and manual backfills."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from marketspine.core.hashing import hash_row
from marketspine.sources.protocol import BaseAdapter, DiscoveredRecord, ItemResult, SourceId, parse_offset


class StaticAdapter(BaseAdapter):
    """Serve a fixed list of rows.

    Each row is either a :class:`DiscoveredRecord` or a mapping with an
    ``identifier`` key, an optional ``name`` and any evidence fields.
    Rows without an identifier are skipped.
    """

    def __init__(
        self,
        rows: Iterable[DiscoveredRecord | Mapping[str, Any]],
        *,
        source_id: SourceId = SourceId.STATIC,
        name: str | None = None,
    ) -> None:
        self.rows = list(rows)
        self.source_id = source_id
        self._name = name

    @property
    def name(self) -> str:
        return self._name or self.source_id.value

    def _to_item(self, row: DiscoveredRecord | Mapping[str, Any], cursor: str, item_ref: str) -> ItemResult:
        if isinstance(row, DiscoveredRecord):
            return ItemResult.ok(row, cursor, item_ref)
        identifier = row.get("identifier")
        if identifier is None:
            return ItemResult.skip(cursor, "no identifier", item_ref)
        evidence = {key: value for key, value in row.items() if key not in ("identifier", "name")}
        evidence["source"] = self.name
        evidence["rowHash"] = hash_row(dict(row))
        if row.get("name"):
            evidence["companyName"] = row["name"]
        record = DiscoveredRecord(raw_identifier=str(identifier), company_name=row.get("name"), evidence=evidence)
        return ItemResult.ok(record, cursor, item_ref)

    def discover(self, cursor: str | None, limit: int) -> Iterator[ItemResult]:
        offset = parse_offset(cursor)
        emitted = 0
        for index in range(offset, len(self.rows)):
            if emitted >= limit:
                return
            item = self._to_item(self.rows[index], str(index + 1), f"row:{index + 1}")
            yield item
            if item.is_ok:
                emitted += 1
