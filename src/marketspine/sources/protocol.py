"""
Source adapter protocol.

Every external source is wrapped in an adapter exposing one capability:
given an opaque cursor and a limit, yield per-item results, each carrying
the cursor that resumes right after it. The orchestrator treats all
sources the same way through this interface.

Manifesto:
    Public exports are dirty. One corrupt row in a 200k-row procurement
    dump must cost exactly one error counter, not the run.

    - **Item results, not exceptions:** a bad row is ``ItemResult.error``
    - **Restartable:** resuming from an item's cursor yields the next item
    - **Whole-source failures raise:** ``SourceUnavailableError`` when the
      download itself fails; the orchestrator catches it per source

Architecture:
    ::

        SourceAdapter (Protocol)
        └── BaseAdapter
            ├── TabularAdapter ── SeapAdapter, EuFundsAdapter
            ├── ThirdPartyAdapter
            └── StaticAdapter

        discover(cursor="120", limit=50)
            → ItemResult.ok(record, cursor="121")
            → ItemResult.skip(cursor="122", reason="no identifier column")
            → ItemResult.error(cursor="123", reason="...")

Examples:
    >>> adapter = StaticAdapter([{"identifier": "RO18547290", "name": "Alpha SRL"}])
    >>> [item.kind for item in adapter.discover(None, 10)]
    [<ItemKind.OK: 'OK'>]

Tags:
    sources, adapters, protocol, cursor, discovery

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from marketspine.core.errors import SourceError
from marketspine.core.timestamps import utc_now


class SourceId(str, Enum):
    """Known sources. ``ANAF_VERIFY`` only ever asserts, it never discovers."""

    SEAP = "SEAP"
    EU_FUNDS = "EU_FUNDS"
    THIRD_PARTY = "THIRD_PARTY"
    ANAF_VERIFY = "ANAF_VERIFY"
    STATIC = "STATIC"


# Confidence a newly created company inherits from the source that found it
NOMINAL_TRUST: dict[SourceId, int] = {
    SourceId.SEAP: 60,
    SourceId.EU_FUNDS: 70,
    SourceId.THIRD_PARTY: 40,
    SourceId.ANAF_VERIFY: 100,
    SourceId.STATIC: 50,
}


def nominal_trust(source: str) -> int:
    try:
        return NOMINAL_TRUST[SourceId(source)]
    except ValueError:
        return NOMINAL_TRUST[SourceId.STATIC]


@dataclass(frozen=True)
class DiscoveredRecord:
    """One sighting of a company in a source.

    ``raw_identifier`` is as found upstream; normalisation happens
    downstream so that malformed identifiers are counted, not hidden.
    """

    raw_identifier: str
    company_name: str | None
    evidence: dict[str, Any] = field(default_factory=dict)
    discovered_at: datetime = field(default_factory=utc_now)


class ItemKind(str, Enum):
    OK = "OK"
    SKIP = "SKIP"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class ItemResult:
    """Outcome of reading one upstream item."""

    kind: ItemKind
    cursor: str
    record: DiscoveredRecord | None = None
    reason: str | None = None
    item_ref: str | None = None

    @classmethod
    def ok(cls, record: DiscoveredRecord, cursor: str, item_ref: str | None = None) -> ItemResult:
        return cls(ItemKind.OK, cursor, record=record, item_ref=item_ref)

    @classmethod
    def skip(cls, cursor: str, reason: str, item_ref: str | None = None) -> ItemResult:
        return cls(ItemKind.SKIP, cursor, reason=reason, item_ref=item_ref)

    @classmethod
    def error(cls, cursor: str, reason: str, item_ref: str | None = None) -> ItemResult:
        return cls(ItemKind.ERROR, cursor, reason=reason, item_ref=item_ref)

    @property
    def is_ok(self) -> bool:
        return self.kind is ItemKind.OK


def parse_offset(cursor: str | None) -> int:
    """Row-offset cursors: ``None`` or ``""`` start at 0."""
    if not cursor:
        return 0
    try:
        offset = int(cursor)
    except ValueError as e:
        raise SourceError(f"Malformed cursor: {cursor!r}", cause=e) from e
    if offset < 0:
        raise SourceError(f"Negative cursor: {cursor!r}")
    return offset


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol every adapter satisfies."""

    @property
    def name(self) -> str:
        """Source name, also the cursor and flag key."""
        ...

    def discover(self, cursor: str | None, limit: int) -> Iterator[ItemResult]:
        """Yield at most ``limit`` OK items starting after ``cursor``."""
        ...

    def health_check(self) -> bool:
        ...


class BaseAdapter:
    """Common adapter plumbing: identity, trust and error wrapping."""

    source_id: SourceId = SourceId.STATIC

    @property
    def name(self) -> str:
        return self.source_id.value

    @property
    def nominal_trust(self) -> int:
        return NOMINAL_TRUST[self.source_id]

    def _wrap_error(self, error: Exception, message: str | None = None) -> SourceError:
        """Wrap an exception in SourceError with context."""
        if isinstance(error, SourceError):
            return error
        return SourceError(message or str(error), cause=error).with_context(source_name=self.name)

    @abstractmethod
    def discover(self, cursor: str | None, limit: int) -> Iterator[ItemResult]:
        raise NotImplementedError

    def health_check(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"


__all__ = [
    "SourceId",
    "NOMINAL_TRUST",
    "nominal_trust",
    "DiscoveredRecord",
    "ItemKind",
    "ItemResult",
    "SourceAdapter",
    "BaseAdapter",
    "parse_offset",
]
