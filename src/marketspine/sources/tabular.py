"""
Shared machinery for row-oriented public exports (CSV or JSON).

Downloads the whole export over HTTP with a timeout and a size cap,
parses it into dict rows, skips ``offset`` rows and turns each remaining
row into an :class:`ItemResult` through the subclass's column lists.

Limits:
    - 30 s request timeout (``timeout``)
    - 100 MB cap, checked against ``Content-Length`` and while streaming

Tags:
    sources, csv, json, http, download
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from marketspine.core.errors import ParseError, SourceError, SourceTimeoutError, SourceUnavailableError
from marketspine.core.hashing import hash_row
from marketspine.core.identifiers import normalize_cui
from marketspine.logging import get_logger
from marketspine.sources.protocol import BaseAdapter, DiscoveredRecord, ItemResult, parse_offset

logger = get_logger(__name__)

USER_AGENT = "MarketSpine/1.0"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_BYTES = 100 * 1024 * 1024

# Columns that map onto well-known evidence keys, in priority order
AMOUNT_COLUMNS = ("Valoare", "value", "Amount", "amount")
DATE_COLUMNS = ("Data", "date", "Date")
YEAR_COLUMNS = ("An", "year", "Year")


def first_value(row: Mapping[str, Any], columns: Sequence[str]) -> Any:
    """First non-empty value among ``columns``."""
    for column in columns:
        value = row.get(column)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def to_number(value: Any) -> float | None:
    """Parse ``12345.6``, ``"12 345,60"`` or ``"12,345.60"``; None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    text = str(value).strip().replace(" ", "").replace("\u00a0", "")
    if "," in text and "." in text:
        # Whichever separator comes last is the decimal one
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return None


def to_year(value: Any) -> int | None:
    number = to_number(value)
    if number is None:
        return None
    year = int(number)
    return year if 1800 <= year <= 2200 else None


def download(
    client: httpx.Client,
    url: str,
    *,
    source_name: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> bytes:
    """GET ``url`` with a timeout and a size cap.

    Raises:
        SourceUnavailableError: network failure, timeout or error status
        SourceError: the export exceeds ``max_bytes``
    """
    try:
        with client.stream("GET", url, headers={"User-Agent": USER_AGENT}, timeout=timeout) as response:
            if response.status_code >= 400:
                raise SourceUnavailableError(
                    f"{source_name} export returned HTTP {response.status_code}",
                ).with_context(source_name=source_name, url=url, http_status=response.status_code)

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise SourceError(
                    f"{source_name} export too large: {declared} bytes (max {max_bytes})",
                ).with_context(source_name=source_name, url=url)

            buffer = bytearray()
            for chunk in response.iter_bytes():
                buffer.extend(chunk)
                if len(buffer) > max_bytes:
                    raise SourceError(
                        f"{source_name} export exceeds {max_bytes} bytes",
                    ).with_context(source_name=source_name, url=url)
            return bytes(buffer)
    except httpx.TimeoutException as e:
        raise SourceTimeoutError(
            f"{source_name} export timed out after {timeout}s", cause=e
        ).with_context(source_name=source_name, url=url) from e
    except httpx.HTTPError as e:
        raise SourceUnavailableError(
            f"{source_name} export download failed: {e}", cause=e
        ).with_context(source_name=source_name, url=url) from e


@dataclass(frozen=True)
class RowError:
    """Stands in for a row the parser could not read; the rows after it still come through."""

    message: str


def parse_csv(content: bytes) -> Iterator[dict[str, Any] | RowError]:
    """Rows of a CSV export; delimiter sniffed among ``, ; | TAB``.

    A malformed row (e.g. a field over ``csv.field_size_limit()``) is
    yielded as a :class:`RowError`. Only an unreadable header, or a reader
    that stops advancing, raises ``ParseError``.
    """
    text = content.decode("utf-8-sig", errors="replace")
    sample = text[:8192]
    try:
        dialect: Any = csv.Sniffer().sniff(sample, delimiters=",;|\t")
    except csv.Error:
        dialect = csv.excel
    reader = csv.DictReader(io.StringIO(text, newline=""), dialect=dialect)
    try:
        reader.fieldnames
    except csv.Error as e:
        raise ParseError(f"Export header is not readable CSV: {e}", cause=e) from e

    failed_at = -1
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            if reader.line_num == failed_at:
                raise ParseError(f"CSV reader stuck at line {failed_at}: {e}", cause=e) from e
            failed_at = reader.line_num
            yield RowError(f"Unreadable CSV row at line {reader.line_num}: {e}")
            continue
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        yield {key.strip(): value for key, value in row.items() if key is not None}


def parse_json(content: bytes) -> Iterator[dict[str, Any]]:
    """Rows of a JSON export: a list, or an object wrapping ``items``/``data``/``records``."""
    try:
        data = json.loads(content)
    except ValueError as e:
        raise ParseError(f"Export is not valid JSON: {e}", cause=e) from e
    if isinstance(data, dict):
        data = data.get("items") or data.get("data") or data.get("records") or []
    if not isinstance(data, list):
        raise ParseError(f"Expected a JSON list of rows, got {type(data).__name__}")
    for item in data:
        yield item if isinstance(item, dict) else {"value": item}


class TabularAdapter(BaseAdapter):
    """Adapter over a downloadable CSV/JSON export.

    Subclasses set ``IDENTIFIER_COLUMNS`` and ``NAME_COLUMNS`` and
    implement :meth:`build_evidence`.
    """

    IDENTIFIER_COLUMNS: tuple[str, ...] = ()
    NAME_COLUMNS: tuple[str, ...] = ()

    def __init__(
        self,
        url: str,
        *,
        client: httpx.Client | None = None,
        format: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self.url = url
        self.client = client or httpx.Client(follow_redirects=True)
        self.format = (format or ("json" if url.lower().split("?")[0].endswith(".json") else "csv")).lower()
        self.timeout = timeout
        self.max_bytes = max_bytes

    # -- row interpretation ----------------------------------------------------

    def extract_identifier(self, row: Mapping[str, Any]) -> str | None:
        """Raw identifier from the first candidate column that normalises.

        Falls back to the first non-empty candidate so that malformed
        identifiers reach the caller and get counted as invalid.
        """
        fallback = None
        for column in self.IDENTIFIER_COLUMNS:
            value = row.get(column)
            if value is None or not str(value).strip():
                continue
            if normalize_cui(str(value)) is not None:
                return str(value).strip()
            fallback = fallback or str(value).strip()
        return fallback

    def extract_name(self, row: Mapping[str, Any]) -> str | None:
        for column in self.NAME_COLUMNS:
            value = row.get(column)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    def common_evidence(self, row: Mapping[str, Any], row_hash: str) -> dict[str, Any]:
        """Amount, date, year and name keys shared by procurement-style exports."""
        evidence: dict[str, Any] = {"source": self.name, "rowHash": row_hash}
        amount = to_number(first_value(row, self.amount_columns()))
        if amount is not None:
            evidence["value"] = amount
            evidence["amount"] = amount
        date = first_value(row, self.date_columns())
        if date is not None:
            evidence["date"] = str(date)
        year = to_year(first_value(row, YEAR_COLUMNS))
        if year is not None:
            evidence["year"] = year
        name = self.extract_name(row)
        if name:
            evidence["companyName"] = name
        return evidence

    def amount_columns(self) -> Sequence[str]:
        return AMOUNT_COLUMNS

    def date_columns(self) -> Sequence[str]:
        return DATE_COLUMNS

    def build_evidence(self, row: Mapping[str, Any], row_hash: str) -> dict[str, Any]:
        raise NotImplementedError

    def with_raw_columns(self, evidence: dict[str, Any], row: Mapping[str, Any]) -> dict[str, Any]:
        """Keep every raw column not already mapped onto an evidence key."""
        for key, value in row.items():
            if key not in evidence or evidence[key] in (None, ""):
                evidence[key] = value
        return evidence

    def row_to_item(self, row: dict[str, Any], cursor: str, item_ref: str) -> ItemResult:
        raw_identifier = self.extract_identifier(row)
        if raw_identifier is None:
            return ItemResult.skip(cursor, "no identifier column", item_ref)
        row_hash = hash_row(row)
        record = DiscoveredRecord(
            raw_identifier=raw_identifier,
            company_name=self.extract_name(row),
            evidence=self.build_evidence(row, row_hash),
        )
        return ItemResult.ok(record, cursor, item_ref)

    # -- fetching --------------------------------------------------------------

    def fetch_rows(self) -> Iterator[dict[str, Any] | RowError]:
        content = download(
            self.client,
            self.url,
            source_name=self.name,
            timeout=self.timeout,
            max_bytes=self.max_bytes,
        )
        logger.info("source.downloaded", source=self.name, bytes=len(content), format=self.format)
        return parse_json(content) if self.format == "json" else parse_csv(content)

    def discover(self, cursor: str | None, limit: int) -> Iterator[ItemResult]:
        offset = parse_offset(cursor)
        if limit <= 0:
            return
        emitted = 0
        for index, row in enumerate(self.fetch_rows()):
            if index < offset:
                continue
            next_cursor = str(index + 1)
            item_ref = f"row:{index + 1}"
            if isinstance(row, RowError):
                yield ItemResult.error(next_cursor, row.message, item_ref)
                continue
            try:
                item = self.row_to_item(row, next_cursor, item_ref)
            except (ValueError, TypeError, KeyError) as e:
                item = ItemResult.error(next_cursor, f"{type(e).__name__}: {e}", item_ref)
            yield item
            if item.is_ok:
                emitted += 1
                if emitted >= limit:
                    return

    def health_check(self) -> bool:
        try:
            response = self.client.head(self.url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
        except httpx.HTTPError:
            return False
        return response.status_code < 400


__all__ = [
    "TabularAdapter",
    "download",
    "parse_csv",
    "RowError",
    "parse_json",
    "first_value",
    "to_number",
    "to_year",
    "USER_AGENT",
]
