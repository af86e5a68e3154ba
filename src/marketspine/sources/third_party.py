"""
Third-party company data provider (paginated JSON API).

The provider is queried with ``offset``/``limit`` parameters and answers
either a bare list or ``{"items": [...]}``. Every item is sanitised
before it becomes evidence. This source is behind the risky
``INGEST_THIRD_PARTY`` flag and is disabled unless an operator enables it.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import httpx

from marketspine.core.errors import ParseError, RateLimitError, SourceTimeoutError, SourceUnavailableError
from marketspine.core.hashing import hash_row
from marketspine.logging import get_logger
from marketspine.sources.protocol import BaseAdapter, DiscoveredRecord, ItemResult, SourceId, parse_offset
from marketspine.sources.sanitize import sanitize_payload
from marketspine.sources.tabular import USER_AGENT

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100


class ThirdPartyAdapter(BaseAdapter):
    source_id = SourceId.THIRD_PARTY

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        client: httpx.Client | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = 30.0,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.client = client or httpx.Client(follow_redirects=True)
        self.page_size = page_size
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def fetch_page(self, offset: int, limit: int) -> list[Any]:
        try:
            response = self.client.get(
                self.url,
                params={"offset": offset, "limit": limit},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise SourceTimeoutError(f"Provider timed out after {self.timeout}s", cause=e).with_context(
                source_name=self.name, url=self.url
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(f"Provider request failed: {e}", cause=e).with_context(
                source_name=self.name, url=self.url
            ) from e

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            raise RateLimitError(
                "Provider rate limit hit",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else 60,
            ).with_context(source_name=self.name, url=self.url, http_status=429)
        if response.status_code >= 400:
            raise SourceUnavailableError(f"Provider returned HTTP {response.status_code}").with_context(
                source_name=self.name, url=self.url, http_status=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ParseError(f"Provider returned invalid JSON: {e}", cause=e).with_context(
                source_name=self.name, url=self.url
            ) from e
        if isinstance(body, dict):
            body = body.get("items") or body.get("data") or []
        if not isinstance(body, list):
            raise ParseError(f"Provider page is not a list: {type(body).__name__}")
        return body

    def item_to_result(self, raw: Any, cursor: str, item_ref: str) -> ItemResult:
        if not isinstance(raw, dict):
            return ItemResult.error(cursor, f"Provider item is not an object: {type(raw).__name__}", item_ref)
        sanitized, size = sanitize_payload(raw)
        raw_identifier = sanitized.get("cui") or sanitized.get("CUI")
        if raw_identifier is None or not str(raw_identifier).strip():
            return ItemResult.skip(cursor, "provider item has no cui", item_ref)
        name = sanitized.get("name")
        row_hash = hash_row(sanitized)
        evidence = {
            "source": self.name,
            "rowHash": row_hash,
            "sizeBytes": size,
            **sanitized,
        }
        if isinstance(name, str) and name.strip():
            evidence["companyName"] = name.strip()
        record = DiscoveredRecord(
            raw_identifier=str(raw_identifier).strip(),
            company_name=evidence.get("companyName"),
            evidence=evidence,
        )
        return ItemResult.ok(record, cursor, item_ref)

    def discover(self, cursor: str | None, limit: int) -> Iterator[ItemResult]:
        offset = parse_offset(cursor)
        emitted = 0
        while emitted < limit:
            page = self.fetch_page(offset, self.page_size)
            logger.debug("provider.page", source=self.name, offset=offset, items=len(page))
            if not page:
                return
            for raw in page:
                offset += 1
                item = self.item_to_result(raw, str(offset), f"offset:{offset}")
                yield item
                if item.is_ok:
                    emitted += 1
                    if emitted >= limit:
                        return
            if len(page) < self.page_size:
                return

    def health_check(self) -> bool:
        try:
            self.fetch_page(0, 1)
        except (SourceUnavailableError, ParseError):
            return False
        return True
