"""
ANAF (national tax authority) registry verifier.

Asks the public VAT-payer web service whether a fiscal code exists and
is active. Conservative by construction: results are cached for 90 days,
requests are gated to one per second across all workers through the KV
store, and nothing is retried.

Architecture:
    ::

        verify("18547290")
          ├─ cache hit  anaf:verification:18547290 ──────────► cached result
          ├─ gate       SET NX anaf:last_request (1 s) ─ busy ─► wait once ─► PENDING
          └─ POST [{"cui": 18547290, "data": "2026-03-01"}]
                ├─ found / notFound envelope, or flat reply
                ├─ SUCCESS ──► cache ──► result
                └─ anything else ──────► ERROR (not cached)

Examples:
    >>> verifier = AnafVerifier(kv, client=httpx.Client())
    >>> verifier.verify("18547290").status
    <VerificationStatus.SUCCESS: 'SUCCESS'>

Tags:
    verification, anaf, http, cache, rate-limit
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import date
from typing import Any

import httpx

from marketspine.core.identifiers import normalize_cui
from marketspine.core.kv import KVStore
from marketspine.logging import get_logger
from marketspine.verification.protocol import VerificationResult, VerificationStatus

logger = get_logger(__name__)

DEFAULT_URL = "https://webservicesp.anaf.ro/PlatitorTvaRest/api/v8/ws/tva"
CACHE_PREFIX = "anaf:verification:"
RATE_KEY = "anaf:last_request"
USER_AGENT = "MarketSpine/1.0"

# Nested sections of the v8 "found" entries, flattened before reading fields
_SECTIONS = ("date_generale", "inregistrare_scop_Tva", "stare_inactiv", "inregistrare_RTVAI")


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "da", "yes")
    return bool(value)


def _flatten(entry: dict[str, Any]) -> dict[str, Any]:
    flat = {key: value for key, value in entry.items() if key not in _SECTIONS}
    for section in _SECTIONS:
        nested = entry.get(section)
        if isinstance(nested, dict):
            for key, value in nested.items():
                flat.setdefault(key, value)
    return flat


def interpret_entry(entry: dict[str, Any]) -> VerificationResult:
    """Map one registry entry onto a SUCCESS result."""
    flat = _flatten(entry)
    if "statusInactivi" in flat:
        is_active = not _truthy(flat["statusInactivi"])
    elif "valid" in flat:
        is_active = _truthy(flat["valid"])
    else:
        is_active = str(flat.get("status", "")).upper() == "ACTIV"

    is_vat: bool | None = None
    for key in ("scpTVA", "tva", "platitor"):
        if key in flat:
            is_vat = _truthy(flat[key])
            break

    name = None
    for key in ("denumire", "denumireCompleta", "nume"):
        value = flat.get(key)
        if isinstance(value, str) and value.strip():
            name = value.strip()
            break

    return VerificationResult.success(is_active=is_active, is_vat_registered=is_vat, official_name=name, raw=entry)


def _matching(entries: list[dict[str, Any]], identifier: str) -> dict[str, Any]:
    """Entry whose cui equals ``identifier``, else the first one."""
    for entry in entries:
        cui = _flatten(entry).get("cui")
        if cui is not None and str(cui) == identifier:
            return entry
    return entries[0]


def parse_response(payload: Any, identifier: str) -> VerificationResult:
    """Interpret a registry response body for ``identifier``."""
    if isinstance(payload, dict) and ("found" in payload or "notFound" in payload):
        found = [entry for entry in payload.get("found") or [] if isinstance(entry, dict)]
        if found:
            return interpret_entry(_matching(found, identifier))
        not_found = payload.get("notFound") or []
        if not_found:
            return VerificationResult.success(is_active=False, raw={"notFound": not_found})
        return VerificationResult.error("Empty registry response")

    entries = [entry for entry in payload if isinstance(entry, dict)] if isinstance(payload, list) else []
    if entries:
        return interpret_entry(_matching(entries, identifier))
    if isinstance(payload, dict) and payload:
        return interpret_entry(payload)
    return VerificationResult.error("Invalid registry response")


class AnafVerifier:
    """HTTP verifier with KV cache and a global request gate.

    Args:
        kv: Shared KV store for the cache and the gate
        client: httpx client (injected in tests with a MockTransport)
        url: Web-service endpoint
        timeout: Per-request timeout in seconds
        cache_days: Lifetime of cached SUCCESS results
        min_interval_ms: Minimum spacing between requests across workers
        sleep: Used to wait once for the gate before answering PENDING
    """

    def __init__(
        self,
        kv: KVStore,
        *,
        client: httpx.Client | None = None,
        url: str = DEFAULT_URL,
        timeout: float = 10.0,
        cache_days: int = 90,
        min_interval_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.kv = kv
        self.client = client or httpx.Client()
        self.url = url
        self.timeout = timeout
        self.cache_ttl_seconds = cache_days * 24 * 3600
        self.min_interval_ms = min_interval_ms
        self._sleep = sleep
        self._today = today

    def cached(self, identifier: str) -> VerificationResult | None:
        data = self.kv.get(f"{CACHE_PREFIX}{identifier}")
        if not isinstance(data, dict):
            return None
        try:
            return VerificationResult.from_dict(data)
        except (KeyError, ValueError) as e:
            logger.warning("anaf.cache_corrupt", identifier=identifier, error=str(e))
            return None

    def _take_slot(self) -> bool:
        if self.min_interval_ms <= 0:
            return True
        if self.kv.set_if_absent(RATE_KEY, int(time.time() * 1000), ttl_ms=self.min_interval_ms):
            return True
        remaining = self.kv.ttl_remaining_ms(RATE_KEY) or self.min_interval_ms
        self._sleep(min(remaining, self.min_interval_ms) / 1000)
        return self.kv.set_if_absent(RATE_KEY, int(time.time() * 1000), ttl_ms=self.min_interval_ms)

    def _request(self, identifier: str) -> VerificationResult:
        body = [{"cui": int(identifier), "data": self._today().isoformat()}]
        response = self.client.post(
            self.url,
            json=body,
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            return VerificationResult.error(f"Registry returned HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError:
            return VerificationResult.error("Registry returned invalid JSON")
        return parse_response(payload, identifier)

    def verify(self, identifier: str) -> VerificationResult:
        normalized = normalize_cui(identifier)
        if normalized is None:
            return VerificationResult.error("Invalid CUI")

        try:
            hit = self.cached(normalized)
            if hit is not None:
                return hit
            if not self._take_slot():
                return VerificationResult.pending()
            result = self._request(normalized)
        except httpx.TimeoutException:
            logger.warning("anaf.timeout", identifier=normalized, timeout=self.timeout)
            return VerificationResult.error(f"Registry timed out after {self.timeout}s")
        except Exception as e:
            # Contract: verify() never raises
            logger.warning("anaf.failed", identifier=normalized, error_type=type(e).__name__, error=str(e))
            return VerificationResult.error(f"{type(e).__name__}: {e}")

        if result.status is VerificationStatus.SUCCESS:
            try:
                self.kv.set(f"{CACHE_PREFIX}{normalized}", result.to_dict(), ttl_seconds=self.cache_ttl_seconds)
            except Exception as e:
                logger.warning("anaf.cache_write_failed", identifier=normalized, error=str(e))
        return result


__all__ = ["AnafVerifier", "parse_response", "interpret_entry", "DEFAULT_URL"]
