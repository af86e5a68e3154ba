"""Tests for the ANAF registry verifier (HTTP mocked with httpx)."""

import json
from datetime import date

import httpx
import pytest

from marketspine.verification import AnafVerifier, StaticVerifier, VerificationResult, VerificationStatus, Verifier
from marketspine.verification.anaf import CACHE_PREFIX, RATE_KEY, parse_response

FOUND = {
    "cod": 200,
    "message": "SUCCESS",
    "found": [
        {
            "date_generale": {"cui": 18547290, "denumire": "ALPHA TECH SRL"},
            "inregistrare_scop_Tva": {"scpTVA": True},
            "stare_inactiv": {"statusInactivi": False},
        }
    ],
    "notFound": [],
}


class Registry:
    """MockTransport handler that records requests and replies with ``payload``."""

    def __init__(self, payload=FOUND, status=200):
        self.payload = payload
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.payload, Exception):
            raise self.payload
        if isinstance(self.payload, bytes):
            return httpx.Response(self.status, content=self.payload)
        return httpx.Response(self.status, json=self.payload)


def _verifier(kv, registry, **kwargs):
    kwargs.setdefault("min_interval_ms", 0)
    return AnafVerifier(
        kv,
        client=httpx.Client(transport=httpx.MockTransport(registry)),
        today=lambda: date(2026, 3, 1),
        **kwargs,
    )


class TestParseResponse:
    def test_found_envelope(self):
        result = parse_response(FOUND, "18547290")
        assert result.status is VerificationStatus.SUCCESS
        assert result.is_active is True
        assert result.is_vat_registered is True
        assert result.official_name == "ALPHA TECH SRL"

    def test_inactive_entry(self):
        payload = {"found": [{"date_generale": {"cui": 1, "denumire": "X"}, "stare_inactiv": {"statusInactivi": True}}]}
        assert parse_response(payload, "1").is_active is False

    def test_not_found_is_inactive_success(self):
        result = parse_response({"found": [], "notFound": [18547290]}, "18547290")
        assert result.status is VerificationStatus.SUCCESS
        assert result.is_active is False

    def test_empty_envelope_is_error(self):
        assert parse_response({"found": [], "notFound": []}, "1").status is VerificationStatus.ERROR

    def test_flat_reply(self):
        result = parse_response([{"cui": "14399840", "denumire": "Beta SA", "valid": "true", "tva": "false"}], "14399840")
        assert result.is_active is True
        assert result.is_vat_registered is False
        assert result.official_name == "Beta SA"

    def test_flat_status_field(self):
        assert parse_response({"status": "ACTIV"}, "1").is_active is True
        assert parse_response({"status": "RADIAT"}, "1").is_active is False

    def test_picks_matching_entry(self):
        payload = [{"cui": 1, "denumire": "Wrong", "valid": True}, {"cui": 19, "denumire": "Right", "valid": True}]
        assert parse_response(payload, "19").official_name == "Right"

    def test_garbage_is_error(self):
        assert parse_response("nope", "1").status is VerificationStatus.ERROR
        assert parse_response([], "1").status is VerificationStatus.ERROR


class TestAnafVerifier:
    def test_satisfies_protocol(self, kv):
        assert isinstance(_verifier(kv, Registry()), Verifier)
        assert isinstance(StaticVerifier(), Verifier)

    def test_request_shape(self, kv):
        registry = Registry()
        result = _verifier(kv, registry).verify("RO18547290")
        assert result.confirmed_active
        [request] = registry.requests
        assert request.method == "POST"
        assert json.loads(request.content) == [{"cui": 18547290, "data": "2026-03-01"}]
        assert request.headers["User-Agent"] == "MarketSpine/1.0"

    def test_success_is_cached(self, kv):
        registry = Registry()
        verifier = _verifier(kv, registry)
        verifier.verify("18547290")
        cached = verifier.verify("18547290")
        assert len(registry.requests) == 1
        assert cached.official_name == "ALPHA TECH SRL"
        assert kv.get(f"{CACHE_PREFIX}18547290")["status"] == "SUCCESS"

    def test_cache_expires(self, kv, clock):
        registry = Registry()
        verifier = _verifier(kv, registry, cache_days=1)
        verifier.verify("18547290")
        clock.advance(24 * 3600 + 1)
        verifier.verify("18547290")
        assert len(registry.requests) == 2

    def test_invalid_cui_never_calls_registry(self, kv):
        registry = Registry()
        result = _verifier(kv, registry).verify("18547291")
        assert result.status is VerificationStatus.ERROR
        assert result.error_message == "Invalid CUI"
        assert registry.requests == []

    def test_http_error_not_cached(self, kv):
        registry = Registry(status=500)
        verifier = _verifier(kv, registry)
        result = verifier.verify("18547290")
        assert result.status is VerificationStatus.ERROR
        assert "HTTP 500" in result.error_message
        assert kv.get(f"{CACHE_PREFIX}18547290") is None

    def test_invalid_json(self, kv):
        result = _verifier(kv, Registry(payload=b"<html>")).verify("18547290")
        assert result.error_message == "Registry returned invalid JSON"

    def test_timeout_never_raises(self, kv):
        registry = Registry(payload=httpx.ReadTimeout("slow"))
        result = _verifier(kv, registry, timeout=2.0).verify("18547290")
        assert result.status is VerificationStatus.ERROR
        assert "timed out" in result.error_message

    def test_connection_error_never_raises(self, kv):
        result = _verifier(kv, Registry(payload=httpx.ConnectError("refused"))).verify("18547290")
        assert result.status is VerificationStatus.ERROR
        assert result.error_message.startswith("ConnectError")

    def test_gate_busy_returns_pending(self, kv):
        registry = Registry()
        sleeps: list[float] = []
        verifier = _verifier(kv, registry, min_interval_ms=1000, sleep=sleeps.append)
        assert verifier.verify("18547290").status is VerificationStatus.SUCCESS
        assert verifier.verify("14399840").status is VerificationStatus.PENDING
        assert len(registry.requests) == 1
        assert sleeps == [1.0]

    def test_gate_clears_after_wait(self, kv, clock):
        registry = Registry()
        verifier = _verifier(kv, registry, min_interval_ms=1000, sleep=clock.advance)
        verifier.verify("18547290")
        assert verifier.verify("14399840").status is VerificationStatus.SUCCESS
        assert len(registry.requests) == 2
        assert kv.exists(RATE_KEY)


class TestVerificationResult:
    def test_dict_round_trip_keeps_fields(self):
        original = VerificationResult.success(is_active=True, is_vat_registered=False, official_name="Alpha")
        restored = VerificationResult.from_dict(original.to_dict())
        assert restored.official_name == "Alpha"
        assert restored.is_vat_registered is False
        assert restored.verified_at == original.verified_at

    @pytest.mark.parametrize(
        "result,active",
        [
            (VerificationResult.success(is_active=True), True),
            (VerificationResult.success(is_active=False), False),
            (VerificationResult.pending(), False),
            (VerificationResult.error("x"), False),
        ],
    )
    def test_confirmed_active(self, result, active):
        assert result.confirmed_active is active


class TestStaticVerifier:
    def test_defaults_and_overrides(self):
        verifier = StaticVerifier()
        verifier.set_inactive("14399840")
        assert verifier.verify("RO18547290").confirmed_active
        assert not verifier.verify("14399840").confirmed_active
        assert verifier.calls == ["RO18547290", "14399840"]
