"""Verifier answering from a fixed table (tests, offline runs)."""

from __future__ import annotations

from collections.abc import Mapping

from marketspine.core.identifiers import normalize_cui
from marketspine.verification.protocol import VerificationResult


class StaticVerifier:
    """Answers from ``results``; unknown identifiers are active by default.

    ``calls`` records every identifier asked about.
    """

    def __init__(
        self,
        results: Mapping[str, VerificationResult] | None = None,
        *,
        default_active: bool = True,
    ) -> None:
        self.results = dict(results or {})
        self.default_active = default_active
        self.calls: list[str] = []

    def verify(self, identifier: str) -> VerificationResult:
        self.calls.append(identifier)
        key = normalize_cui(identifier) or identifier
        if key in self.results:
            return self.results[key]
        return VerificationResult.success(is_active=self.default_active, is_vat_registered=True)

    def set_inactive(self, identifier: str) -> None:
        self.results[identifier] = VerificationResult.success(is_active=False)
