"""Authoritative verification collaborator contract.

``verify(identifier)`` never raises: any internal failure comes back as a
result with ``status=ERROR``, so callers always get a well-formed answer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from marketspine.core.timestamps import from_iso8601, to_iso8601, utc_now


class VerificationStatus(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    PENDING = "PENDING"


@dataclass(frozen=True)
class VerificationResult:
    """Registry answer for one identifier."""

    status: VerificationStatus
    is_active: bool = False
    is_vat_registered: bool | None = None
    official_name: str | None = None
    verified_at: datetime = field(default_factory=utc_now)
    error_message: str | None = None
    raw: dict[str, Any] | None = None

    @classmethod
    def success(
        cls,
        *,
        is_active: bool,
        is_vat_registered: bool | None = None,
        official_name: str | None = None,
        raw: dict[str, Any] | None = None,
    ) -> VerificationResult:
        return cls(
            VerificationStatus.SUCCESS,
            is_active=is_active,
            is_vat_registered=is_vat_registered,
            official_name=official_name,
            raw=raw,
        )

    @classmethod
    def error(cls, message: str) -> VerificationResult:
        return cls(VerificationStatus.ERROR, error_message=message)

    @classmethod
    def pending(cls, message: str = "Rate limit exceeded") -> VerificationResult:
        return cls(VerificationStatus.PENDING, error_message=message)

    @property
    def confirmed_active(self) -> bool:
        return self.status is VerificationStatus.SUCCESS and self.is_active

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "is_active": self.is_active,
            "is_vat_registered": self.is_vat_registered,
            "official_name": self.official_name,
            "verified_at": to_iso8601(self.verified_at),
            "error_message": self.error_message,
            "raw": self.raw,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerificationResult:
        return cls(
            VerificationStatus(data["status"]),
            is_active=bool(data.get("is_active")),
            is_vat_registered=data.get("is_vat_registered"),
            official_name=data.get("official_name"),
            verified_at=from_iso8601(data.get("verified_at")) or utc_now(),
            error_message=data.get("error_message"),
            raw=data.get("raw"),
        )


@runtime_checkable
class Verifier(Protocol):
    def verify(self, identifier: str) -> VerificationResult:
        """Look ``identifier`` up in the authoritative registry. Never raises."""
        ...


__all__ = ["VerificationStatus", "VerificationResult", "Verifier"]
