"""
Romanian fiscal identifier (CUI / CIF) normalisation.

Every stage that uses a tax identifier as a lookup key goes through
``normalize_cui`` first, so that ``RO 18547290``, ``ro18547290`` and
``18.547.290`` all collide on ``"18547290"``.

Manifesto:
    Upstream exports are typed by hand. The same supplier appears with
    and without the ``RO`` VAT prefix, with spaces, dots and dashes.
    Deduplication is impossible unless they converge on one key, and a
    typo must never become a new company.

    - **Total:** malformed input returns ``None``, never raises
    - **Idempotent:** ``normalize_cui(normalize_cui(x)) == normalize_cui(x)``
    - **Checked:** the national control digit must match

Architecture:
    ::

        raw ──► strip "RO" ──► drop separators ──► digits only?
                                                       │
                     2..10 digits, not all identical ◄─┘
                                   │
                     control digit (key 753217532) ──► "18547290" | None

Examples:
    >>> normalize_cui("RO 18547290")
    '18547290'
    >>> normalize_cui("18547291") is None
    True
    >>> format_for_display("18547290")
    'RO18547290'

Tags:
    cui, cif, tax-id, normalization, checksum, romania

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from typing import Any

CHECKSUM_KEY = "753217532"
MIN_DIGITS = 2
MAX_DIGITS = 10

_PREFIX = re.compile(r"^\s*RO", re.IGNORECASE)
_SEPARATORS = re.compile(r"[\s.\-/_,]")


def _checksum_ok(digits: str) -> bool:
    body, control = digits[:-1], int(digits[-1])
    padded = body.rjust(len(CHECKSUM_KEY), "0")
    total = sum(int(d) * int(k) for d, k in zip(padded, CHECKSUM_KEY))
    expected = (total * 10) % 11
    if expected == 10:
        expected = 0
    return expected == control


def is_valid_cui(identifier: Any) -> bool:
    """Re-validate an already-normalised identifier (digits only)."""
    if not isinstance(identifier, str) or not identifier.isascii() or not identifier.isdigit():
        return False
    if not MIN_DIGITS <= len(identifier) <= MAX_DIGITS:
        return False
    if len(set(identifier)) == 1:
        return False
    return _checksum_ok(identifier)


def normalize_cui(raw: Any) -> str | None:
    """Canonicalise a raw identifier or return ``None``.

    Accepts strings and non-negative integers. Never raises.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        if raw < 0:
            return None
        raw = str(raw)
    if not isinstance(raw, str):
        return None

    candidate = _SEPARATORS.sub("", _PREFIX.sub("", raw, count=1))
    if not candidate:
        return None
    # Leading zeros carry no meaning in a CUI
    candidate = candidate.lstrip("0") or "0"
    return candidate if is_valid_cui(candidate) else None


def format_for_display(identifier: str) -> str:
    """Render a normalised identifier with the ``RO`` prefix."""
    return f"RO{identifier}"


__all__ = [
    "normalize_cui",
    "is_valid_cui",
    "format_for_display",
    "CHECKSUM_KEY",
]
