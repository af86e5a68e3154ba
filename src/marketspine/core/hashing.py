"""
Deterministic hashing for source rows and identities.

Two shapes are needed: ``compute_hash`` joins positional values (used for
identity keys), ``hash_row`` canonicalises a whole evidence mapping so that
the same upstream row always produces the same content hash regardless of
key order. The provenance ledger keys on the latter.

Examples:
    >>> hash_row({"b": 1, "a": "x"}) == hash_row({"a": "x", "b": 1})
    True
    >>> len(hash_row({"a": 1}))
    32

Tags:
    hashing, deduplication, provenance
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Hash positional values joined with ``|``.

    Order matters: ``compute_hash("a", "b") != compute_hash("b", "a")``.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32)
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def canonical_json(data: Mapping[str, Any]) -> str:
    """Serialise a mapping with sorted keys and no insignificant whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def hash_row(row: Mapping[str, Any], *, length: int = 32) -> str:
    """
    Content hash of a source row.

    Keys are sorted before hashing; a row hash already present under
    ``rowHash`` is excluded so that hashing evidence that embeds its own
    hash is stable.
    """
    payload = {k: v for k, v in row.items() if k != "rowHash"}
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()[:length]


__all__ = ["compute_hash", "canonical_json", "hash_row"]
