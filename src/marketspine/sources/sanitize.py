"""
Sanitiser for third-party provider payloads.

Provider responses are stored as evidence verbatim, so they are cut down
first: only whitelisted keys survive, strings, arrays and nesting are
bounded, and the serialised payload never exceeds 8 KB.

Examples:
    >>> sanitized, size = sanitize_payload({"name": "Alpha", "password": "x"})
    >>> sanitized
    {'name': 'Alpha'}
"""

from __future__ import annotations

import json
from typing import Any

ALLOWED_KEYS = frozenset(
    {
        "name",
        "cui",
        "domain",
        "county",
        "industry",
        "employees",
        "revenue",
        "profit",
        "currency",
        "year",
        "url",
        "description",
        "phone",
        "email",
        "address",
    }
)

MAX_SIZE_BYTES = 8 * 1024
MAX_STRING = 500
MAX_OTHER_STRING = 200
MAX_ARRAY = 10
MAX_DEPTH = 3


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _size(value: Any) -> int:
    return len(json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))


def sanitize_value(value: Any, depth: int = 0) -> Any:
    if depth > MAX_DEPTH:
        return "[truncated]"
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        return _truncate(value, MAX_STRING)
    if isinstance(value, list | tuple):
        return [sanitize_value(item, depth + 1) for item in list(value)[:MAX_ARRAY]]
    if isinstance(value, dict):
        return {
            key: sanitize_value(item, depth + 1)
            for key, item in value.items()
            if isinstance(key, str) and key.lower() in ALLOWED_KEYS
        }
    return _truncate(str(value), MAX_OTHER_STRING)


def sanitize_payload(payload: Any) -> tuple[dict[str, Any], int]:
    """Return ``(sanitized, size_bytes)``.

    Non-object payloads sanitise to ``{}``. When the whitelisted payload
    is still over the cap, keys are dropped from the end until it fits.
    """
    sanitized = sanitize_value(payload)
    if not isinstance(sanitized, dict):
        sanitized = {}
    size = _size(sanitized)
    if size > MAX_SIZE_BYTES:
        for key in reversed(list(sanitized)):
            del sanitized[key]
            size = _size(sanitized)
            if size <= MAX_SIZE_BYTES:
                break
    return sanitized, size


__all__ = ["sanitize_payload", "sanitize_value", "ALLOWED_KEYS", "MAX_SIZE_BYTES"]
