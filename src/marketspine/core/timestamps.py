"""
UTC timestamp and id helpers.

Every persisted timestamp is an ISO-8601 string with a UTC offset, so
lexical order in SQL equals chronological order.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to an aware UTC datetime."""
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def now_iso() -> str:
    return utc_now().isoformat()


def new_id() -> str:
    """Random 32-char hex id for companies, staging rows and runs."""
    return uuid.uuid4().hex


__all__ = ["utc_now", "to_iso8601", "from_iso8601", "now_iso", "new_id"]
