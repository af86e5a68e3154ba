"""
Per-(job, source) cursor, last-run and stats persistence in the KV store.

Keys:
    ``ingest:cursor:<job>:<source>``    opaque resume cursor
    ``ingest:last_run:<job>:<source>``  ISO timestamp of the last finished pass
    ``ingest:stats:<job>:<source>``     counters of the last pass

Dashboards read these keys directly; the orchestrator writes them after
each source so a crash never rewinds a source that already finished.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from marketspine.core.kv import KVStore
from marketspine.core.timestamps import now_iso

KEY_PREFIX = "ingest"
DEFAULT_TTL_SECONDS = 7 * 24 * 3600


class CursorStore:
    def __init__(self, kv: KVStore, *, ttl_seconds: int | None = DEFAULT_TTL_SECONDS) -> None:
        self.kv = kv
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(kind: str, job_name: str, source: str) -> str:
        return f"{KEY_PREFIX}:{kind}:{job_name}:{source}"

    def get(self, job_name: str, source: str) -> str | None:
        value = self.kv.get(self._key("cursor", job_name, source))
        return None if value is None else str(value)

    def set(self, job_name: str, source: str, cursor: str) -> None:
        self.kv.set(self._key("cursor", job_name, source), cursor, ttl_seconds=self.ttl_seconds)

    def clear(self, job_name: str, source: str) -> bool:
        return self.kv.delete(self._key("cursor", job_name, source))

    def record_run(self, job_name: str, source: str, stats: dict[str, Any], *, finished_at: str | None = None) -> None:
        self.kv.set(self._key("last_run", job_name, source), finished_at or now_iso(), ttl_seconds=self.ttl_seconds)
        self.kv.set(self._key("stats", job_name, source), stats, ttl_seconds=self.ttl_seconds)

    def last_run(self, job_name: str, source: str) -> str | None:
        return self.kv.get(self._key("last_run", job_name, source))

    def stats(self, job_name: str, source: str) -> dict[str, Any] | None:
        return self.kv.get(self._key("stats", job_name, source))

    def snapshot(self, job_name: str, sources: Iterable[str]) -> dict[str, dict[str, Any]]:
        """Cursor, last run and stats for each source (for the CLI)."""
        return {
            source: {
                "cursor": self.get(job_name, source),
                "last_run": self.last_run(job_name, source),
                "stats": self.stats(job_name, source),
            }
            for source in sources
        }


__all__ = ["CursorStore"]
