"""
Shared key-value store used for locks, cursors, flags and caches.

Provides a ``KVStore`` protocol with an in-process implementation and a
Redis implementation. The two atomic primitives the pipeline depends on,
set-if-absent-with-expiry and compare-and-delete, are part of the protocol
so that the distributed lock never has to compose them from weaker calls.

Manifesto:
    Mutual exclusion is only as good as the store's atomicity. A lock
    built from ``GET`` followed by ``SET`` lets two runs in.

    - **Atomic acquire:** ``set_if_absent`` maps to ``SET NX PX``
    - **Atomic release:** ``delete_if_equals`` maps to a Lua script
    - **TTL everywhere:** a crashed holder's key always expires
    - **JSON values:** both backends round-trip JSON-serialisable values

Architecture:
    ::

        KVStore (Protocol)
        ├── InMemoryKVStore  single process, threading.Lock, monotonic TTL
        └── RedisKVStore     shared, redis-py client

        get(key) → value | None
        set(key, value, ttl_seconds=None)
        set_if_absent(key, value, ttl_ms) → bool
        delete(key) → bool
        delete_if_equals(key, expected) → bool
        exists(key) → bool
        ttl_remaining_ms(key) → int | None
        keys(prefix) → list[str]

Examples:
    >>> kv = InMemoryKVStore()
    >>> kv.set_if_absent("lock:ingest", "t1", ttl_ms=1000)
    True
    >>> kv.set_if_absent("lock:ingest", "t2", ttl_ms=1000)
    False
    >>> kv.delete_if_equals("lock:ingest", "t2")
    False

Guardrails:
    ❌ DON'T: Use InMemoryKVStore across processes (nothing is shared)
    ✅ DO: Configure ``redis_url`` for any multi-process deployment

Tags:
    kv, redis, in-memory, ttl, atomic, locks, cursors

Doc-Types:
    - API Reference
    - Infrastructure Guide
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol

import redis

from marketspine.core.errors import StorageError


class KVStore(Protocol):
    """Protocol for key-value backends.

    Keys are strings, values are JSON-serialisable.
    """

    def get(self, key: str) -> Any | None:
        """Return the value, or ``None`` when missing or expired."""
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value, optionally expiring after ``ttl_seconds``."""
        ...

    def set_if_absent(self, key: str, value: Any, *, ttl_ms: int) -> bool:
        """Atomically store ``value`` only if ``key`` is absent.

        Returns:
            ``True`` if the value was stored.
        """
        ...

    def delete(self, key: str) -> bool:
        """Remove a key. Returns ``True`` if it existed."""
        ...

    def delete_if_equals(self, key: str, expected: Any) -> bool:
        """Atomically remove ``key`` only if it currently holds ``expected``."""
        ...

    def exists(self, key: str) -> bool:
        """Check whether a key exists and has not expired."""
        ...

    def ttl_remaining_ms(self, key: str) -> int | None:
        """Milliseconds until expiry; ``None`` if missing or without TTL."""
        ...

    def keys(self, prefix: str) -> list[str]:
        """List live keys starting with ``prefix``, sorted."""
        ...


# ------------------------------------------------------------------ #
# In-memory store
# ------------------------------------------------------------------ #


class InMemoryKVStore:
    """Thread-safe in-process KV store with TTL support.

    Values are kept JSON-encoded so callers get the same copy semantics as
    with Redis. Expiry is checked lazily against ``clock`` (seconds).

    Example:
        kv = InMemoryKVStore()
        kv.set("ingest:cursor:national:SEAP", "200")
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic):
        self._store: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._store[key]
            return None
        return entry

    def _expiry(self, ttl_seconds: float | None) -> float | None:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live(key)
        return json.loads(entry[0]) if entry else None

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._store[key] = (encoded, self._expiry(ttl_seconds))

    def set_if_absent(self, key: str, value: Any, *, ttl_ms: int) -> bool:
        encoded = json.dumps(value)
        with self._lock:
            if self._live(key) is not None:
                return False
            self._store[key] = (encoded, self._expiry(ttl_ms / 1000))
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._live(key) is not None
            self._store.pop(key, None)
            return existed

    def delete_if_equals(self, key: str, expected: Any) -> bool:
        encoded = json.dumps(expected)
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[0] != encoded:
                return False
            del self._store[key]
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def ttl_remaining_ms(self, key: str) -> int | None:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[1] is None:
                return None
            return max(0, int((entry[1] - self._clock()) * 1000))

    def keys(self, prefix: str) -> list[str]:
        with self._lock:
            candidates = [k for k in self._store if k.startswith(prefix)]
            return sorted(k for k in candidates if self._live(k) is not None)

    def clear(self) -> None:
        """Remove all keys (testing only)."""
        with self._lock:
            self._store.clear()


# ------------------------------------------------------------------ #
# Redis store
# ------------------------------------------------------------------ #

_COMPARE_AND_DELETE = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


@contextmanager
def _redis_errors(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except redis.RedisError as e:
        raise StorageError(
            f"Redis {operation} failed for {key}: {e}",
            retryable=True,
            cause=e,
        ).with_context(key=key) from e


class RedisKVStore:
    """Redis-backed KV store.

    Process-safe via Redis atomic commands. Connection failures surface as
    ``StorageError`` so the orchestrator treats them as unexpected.

    Example:
        kv = RedisKVStore("redis://localhost:6379/0")
        kv.set_if_absent("lock:ingest:national", token, ttl_ms=3_600_000)
    """

    def __init__(self, url: str = "redis://localhost:6379/0"):
        self._client = redis.from_url(url, decode_responses=True)
        self._compare_and_delete = self._client.register_script(_COMPARE_AND_DELETE)

    def get(self, key: str) -> Any | None:
        with _redis_errors("GET", key):
            raw = self._client.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        serialized = json.dumps(value)
        with _redis_errors("SET", key):
            if ttl_seconds:
                self._client.setex(key, ttl_seconds, serialized)
            else:
                self._client.set(key, serialized)

    def set_if_absent(self, key: str, value: Any, *, ttl_ms: int) -> bool:
        with _redis_errors("SET NX", key):
            return bool(self._client.set(key, json.dumps(value), nx=True, px=ttl_ms))

    def delete(self, key: str) -> bool:
        with _redis_errors("DEL", key):
            return bool(self._client.delete(key))

    def delete_if_equals(self, key: str, expected: Any) -> bool:
        with _redis_errors("compare-and-delete", key):
            return bool(self._compare_and_delete(keys=[key], args=[json.dumps(expected)]))

    def exists(self, key: str) -> bool:
        with _redis_errors("EXISTS", key):
            return bool(self._client.exists(key))

    def ttl_remaining_ms(self, key: str) -> int | None:
        with _redis_errors("PTTL", key):
            remaining = self._client.pttl(key)
        # -2: missing, -1: no expiry
        return remaining if remaining is not None and remaining >= 0 else None

    def keys(self, prefix: str) -> list[str]:
        with _redis_errors("SCAN", prefix):
            return sorted(self._client.scan_iter(match=f"{prefix}*"))


def create_kv_store(redis_url: str | None) -> KVStore:
    """Build the configured backend: Redis when a URL is given, else in-memory."""
    if redis_url:
        return RedisKVStore(redis_url)
    return InMemoryKVStore()


__all__ = [
    "KVStore",
    "InMemoryKVStore",
    "RedisKVStore",
    "create_kv_store",
]
