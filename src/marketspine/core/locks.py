"""
Distributed mutual exclusion over the shared KV store.

Acquisition is a single ``set_if_absent`` with expiry; release is a
compare-and-delete on the holder token. Two concurrent runs of the same
job therefore never both proceed, and a holder whose TTL lapsed can never
release a lock that has since been taken by someone else.

Examples:
    >>> locks = DistributedLock(InMemoryKVStore())
    >>> token = locks.acquire("ingest:national", ttl_seconds=60)
    >>> locks.acquire("ingest:national", ttl_seconds=60) is None
    True
    >>> locks.release("ingest:national", "not-my-token")
    False
    >>> locks.release("ingest:national", token)
    True

Tags:
    locking, mutual-exclusion, redis, ttl
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from uuid import uuid4

from marketspine.core.errors import LockError
from marketspine.core.kv import KVStore

logger = logging.getLogger(__name__)

LOCK_PREFIX = "lock:"
DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_RETRIES = 10
DEFAULT_RETRY_DELAY_MS = 100


class DistributedLock:
    """TTL lock manager keyed by name.

    Backend failures are not caught here: an unreachable store must abort
    the caller rather than be mistaken for "already held".

    Example:
        >>> locks = DistributedLock(kv)
        >>> token = locks.acquire("ingest:national", ttl_seconds=3600)
        >>> if token is None:
        ...     print("another run is in progress")
        ... else:
        ...     try:
        ...         run()
        ...     finally:
        ...         locks.release("ingest:national", token)
    """

    def __init__(
        self,
        kv: KVStore,
        *,
        prefix: str = LOCK_PREFIX,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.kv = kv
        self.prefix = prefix
        self._sleep = sleep

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def acquire(self, name: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str | None:
        """Try once to acquire ``name``.

        Args:
            name: Lock name (e.g. ``ingest:national``)
            ttl_seconds: Expiry; guarantees eventual release after a crash

        Returns:
            Holder token if acquired, ``None`` if already held
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        token = uuid4().hex
        if self.kv.set_if_absent(self._key(name), token, ttl_ms=ttl_seconds * 1000):
            logger.debug(f"Acquired lock {name}")
            return token
        logger.debug(f"Lock {name} already held")
        return None

    def acquire_with_retry(
        self,
        name: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
    ) -> str | None:
        """Acquire with bounded fixed-delay retry.

        Makes at most ``max_retries + 1`` attempts. Returns ``None`` (not an
        error) when the lock stays held.
        """
        for attempt in range(max_retries + 1):
            token = self.acquire(name, ttl_seconds)
            if token is not None:
                return token
            if attempt < max_retries:
                self._sleep(retry_delay_ms / 1000)
        logger.info(f"Gave up on lock {name} after {max_retries + 1} attempts")
        return None

    def release(self, name: str, token: str) -> bool:
        """Release ``name`` if ``token`` still holds it.

        Returns:
            True if released, False if not held by this token
        """
        released = self.kv.delete_if_equals(self._key(name), token)
        if released:
            logger.debug(f"Released lock {name}")
        else:
            logger.warning(f"Lock {name} not released: not held by this token")
        return released

    def is_held(self, name: str) -> bool:
        """Check if ``name`` is currently held by anyone."""
        return self.kv.exists(self._key(name))

    def holder(self, name: str) -> str | None:
        """Token of the current holder, if any."""
        return self.kv.get(self._key(name))

    def ttl_remaining_ms(self, name: str) -> int | None:
        """Milliseconds until the lock expires, if held."""
        return self.kv.ttl_remaining_ms(self._key(name))

    def force_release(self, name: str) -> bool:
        """Delete the lock regardless of holder (operator action)."""
        logger.warning(f"Force-releasing lock {name}")
        return self.kv.delete(self._key(name))

    def list_held(self) -> list[str]:
        """Names of all currently held locks."""
        return [key[len(self.prefix):] for key in self.kv.keys(self.prefix)]

    @contextmanager
    def hold(self, name: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> Iterator[str]:
        """Hold ``name`` for the duration of the block.

        Raises:
            LockError: If the lock is already held
        """
        token = self.acquire(name, ttl_seconds)
        if token is None:
            raise LockError(f"Lock already held: {name}").with_context(lock=name)
        try:
            yield token
        finally:
            self.release(name, token)


__all__ = [
    "DistributedLock",
    "LOCK_PREFIX",
    "DEFAULT_TTL_SECONDS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY_MS",
]
