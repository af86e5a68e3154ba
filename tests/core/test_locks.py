"""Tests for the KV-backed distributed lock."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from marketspine.core.errors import LockError
from marketspine.core.locks import DistributedLock


class TestAcquireRelease:
    def setup_method(self):
        self.sleeps = []

    def _locks(self, kv):
        return DistributedLock(kv, sleep=self.sleeps.append)

    def test_acquire_returns_token(self, kv):
        token = self._locks(kv).acquire("ingest:national", ttl_seconds=60)
        assert token is not None
        assert len(token) == 32

    def test_second_acquire_is_refused(self, kv):
        locks = self._locks(kv)
        assert locks.acquire("ingest:national", 60) is not None
        assert locks.acquire("ingest:national", 60) is None

    def test_two_managers_share_the_store(self, kv):
        first, second = self._locks(kv), self._locks(kv)
        assert first.acquire("ingest:national", 60) is not None
        assert second.acquire("ingest:national", 60) is None

    def test_different_names_do_not_conflict(self, kv):
        locks = self._locks(kv)
        assert locks.acquire("ingest:national", 60) is not None
        assert locks.acquire("ingest:regional", 60) is not None

    def test_release_with_token(self, kv):
        locks = self._locks(kv)
        token = locks.acquire("ingest:national", 60)
        assert locks.release("ingest:national", token) is True
        assert not locks.is_held("ingest:national")

    def test_release_with_wrong_token_keeps_lock(self, kv):
        locks = self._locks(kv)
        token = locks.acquire("ingest:national", 60)
        assert locks.release("ingest:national", "not-the-token") is False
        assert locks.is_held("ingest:national")
        assert locks.holder("ingest:national") == token

    def test_stale_holder_cannot_release_new_holder(self, kv, clock):
        locks = self._locks(kv)
        stale = locks.acquire("ingest:national", 10)
        clock.advance(11)
        fresh = locks.acquire("ingest:national", 10)
        assert fresh is not None
        assert locks.release("ingest:national", stale) is False
        assert locks.holder("ingest:national") == fresh

    def test_ttl_expiry_frees_lock(self, kv, clock):
        locks = self._locks(kv)
        locks.acquire("ingest:national", 5)
        clock.advance(5)
        assert not locks.is_held("ingest:national")

    def test_ttl_remaining(self, kv, clock):
        locks = self._locks(kv)
        locks.acquire("ingest:national", 10)
        clock.advance(4)
        assert locks.ttl_remaining_ms("ingest:national") == 6000

    def test_non_positive_ttl_rejected(self, kv):
        with pytest.raises(ValueError):
            self._locks(kv).acquire("ingest:national", 0)

    def test_keys_are_prefixed(self, kv):
        self._locks(kv).acquire("ingest:national", 60)
        assert kv.exists("lock:ingest:national")

    def test_list_held_and_force_release(self, kv):
        locks = self._locks(kv)
        locks.acquire("ingest:a", 60)
        locks.acquire("ingest:b", 60)
        assert locks.list_held() == ["ingest:a", "ingest:b"]
        assert locks.force_release("ingest:a") is True
        assert locks.list_held() == ["ingest:b"]


class TestAcquireWithRetry:
    def setup_method(self):
        self.sleeps = []

    def test_gives_up_after_max_retries(self, kv):
        locks = DistributedLock(kv, sleep=self.sleeps.append)
        locks.acquire("ingest:national", 60)
        assert locks.acquire_with_retry("ingest:national", 60, max_retries=3, retry_delay_ms=100) is None
        assert self.sleeps == [0.1, 0.1, 0.1]

    def test_zero_retries_makes_one_attempt(self, kv):
        locks = DistributedLock(kv, sleep=self.sleeps.append)
        locks.acquire("ingest:national", 60)
        assert locks.acquire_with_retry("ingest:national", 60, max_retries=0) is None
        assert self.sleeps == []

    def test_succeeds_once_holder_expires(self, kv, clock):
        def sleep(seconds):
            clock.advance(seconds)

        locks = DistributedLock(kv, sleep=sleep)
        locks.acquire("ingest:national", 1)
        token = locks.acquire_with_retry("ingest:national", 60, max_retries=20, retry_delay_ms=100)
        assert token is not None


class TestHold:
    def test_hold_releases_on_exit(self, kv):
        locks = DistributedLock(kv)
        with locks.hold("ingest:national", 60) as token:
            assert locks.holder("ingest:national") == token
        assert not locks.is_held("ingest:national")

    def test_hold_releases_on_error(self, kv):
        locks = DistributedLock(kv)
        with pytest.raises(RuntimeError):
            with locks.hold("ingest:national", 60):
                raise RuntimeError("boom")
        assert not locks.is_held("ingest:national")

    def test_hold_raises_when_taken(self, kv):
        locks = DistributedLock(kv)
        locks.acquire("ingest:national", 60)
        with pytest.raises(LockError):
            with locks.hold("ingest:national", 60):
                pass


class TestConcurrentAcquire:
    """Many threads racing for one lock on a shared store."""

    def test_exactly_one_winner(self, kv):
        locks = DistributedLock(kv)
        start = threading.Barrier(16)

        def contend(_):
            start.wait(timeout=5)
            return locks.acquire("ingest:national", ttl_seconds=60)

        with ThreadPoolExecutor(max_workers=16) as pool:
            tokens = list(pool.map(contend, range(16)))

        winners = [token for token in tokens if token is not None]
        assert len(winners) == 1
        assert locks.holder("ingest:national") == winners[0]

    def test_release_then_reacquire_under_contention(self, kv):
        locks = DistributedLock(kv)
        acquired = []
        guard = threading.Lock()

        def worker(_):
            for _ in range(50):
                token = locks.acquire("ingest:national", ttl_seconds=60)
                if token is None:
                    continue
                with guard:
                    acquired.append(token)
                # Nobody else may acquire while we hold it
                assert locks.holder("ingest:national") == token
                assert locks.release("ingest:national", token)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(worker, range(8)))

        assert acquired
        assert len(set(acquired)) == len(acquired)
        assert not locks.is_held("ingest:national")
