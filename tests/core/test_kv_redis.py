"""Tests for the Redis KV backend (client mocked)."""

import json
from unittest.mock import MagicMock

import pytest

from marketspine.core.errors import StorageError

redis = pytest.importorskip("redis")


class TestRedisKVStore:
    @pytest.fixture
    def store_and_client(self):
        from marketspine.core.kv import RedisKVStore

        with pytest.MonkeyPatch.context() as mp:
            client = MagicMock()
            mock_from_url = MagicMock(return_value=client)
            mp.setattr(redis, "from_url", mock_from_url)

            store = RedisKVStore("redis://cache:6379/2")
            mock_from_url.assert_called_once_with("redis://cache:6379/2", decode_responses=True)
            yield store, client

    def test_set_if_absent_uses_nx_px(self, store_and_client):
        store, client = store_and_client
        client.set.return_value = True
        assert store.set_if_absent("lock:ingest:national", "tok", ttl_ms=3_600_000) is True
        client.set.assert_called_once_with("lock:ingest:national", json.dumps("tok"), nx=True, px=3_600_000)

    def test_set_if_absent_refused(self, store_and_client):
        store, client = store_and_client
        client.set.return_value = None
        assert store.set_if_absent("k", "v", ttl_ms=10) is False

    def test_get_decodes_json(self, store_and_client):
        store, client = store_and_client
        client.get.return_value = json.dumps({"cursor": "200"})
        assert store.get("k") == {"cursor": "200"}

    def test_set_with_ttl_uses_setex(self, store_and_client):
        store, client = store_and_client
        store.set("k", "v", ttl_seconds=60)
        client.setex.assert_called_once_with("k", 60, json.dumps("v"))

    def test_delete_if_equals_runs_script(self, store_and_client):
        store, client = store_and_client
        script = client.register_script.return_value
        script.return_value = 1
        assert store.delete_if_equals("k", "tok") is True
        script.assert_called_once_with(keys=["k"], args=[json.dumps("tok")])

    def test_ttl_remaining_missing_key(self, store_and_client):
        store, client = store_and_client
        client.pttl.return_value = -2
        assert store.ttl_remaining_ms("k") is None

    def test_redis_errors_become_storage_errors(self, store_and_client):
        store, client = store_and_client
        client.get.side_effect = redis.ConnectionError("refused")
        with pytest.raises(StorageError) as exc_info:
            store.get("k")
        assert exc_info.value.retryable is True
