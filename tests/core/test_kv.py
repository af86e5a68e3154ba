"""Tests for the in-memory KV store."""

from marketspine.core.kv import InMemoryKVStore, create_kv_store


class TestInMemoryKVStore:
    def test_set_get_roundtrip_copies(self, kv):
        value = {"a": [1, 2]}
        kv.set("k", value)
        value["a"].append(3)
        assert kv.get("k") == {"a": [1, 2]}

    def test_missing_key(self, kv):
        assert kv.get("nope") is None
        assert kv.delete("nope") is False

    def test_ttl_expiry(self, kv, clock):
        kv.set("k", "v", ttl_seconds=10)
        clock.advance(9)
        assert kv.get("k") == "v"
        clock.advance(1)
        assert kv.get("k") is None

    def test_set_if_absent(self, kv, clock):
        assert kv.set_if_absent("k", "a", ttl_ms=500) is True
        assert kv.set_if_absent("k", "b", ttl_ms=500) is False
        clock.advance(0.5)
        assert kv.set_if_absent("k", "c", ttl_ms=500) is True
        assert kv.get("k") == "c"

    def test_delete_if_equals(self, kv):
        kv.set("k", "token-1")
        assert kv.delete_if_equals("k", "token-2") is False
        assert kv.delete_if_equals("k", "token-1") is True
        assert not kv.exists("k")

    def test_keys_by_prefix(self, kv):
        kv.set("flag:A", True)
        kv.set("flag:B", False)
        kv.set("lock:x", "t")
        assert kv.keys("flag:") == ["flag:A", "flag:B"]

    def test_ttl_remaining_without_expiry(self, kv):
        kv.set("k", 1)
        assert kv.ttl_remaining_ms("k") is None


class TestCreateKvStore:
    def test_no_url_gives_memory_store(self):
        assert isinstance(create_kv_store(None), InMemoryKVStore)
