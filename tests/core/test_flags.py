"""Tests for kill switches and flag snapshots."""

import pytest

from marketspine.core.flags import (
    INGEST_ENABLED,
    READ_ONLY_MODE,
    FlagSnapshot,
    FlagStore,
    job_flag,
    source_flag,
)


class TestFlagNames:
    def test_job_flag(self):
        assert job_flag("national") == "INGEST_JOB_NATIONAL"
        assert job_flag("eu-funds daily") == "INGEST_JOB_EU_FUNDS_DAILY"

    def test_source_flag(self):
        assert source_flag("SEAP") == "INGEST_SEAP"
        assert source_flag("third_party") == "INGEST_THIRD_PARTY"


class TestFlagStore:
    def test_defaults(self, kv):
        store = FlagStore(kv, env={})
        assert store.get("INGEST_SEAP") is True
        assert store.get("INGEST_THIRD_PARTY") is False
        assert store.get(READ_ONLY_MODE) is False

    def test_kv_value_wins_over_default(self, kv):
        store = FlagStore(kv, env={})
        store.set("INGEST_SEAP", False)
        store.set("INGEST_THIRD_PARTY", True)
        assert store.get("INGEST_SEAP") is False
        assert store.get("INGEST_THIRD_PARTY") is True

    def test_env_wins_over_kv(self, kv):
        store = FlagStore(kv, env={"MARKETSPINE_FF_INGEST_SEAP": "true"})
        store.set("INGEST_SEAP", False)
        assert store.get("INGEST_SEAP") is True

    def test_unparseable_env_is_ignored(self, kv):
        store = FlagStore(kv, env={"MARKETSPINE_FF_INGEST_SEAP": "maybe"})
        store.set("INGEST_SEAP", False)
        assert store.get("INGEST_SEAP") is False

    def test_reset_restores_default(self, kv):
        store = FlagStore(kv, env={})
        store.set("INGEST_SEAP", False)
        store.reset("INGEST_SEAP")
        assert store.get("INGEST_SEAP") is True

    def test_invalid_name_rejected(self, kv):
        with pytest.raises(ValueError):
            FlagStore(kv, env={}).set("ingest-seap", True)

    def test_read_error_falls_back_to_default(self):
        class BrokenKV:
            def get(self, key):
                raise ConnectionError("down")

        store = FlagStore(BrokenKV(), env={})
        assert store.get("INGEST_SEAP") is True
        assert store.get("INGEST_THIRD_PARTY") is False


class TestFlagSnapshot:
    def test_snapshot_is_frozen_in_time(self, kv):
        store = FlagStore(kv, env={})
        snap = store.snapshot(["INGEST_SEAP"])
        store.set("INGEST_SEAP", False)
        assert snap.source_enabled("SEAP") is True
        assert store.snapshot().source_enabled("SEAP") is False

    def test_snapshot_includes_stored_flags(self, kv):
        store = FlagStore(kv, env={})
        store.set("INGEST_EU_FUNDS", False)
        snap = store.snapshot()
        assert "INGEST_EU_FUNDS" in snap.values
        assert INGEST_ENABLED in snap.values

    def test_job_enabled_needs_global_and_job_flag(self):
        assert FlagSnapshot().job_enabled("national")
        assert not FlagSnapshot({INGEST_ENABLED: False}).job_enabled("national")
        assert not FlagSnapshot({"INGEST_JOB_NATIONAL": False}).job_enabled("national")

    def test_values_are_read_only(self):
        snap = FlagSnapshot({"INGEST_SEAP": True})
        with pytest.raises(TypeError):
            snap.values["INGEST_SEAP"] = False

    def test_all_enabled_has_no_risky_flags(self):
        snap = FlagSnapshot.all_enabled()
        assert snap.source_enabled("THIRD_PARTY")
        assert not snap.read_only

    def test_read_only(self):
        assert FlagSnapshot.all_enabled(READ_ONLY_MODE=True).read_only
