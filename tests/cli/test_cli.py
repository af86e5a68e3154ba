"""Tests for the marketspine CLI (Typer CliRunner, in-memory KV)."""

import json

import pytest
from typer.testing import CliRunner

from marketspine import __version__
from marketspine.cli.app import app
from marketspine.cli.utils import open_connection
from marketspine.core.kv import InMemoryKVStore
from marketspine.core.locks import DistributedLock
from marketspine.stores import CompanyStore, CursorStore

runner = CliRunner()


@pytest.fixture
def shared_kv(monkeypatch):
    """One KV store for every command in the test, like a shared Redis."""
    kv = InMemoryKVStore()
    monkeypatch.setattr("marketspine.cli.utils.create_kv_store", lambda url: kv)
    return kv


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cli.db")


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for group in ("db", "ingest", "lock", "cursors", "flags", "identifier", "score"):
            assert group in result.output


class TestIdentifier:
    def test_valid(self):
        result = runner.invoke(app, ["identifier", "check", "RO18547290", "14399840"])
        assert result.exit_code == 0
        assert "18547290" in result.output

    def test_invalid_exits_nonzero(self):
        result = runner.invoke(app, ["identifier", "check", "18547290", "18547291"])
        assert result.exit_code == 1
        assert "invalid" in result.output


class TestDb:
    def test_init_and_tables(self, db_path):
        assert runner.invoke(app, ["db", "init", "-d", db_path]).exit_code == 0
        result = runner.invoke(app, ["db", "tables", "-d", db_path, "--json"])
        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert {"table": "companies", "rows": 0} in rows


class TestFlags:
    def test_set_and_list(self, shared_kv):
        assert runner.invoke(app, ["flags", "set", "INGEST_SEAP", "false"]).exit_code == 0
        result = runner.invoke(app, ["flags", "list", "--json"])
        rows = {row["flag"]: row["enabled"] for row in json.loads(result.stdout)}
        assert rows["INGEST_SEAP"] is False
        assert rows["INGEST_ENABLED"] is True

        assert runner.invoke(app, ["flags", "reset", "INGEST_SEAP"]).exit_code == 0
        assert shared_kv.get("flag:INGEST_SEAP") is None

    def test_rejects_bad_name(self, shared_kv):
        result = runner.invoke(app, ["flags", "set", "ingest-seap", "true"])
        assert result.exit_code == 1


class TestLocksAndCursors:
    def test_lock_status_and_release(self, shared_kv):
        DistributedLock(shared_kv).acquire("ingest:national", ttl_seconds=600)

        result = runner.invoke(app, ["lock", "status", "--json"])
        [row] = json.loads(result.stdout)
        assert row["lock"] == "ingest:national"
        assert row["held"] is True

        result = runner.invoke(app, ["lock", "release", "national", "--yes"])
        assert result.exit_code == 0
        assert not DistributedLock(shared_kv).is_held("ingest:national")

    def test_release_asks_for_confirmation(self, shared_kv):
        DistributedLock(shared_kv).acquire("ingest:national", ttl_seconds=600)
        result = runner.invoke(app, ["lock", "release", "national"], input="n\n")
        assert result.exit_code == 1
        assert DistributedLock(shared_kv).is_held("ingest:national")

    def test_cursors_show_and_reset(self, shared_kv):
        CursorStore(shared_kv).set("national", "SEAP", "120")

        result = runner.invoke(app, ["cursors", "show", "SEAP", "EU_FUNDS", "--json"])
        snapshot = json.loads(result.stdout)
        assert snapshot["SEAP"]["cursor"] == "120"
        assert snapshot["EU_FUNDS"]["cursor"] is None

        assert runner.invoke(app, ["cursors", "reset", "SEAP"]).exit_code == 0
        assert CursorStore(shared_kv).get("national", "SEAP") is None


class TestIngestAndScore:
    def test_dry_run_without_sources(self, shared_kv, db_path, monkeypatch):
        monkeypatch.setattr("marketspine.logging.configure_logging", lambda *args, **kwargs: None)
        result = runner.invoke(app, ["ingest", "run", "--dry-run", "-d", db_path])
        assert result.exit_code == 0
        assert "COMPLETED" in result.output
        assert not DistributedLock(shared_kv).is_held("ingest:national")

    def test_unknown_source(self, shared_kv, db_path, monkeypatch):
        monkeypatch.setattr("marketspine.logging.configure_logging", lambda *args, **kwargs: None)
        result = runner.invoke(app, ["ingest", "run", "-s", "NOPE", "-d", db_path])
        assert result.exit_code == 1

    def test_score_company_by_cui(self, db_path):
        conn = open_connection(db_path)
        CompanyStore(conn).create_skeleton(tax_id="18547290", name="Alpha SRL", source_confidence=60)
        conn.commit()
        conn.close()

        result = runner.invoke(app, ["score", "company", "RO18547290", "-d", db_path])
        assert result.exit_code == 0
        assert "Score: Alpha SRL" in result.output

        conn = open_connection(db_path)
        assert CompanyStore(conn).by_tax_id("18547290")["score"] == 50
        conn.close()

    def test_score_unknown_company(self, db_path):
        result = runner.invoke(app, ["score", "company", "nobody", "-d", db_path])
        assert result.exit_code == 1

    def test_staging_and_runs_empty(self, db_path):
        assert json.loads(runner.invoke(app, ["ingest", "staging", "-d", db_path, "--json"]).stdout) == {}
        assert json.loads(runner.invoke(app, ["ingest", "runs", "-d", db_path, "--json"]).stdout) == []
