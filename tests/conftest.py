"""
Shared pytest fixtures for marketspine tests.

This module provides:
- In-memory SQLite connections with every ingestion table
- In-memory KV stores with a controllable clock
- Fixed clocks for deterministic timestamps and scores
- Well-known valid / invalid CUIs

Usage:
    def test_something(conn, kv):
        ...
"""

from __future__ import annotations

import sqlite3
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from marketspine.core.kv import InMemoryKVStore
from marketspine.core.schema import create_tables
from marketspine.core.settings import reset_settings

# Pass the national checksum
VALID_CUIS = ["18547290", "14399840", "13548146", "10000008", "20000005", "30000002", "40000000", "50000007"]
# Checksum digit off by one
INVALID_CUI = "18547291"

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark everything without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory SQLite connection with all tables created."""
    connection = sqlite3.connect(":memory:")
    connection.row_factory = sqlite3.Row
    create_tables(connection)
    yield connection
    connection.close()


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def kv(clock: ManualClock) -> InMemoryKVStore:
    """KV store whose TTLs follow the ``clock`` fixture."""
    return InMemoryKVStore(clock=clock)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Keep settings and flags from leaking in from the developer's environment."""
    monkeypatch.setenv("MARKETSPINE_DATABASE_PATH", str(tmp_path / "ingest.db"))
    monkeypatch.delenv("MARKETSPINE_REDIS_URL", raising=False)
    for name in ("MARKETSPINE_SEAP_CSV_URL", "MARKETSPINE_EU_FUNDS_URL", "MARKETSPINE_THIRD_PARTY_URL"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()
