"""
Runtime configuration for the ingestion pipeline.

All values can be provided through environment variables prefixed with
``MARKETSPINE_`` or a ``.env`` file in the working directory::

    MARKETSPINE_DATABASE_PATH=/var/lib/marketspine/ingest.db
    MARKETSPINE_REDIS_URL=redis://localhost:6379/0
    MARKETSPINE_SEAP_CSV_URL=https://data.gov.ro/.../contracte.csv
    MARKETSPINE_MAX_ITEMS=500
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IngestSettings(BaseSettings):
    """Settings for one deployment of the ingestion core.

    Fields
    ──────
    database_path        : SQLite file holding companies, staging, provenance, runs
    redis_url            : Shared KV store; unset → in-process store (single worker only)
    job_name             : Default orchestrator job name
    max_items            : Default per-run item budget
    max_duration_seconds : Default per-run wall-clock budget
    batch_size           : Records pulled per source per run
    lock_*               : Run lock tuning
    cursor_ttl_seconds   : Expiry of persisted cursors
    *_url                : Upstream endpoints
    """

    model_config = SettingsConfigDict(
        env_prefix="MARKETSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".marketspine" / "ingest.db",
        description="SQLite database file",
    )
    redis_url: str | None = None

    # ── Orchestration ────────────────────────────────────────────
    job_name: str = "national"
    max_items: int = Field(default=200, ge=0)
    max_duration_seconds: int = Field(default=240, ge=0)
    batch_size: int = Field(default=500, ge=1)
    lock_ttl_seconds: int = Field(default=3600, ge=1)
    lock_max_retries: int = Field(default=0, ge=0)
    lock_retry_delay_ms: int = Field(default=100, ge=0)
    cursor_ttl_seconds: int | None = 7 * 24 * 3600

    # ── Sources ──────────────────────────────────────────────────
    seap_csv_url: str | None = None
    eu_funds_url: str | None = None
    third_party_url: str | None = None
    third_party_api_key: str | None = None
    http_timeout_seconds: float = 30.0
    max_download_bytes: int = 100 * 1024 * 1024

    # ── Verification ─────────────────────────────────────────────
    anaf_api_url: str = "https://webservicesp.anaf.ro/PlatitorTvaRest/api/v8/ws/tva"
    verify_timeout_seconds: float = 10.0
    verify_cache_days: int = 90
    verify_min_interval_ms: int = 1000

    # ── Alerts ───────────────────────────────────────────────────
    alert_webhook_url: str | None = None

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "console"


@lru_cache(maxsize=1)
def get_settings() -> IngestSettings:
    """Return the process-wide settings (read once)."""
    return IngestSettings()


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


__all__ = ["IngestSettings", "get_settings", "reset_settings"]
