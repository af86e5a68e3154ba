"""
Tables owned by the ingestion core.

Defines table names and DDL for companies, the discovery staging area,
the provenance ledger, score history, run records and item errors.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │ companies              canonical entity                       │
        │   UNIQUE(tax_id)       storage-level backstop for dedup       │
        │   UNIQUE(slug)                                                │
        │   merged_into_id ───►  forwarding pointer (acyclic)           │
        ├──────────────────────────────────────────────────────────────┤
        │ discovered_companies   staging, UNIQUE(identifier, source)    │
        │ company_provenance     UNIQUE(company_id, source, hash)       │
        │ company_score_history  append-only score points               │
        │ company_activity       submissions / claims (external writer) │
        ├──────────────────────────────────────────────────────────────┤
        │ ingest_runs            one row per orchestrator invocation    │
        │ ingest_item_errors     append-only per-item failures          │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> import sqlite3
    >>> conn = sqlite3.connect(":memory:")
    >>> create_tables(conn)
    >>> TABLES["provenance"]
    'company_provenance'

Guardrails:
    ❌ DON'T: Rely on application checks alone for identifier uniqueness
    ✅ DO: Keep the UNIQUE constraints; they are the final backstop

Tags:
    schema, ddl, sqlite, companies, provenance, runs
"""

from __future__ import annotations

from marketspine.core.protocols import Connection

TABLES = {
    "companies": "companies",
    "discovered": "discovered_companies",
    "provenance": "company_provenance",
    "score_history": "company_score_history",
    "activity": "company_activity",
    "runs": "ingest_runs",
    "item_errors": "ingest_item_errors",
}


DDL = {
    # Canonical company record. Financial fields are nullable until enriched.
    "companies": """
        CREATE TABLE IF NOT EXISTS companies (
            id TEXT PRIMARY KEY,
            slug TEXT NOT NULL UNIQUE,
            tax_id TEXT UNIQUE,
            name TEXT NOT NULL,

            -- Closed taxonomies (slugs)
            county_slug TEXT,
            industry_slug TEXT,

            -- Facts
            website TEXT,
            description TEXT,
            founded_year INTEGER,
            revenue REAL,
            profit REAL,
            employees INTEGER,
            is_vat_registered INTEGER,
            is_active INTEGER NOT NULL DEFAULT 1,
            is_skeleton INTEGER NOT NULL DEFAULT 1,
            is_claimed INTEGER NOT NULL DEFAULT 0,

            -- Derived
            score INTEGER,
            confidence INTEGER,
            source_confidence INTEGER,
            integrity_score INTEGER,
            stability_profile TEXT,
            risk_flags TEXT NOT NULL DEFAULT '[]',  -- JSON array
            valuation_low INTEGER,
            valuation_high INTEGER,
            valuation_currency TEXT,

            -- Timestamps (ISO-8601 UTC)
            verified_at TEXT,
            last_enriched_at TEXT,
            enrich_version INTEGER,
            last_scored_at TEXT,

            merged_into_id TEXT REFERENCES companies(id),

            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "companies_idx_merged": """
        CREATE INDEX IF NOT EXISTS idx_companies_merged
        ON companies(merged_into_id)
    """,
    # Staging area fed by source adapters
    "discovered": """
        CREATE TABLE IF NOT EXISTS discovered_companies (
            id TEXT PRIMARY KEY,
            identifier TEXT NOT NULL,
            source TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'NEW',  -- NEW, VERIFIED, INVALID, ERROR, REJECTED, DUPLICATE
            company_name TEXT,
            evidence_json TEXT NOT NULL DEFAULT '{}',
            discovered_at TEXT NOT NULL,
            last_seen_at TEXT NOT NULL,
            try_count INTEGER NOT NULL DEFAULT 0,
            last_tried_at TEXT,
            last_error TEXT,
            linked_company_id TEXT REFERENCES companies(id),
            UNIQUE(identifier, source)
        )
    """,
    "discovered_idx_status": """
        CREATE INDEX IF NOT EXISTS idx_discovered_status
        ON discovered_companies(source, status, discovered_at)
    """,
    # One row per (company, source, content hash); re-sightings bump last_seen_at
    "provenance": """
        CREATE TABLE IF NOT EXISTS company_provenance (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id TEXT NOT NULL REFERENCES companies(id),
            source TEXT NOT NULL,
            content_hash TEXT NOT NULL,
            evidence_json TEXT NOT NULL,
            confidence INTEGER NOT NULL,
            first_seen_at TEXT NOT NULL,
            last_seen_at TEXT NOT NULL,
            external_id TEXT,
            evidence_url TEXT,
            contract_value REAL,
            contract_year INTEGER,
            contracting_authority TEXT,
            UNIQUE(company_id, source, content_hash)
        )
    """,
    "provenance_idx_source": """
        CREATE INDEX IF NOT EXISTS idx_provenance_source
        ON company_provenance(source, company_id)
    """,
    "score_history": """
        CREATE TABLE IF NOT EXISTS company_score_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id TEXT NOT NULL REFERENCES companies(id),
            score INTEGER NOT NULL,
            confidence INTEGER NOT NULL,
            recorded_at TEXT NOT NULL
        )
    """,
    "score_history_idx": """
        CREATE INDEX IF NOT EXISTS idx_score_history_company
        ON company_score_history(company_id, recorded_at)
    """,
    # Written by moderation tooling; read here for abuse signals and approvals
    "activity": """
        CREATE TABLE IF NOT EXISTS company_activity (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id TEXT NOT NULL REFERENCES companies(id),
            kind TEXT NOT NULL,        -- SUBMISSION, CLAIM
            user_id TEXT,
            status TEXT NOT NULL,      -- PENDING, APPROVED, REJECTED
            created_at TEXT NOT NULL
        )
    """,
    "activity_idx": """
        CREATE INDEX IF NOT EXISTS idx_activity_company
        ON company_activity(company_id, kind, created_at)
    """,
    "runs": """
        CREATE TABLE IF NOT EXISTS ingest_runs (
            id TEXT PRIMARY KEY,
            job_name TEXT NOT NULL,
            status TEXT NOT NULL,      -- STARTED, PARTIAL, COMPLETED, FAILED
            started_at TEXT NOT NULL,
            finished_at TEXT,
            cursors_json TEXT NOT NULL DEFAULT '{}',
            stats_json TEXT NOT NULL DEFAULT '{}',
            last_error TEXT
        )
    """,
    "runs_idx_job": """
        CREATE INDEX IF NOT EXISTS idx_runs_job
        ON ingest_runs(job_name, started_at)
    """,
    "item_errors": """
        CREATE TABLE IF NOT EXISTS ingest_item_errors (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            run_id TEXT NOT NULL,
            source TEXT NOT NULL,
            item_ref TEXT,
            message TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """,
}


def create_tables(conn: Connection) -> None:
    """
    Create all ingestion tables.

    Safe to call multiple times (CREATE IF NOT EXISTS).
    """
    for _name, ddl in DDL.items():
        conn.execute(ddl)
    conn.commit()


__all__ = ["TABLES", "DDL", "create_tables"]
