"""
MarketSpine ingestion core.

Discovers companies from public registries, verifies them against the
tax authority, keeps per-fact provenance and a deterministic score.
"""

__version__ = "0.4.0"
