"""Persistence for companies, staging, provenance, runs and cursors."""

from marketspine.stores.companies import CompanyStore
from marketspine.stores.cursors import CursorStore
from marketspine.stores.discovered import DiscoveredStore, DiscoveryStatus
from marketspine.stores.history import ActivityStore, ScoreHistoryStore
from marketspine.stores.provenance import ProvenanceLedger, ProvenanceOutcome
from marketspine.stores.runs import RunLog, RunStatus

__all__ = [
    "CompanyStore",
    "CursorStore",
    "DiscoveredStore",
    "DiscoveryStatus",
    "ProvenanceLedger",
    "ProvenanceOutcome",
    "RunLog",
    "RunStatus",
    "ScoreHistoryStore",
    "ActivityStore",
]
