"""
Ingestion pipeline: verification & upsert stage, orchestrator, alerts.

Usage:
    from marketspine.ingest import IngestOrchestrator, IngestRequest

    summary = IngestOrchestrator(conn, kv, registry, verifier).run(IngestRequest("national"))
"""

from marketspine.ingest.alerts import (
    Alert,
    AlertChannel,
    AlertDispatcher,
    AlertSeverity,
    ConsoleChannel,
    DeliveryResult,
    WebhookChannel,
    build_dispatcher,
)
from marketspine.ingest.orchestrator import (
    IngestOrchestrator,
    IngestRequest,
    RunOutcome,
    RunSummary,
    SourceCounters,
    SourceState,
    SourceSummary,
)
from marketspine.ingest.upsert import UpsertOutcome, VerifyAndUpsert

__all__ = [
    "Alert",
    "AlertChannel",
    "AlertDispatcher",
    "AlertSeverity",
    "ConsoleChannel",
    "DeliveryResult",
    "WebhookChannel",
    "build_dispatcher",
    "IngestOrchestrator",
    "IngestRequest",
    "RunOutcome",
    "RunSummary",
    "SourceCounters",
    "SourceState",
    "SourceSummary",
    "UpsertOutcome",
    "VerifyAndUpsert",
]
