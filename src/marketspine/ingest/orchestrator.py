"""
Ingestion orchestrator: one invocation of one job.

Manifesto:
    A run is bounded (item and wall-clock budget), exclusive (one run per
    job name, enforced by the distributed lock), resumable (a cursor per
    source, persisted as soon as that source finishes) and honest (the
    returned ``RunSummary`` always says what happened, per source).

Architecture:
    ::

        run(IngestRequest)
          │
          ├─ flag snapshot ─── job disabled ─────────────────► SKIPPED
          ├─ acquire lock ingest:<job> ─── held ─────────────► ALREADY_RUNNING
          ├─ run record STARTED
          ├─ for adapter in registration order:
          │     source disabled? ─► SKIPPED
          │     budget exhausted? ─► BUDGET_EXHAUSTED
          │     retry NEW / ERROR staging rows ─► VerifyAndUpsert
          │     adapter.discover(cursor, limit)
          │        ├─ skip / error item ─► counters, item-error row
          │        └─ ok item ─► normalize ─► staging ─► VerifyAndUpsert
          │     persist cursor + last-run stats
          ├─ errors > (seen + retried) / 2 ? PARTIAL : COMPLETED
          │
          ├─ unexpected exception ─► FAILED + critical alert
          └─ finally: release lock

    Adapter and verification failures are data (counters, item-error
    rows). Only exceptions escaping the per-source ``SourceError`` handler
    fail the run.

Examples:
    >>> orchestrator = IngestOrchestrator(conn, kv, registry, verifier)
    >>> summary = orchestrator.run(IngestRequest("national", max_items=50))
    >>> summary.status
    <RunOutcome.COMPLETED: 'COMPLETED'>
    >>> summary.totals().created
    3

Guardrails:
    ❌ DON'T: treat lock contention or budget exhaustion as failure
    ✅ DO: return ALREADY_RUNNING / budget_exhausted and exit cleanly

    ❌ DON'T: read flags mid-run
    ✅ DO: snapshot once at invocation start

    ❌ DON'T: write anything on a dry run
    ✅ DO: still take the lock, so counts reflect a consistent store

Tags:
    orchestrator, ingest, lock, budget, cursor, run-record

Doc-Types:
    api-reference
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from marketspine.core.budget import RunBudget
from marketspine.core.errors import SourceError
from marketspine.core.flags import FlagSnapshot, FlagStore, job_flag, source_flag
from marketspine.core.identifiers import normalize_cui
from marketspine.core.kv import KVStore
from marketspine.core.locks import DistributedLock
from marketspine.core.protocols import Connection
from marketspine.core.settings import IngestSettings, get_settings
from marketspine.core.timestamps import new_id, to_iso8601, utc_now
from marketspine.ingest.alerts import Alert, AlertDispatcher, AlertSeverity
from marketspine.ingest.upsert import UpsertOutcome, VerifyAndUpsert
from marketspine.logging import get_logger, log_step, push_context
from marketspine.sources.protocol import ItemKind, ItemResult, SourceAdapter
from marketspine.sources.registry import AdapterRegistry
from marketspine.stores.cursors import CursorStore
from marketspine.stores.discovered import DiscoveredStore, DiscoveryStatus
from marketspine.stores.runs import RunLog, RunStatus
from marketspine.verification.protocol import Verifier

logger = get_logger(__name__)


class RunOutcome(str, Enum):
    COMPLETED = "COMPLETED"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"
    ALREADY_RUNNING = "ALREADY_RUNNING"
    SKIPPED = "SKIPPED"


class SourceState(str, Enum):
    COMPLETED = "COMPLETED"
    BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass
class SourceCounters:
    seen: int = 0
    # Staging rows from earlier runs sent back through verification
    retried: int = 0
    discovered: int = 0
    created: int = 0
    updated: int = 0
    invalid: int = 0
    skipped: int = 0
    errors: int = 0

    def add(self, other: SourceCounters) -> SourceCounters:
        for key, value in asdict(other).items():
            setattr(self, key, getattr(self, key) + value)
        return self

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class SourceSummary:
    source: str
    state: SourceState = SourceState.COMPLETED
    counters: SourceCounters = field(default_factory=SourceCounters)
    cursor_before: str | None = None
    cursor_after: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "state": self.state.value,
            "counters": self.counters.to_dict(),
            "cursor_before": self.cursor_before,
            "cursor_after": self.cursor_after,
            "error": self.error,
        }


@dataclass(frozen=True)
class IngestRequest:
    """What an external scheduler asks for.

    ``sources=None`` means every registered adapter, subject to flags.
    """

    job_name: str
    sources: list[str] | None = None
    max_items: int = 200
    max_duration_ms: int = 240_000
    dry_run: bool = False


@dataclass
class RunSummary:
    run_id: str
    job_name: str
    status: RunOutcome = RunOutcome.COMPLETED
    dry_run: bool = False
    budget_exhausted: bool = False
    sources: list[SourceSummary] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None
    error: str | None = None
    budget: dict[str, Any] | None = None

    def totals(self) -> SourceCounters:
        total = SourceCounters()
        for source in self.sources:
            total.add(source.counters)
        return total

    def source(self, name: str) -> SourceSummary | None:
        for summary in self.sources:
            if summary.source == name:
                return summary
        return None

    def cursors(self) -> dict[str, str | None]:
        return {s.source: s.cursor_after for s in self.sources if s.state is not SourceState.SKIPPED}

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "job_name": self.job_name,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "budget_exhausted": self.budget_exhausted,
            "totals": self.totals().to_dict(),
            "sources": [s.to_dict() for s in self.sources],
            "started_at": to_iso8601(self.started_at),
            "finished_at": to_iso8601(self.finished_at) if self.finished_at else None,
            "error": self.error,
            "budget": self.budget,
        }


def decide_status(totals: SourceCounters) -> RunOutcome:
    """PARTIAL when more than half of the items attempted (seen or retried) errored."""
    if totals.errors > (totals.seen + totals.retried) / 2:
        return RunOutcome.PARTIAL
    return RunOutcome.COMPLETED


class IngestOrchestrator:
    """Top-level control loop for one job.

    Args:
        conn: Database connection (companies, staging, provenance, runs)
        kv: Shared KV store (lock, cursors, flags)
        registry: Adapters in processing order
        verifier: Authoritative registry collaborator
        flags: ``FlagStore`` snapshotted per run, or a fixed ``FlagSnapshot``
        alerts: Receives a critical alert when a run fails
        settings: Batch size, lock and cursor tuning
        stage: Verification & upsert stage (built from conn/verifier if omitted)
        clock: UTC clock for timestamps
        monotonic: Seconds source for the run budget
    """

    def __init__(
        self,
        conn: Connection,
        kv: KVStore,
        registry: AdapterRegistry,
        verifier: Verifier,
        *,
        flags: FlagStore | FlagSnapshot | None = None,
        alerts: AlertDispatcher | None = None,
        settings: IngestSettings | None = None,
        stage: VerifyAndUpsert | None = None,
        clock: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.conn = conn
        self.registry = registry
        self.settings = settings or get_settings()
        self.flags = flags if flags is not None else FlagStore(kv)
        self.alerts = alerts or AlertDispatcher()
        self.locks = DistributedLock(kv)
        self.cursors = CursorStore(kv, ttl_seconds=self.settings.cursor_ttl_seconds)
        self.staging = DiscoveredStore(conn)
        self.runs = RunLog(conn)
        self.stage = stage or VerifyAndUpsert(conn, verifier, clock=clock)
        self._clock = clock
        self._monotonic = monotonic

    @staticmethod
    def lock_name(job_name: str) -> str:
        return f"ingest:{job_name}"

    def _snapshot(self, job_name: str) -> FlagSnapshot:
        if isinstance(self.flags, FlagSnapshot):
            return self.flags
        names = [job_flag(job_name), *(source_flag(name) for name in self.registry.names())]
        return self.flags.snapshot(names)

    def run(self, request: IngestRequest) -> RunSummary:
        summary = RunSummary(run_id=new_id(), job_name=request.job_name, started_at=self._clock())
        context = push_context(job=request.job_name, run_id=summary.run_id)
        try:
            return self._run(request, summary)
        finally:
            context.restore()

    def _run(self, request: IngestRequest, summary: RunSummary) -> RunSummary:
        job = request.job_name
        flags = self._snapshot(job)
        if not flags.job_enabled(job):
            logger.info("ingest.job_disabled", job=job)
            summary.status = RunOutcome.SKIPPED
            summary.finished_at = self._clock()
            return summary

        adapters = self.registry.select(request.sources)
        summary.dry_run = request.dry_run or flags.read_only
        lock_name = self.lock_name(job)
        token: str | None = None

        try:
            token = self.locks.acquire_with_retry(
                lock_name,
                ttl_seconds=self.settings.lock_ttl_seconds,
                max_retries=self.settings.lock_max_retries,
                retry_delay_ms=self.settings.lock_retry_delay_ms,
            )
            if token is None:
                logger.info("ingest.already_running", job=job)
                summary.status = RunOutcome.ALREADY_RUNNING
                summary.finished_at = self._clock()
                return summary

            logger.info("ingest.started", sources=[a.name for a in adapters], dry_run=summary.dry_run)
            if not summary.dry_run:
                self.runs.start(summary.run_id, job, started_at=to_iso8601(summary.started_at))

            budget = RunBudget(request.max_items, request.max_duration_ms, clock=self._monotonic)
            for adapter in adapters:
                summary.sources.append(self._run_source(adapter, job, summary, budget, flags))

            summary.budget_exhausted = budget.is_exhausted()
            summary.budget = budget.snapshot().to_dict()
            summary.status = decide_status(summary.totals())
            summary.finished_at = self._clock()
            if not summary.dry_run:
                self.runs.finish(
                    summary.run_id,
                    RunStatus(summary.status.value),
                    cursors=summary.cursors(),
                    stats=summary.totals().to_dict(),
                    finished_at=to_iso8601(summary.finished_at),
                )
            logger.info(
                "ingest.finished",
                status=summary.status.value,
                budget_exhausted=summary.budget_exhausted,
                **summary.totals().to_dict(),
            )
        except Exception as e:
            summary.status = RunOutcome.FAILED
            summary.error = f"{type(e).__name__}: {e}"
            summary.finished_at = self._clock()
            logger.error("ingest.failed", error_type=type(e).__name__, error=str(e), exc_info=True)
            self._record_failure(summary)
            self._alert_failure(summary, e)
        finally:
            if token is not None:
                self._release(lock_name, token)
        if summary.finished_at is None:
            summary.finished_at = self._clock()
        return summary

    # -- per source --------------------------------------------------------------

    def _run_source(
        self,
        adapter: SourceAdapter,
        job: str,
        run: RunSummary,
        budget: RunBudget,
        flags: FlagSnapshot,
    ) -> SourceSummary:
        name = adapter.name
        summary = SourceSummary(source=name)
        if not flags.source_enabled(name):
            logger.info("ingest.source_disabled", source=name)
            summary.state = SourceState.SKIPPED
            return summary
        if budget.is_exhausted():
            summary.state = SourceState.BUDGET_EXHAUSTED
            return summary

        cursor = self.cursors.get(job, name)
        summary.cursor_before = summary.cursor_after = cursor
        context = push_context(source=name)
        try:
            with log_step("ingest.source", source=name, cursor=cursor) as timer:
                if not run.dry_run:
                    self._retry_staged(name, run, budget, summary.counters)
                limit = min(self.settings.batch_size, budget.remaining_items())
                timer.add_metric("limit", limit)
                try:
                    if not budget.is_exhausted():
                        for item in adapter.discover(cursor, limit):
                            if budget.is_exhausted():
                                break
                            summary.counters.seen += 1
                            self._handle_item(item, name, run, budget, summary.counters)
                            summary.cursor_after = item.cursor
                except SourceError as e:
                    summary.state = SourceState.FAILED
                    summary.error = str(e)
                    summary.counters.errors += 1
                    logger.warning("ingest.source_failed", source=name, error_type=type(e).__name__, error=str(e))
                    self._item_error(run, name, None, f"{type(e).__name__}: {e}")
                if summary.state is SourceState.COMPLETED and budget.is_exhausted():
                    summary.state = SourceState.BUDGET_EXHAUSTED
                for key, value in summary.counters.to_dict().items():
                    timer.add_metric(key, value)
                timer.add_metric("state", summary.state.value)
        finally:
            context.restore()
            if not run.dry_run:
                self._persist_source(job, summary)
        return summary

    def _handle_item(
        self,
        item: ItemResult,
        source: str,
        run: RunSummary,
        budget: RunBudget,
        counters: SourceCounters,
    ) -> None:
        if item.kind is ItemKind.SKIP:
            counters.skipped += 1
            return
        if item.kind is ItemKind.ERROR:
            counters.errors += 1
            self._item_error(run, source, item.item_ref, item.reason or "adapter error")
            return

        record = item.record
        identifier = normalize_cui(record.raw_identifier)
        if identifier is None:
            counters.invalid += 1
            self._item_error(run, source, item.item_ref, f"Invalid identifier: {record.raw_identifier!r}")
            return

        if run.dry_run:
            budget.consume()
            return

        record_id, is_new = self.staging.upsert_discovery(
            identifier=identifier,
            source=source,
            company_name=record.company_name,
            evidence=record.evidence,
            discovered_at=to_iso8601(record.discovered_at),
        )
        self.conn.commit()
        if is_new:
            counters.discovered += 1

        outcome = self.stage.run(record_id, budget)
        self._count(outcome, counters)
        self._outcome_error(run, source, item.item_ref or identifier, outcome)

    def _retry_staged(self, source: str, run: RunSummary, budget: RunBudget, counters: SourceCounters) -> None:
        """Send NEW and ERROR rows left behind by earlier runs back through the stage.

        The source cursor has already moved past these rows, so this is the
        only path that brings them to a terminal state (or to REJECTED).
        """
        limit = min(self.settings.batch_size, budget.remaining_items())
        for record in self.staging.retryable(source, limit):
            if budget.is_exhausted():
                break
            counters.retried += 1
            outcome = self.stage.run(record["id"], budget)
            self._count(outcome, counters)
            self._outcome_error(run, source, record["identifier"], outcome)
        if counters.retried:
            logger.info("ingest.retried", source=source, retried=counters.retried)

    def _outcome_error(self, run: RunSummary, source: str, item_ref: str, outcome: UpsertOutcome) -> None:
        if outcome.success or outcome.cached:
            return
        if outcome.status in (DiscoveryStatus.ERROR, DiscoveryStatus.REJECTED):
            self._item_error(run, source, item_ref, outcome.error or outcome.status.value)

    @staticmethod
    def _count(outcome: UpsertOutcome, counters: SourceCounters) -> None:
        if outcome.success:
            if outcome.created:
                counters.created += 1
            else:
                counters.updated += 1
        elif outcome.status is DiscoveryStatus.INVALID:
            counters.invalid += 1
        elif outcome.cached:
            counters.skipped += 1
        else:
            counters.errors += 1

    # -- persistence ---------------------------------------------------------------

    def _item_error(self, run: RunSummary, source: str, item_ref: str | None, message: str) -> None:
        if run.dry_run:
            return
        self.runs.record_item_error(run.run_id, source, item_ref, message)
        self.conn.commit()

    def _persist_source(self, job: str, summary: SourceSummary) -> None:
        if summary.state is SourceState.SKIPPED:
            return
        if summary.cursor_after is not None and summary.cursor_after != summary.cursor_before:
            self.cursors.set(job, summary.source, summary.cursor_after)
        self.cursors.record_run(
            job,
            summary.source,
            {"state": summary.state.value, **summary.counters.to_dict()},
            finished_at=to_iso8601(self._clock()),
        )

    def _record_failure(self, summary: RunSummary) -> None:
        if summary.dry_run:
            return
        try:
            self.conn.rollback()
            if self.runs.get(summary.run_id) is None:
                self.runs.start(summary.run_id, summary.job_name, started_at=to_iso8601(summary.started_at))
            self.runs.finish(
                summary.run_id,
                RunStatus.FAILED,
                cursors=summary.cursors(),
                stats=summary.totals().to_dict(),
                last_error=summary.error,
                finished_at=to_iso8601(summary.finished_at or self._clock()),
            )
        except Exception as e:
            logger.error("ingest.run_record_failed", error_type=type(e).__name__, error=str(e))

    def _alert_failure(self, summary: RunSummary, error: Exception) -> None:
        alert = Alert(
            severity=AlertSeverity.CRITICAL,
            title=f"Ingest run failed: {summary.job_name}",
            message=summary.error or str(error),
            source="ingest",
            run_id=summary.run_id,
            metadata={"job": summary.job_name, "error_type": type(error).__name__},
        )
        try:
            self.alerts.notify(alert)
        except Exception as e:
            logger.error("ingest.alert_failed", error_type=type(e).__name__, error=str(e))

    def _release(self, lock_name: str, token: str) -> None:
        try:
            if not self.locks.release(lock_name, token):
                logger.warning("ingest.lock_lost", lock=lock_name)
        except Exception as e:
            logger.error("ingest.lock_release_failed", lock=lock_name, error_type=type(e).__name__, error=str(e))


__all__ = [
    "IngestOrchestrator",
    "IngestRequest",
    "RunSummary",
    "RunOutcome",
    "SourceSummary",
    "SourceCounters",
    "SourceState",
    "decide_status",
]
