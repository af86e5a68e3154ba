"""
CLI: ``marketspine ingest`` - run the orchestrator and inspect its state.
"""

from __future__ import annotations

import typer

from marketspine.cli.utils import console, fail, make_context, print_dict, print_json, print_table
from marketspine.core.errors import ConfigError
from marketspine.stores.discovered import DiscoveredStore
from marketspine.stores.runs import RunLog

app = typer.Typer(no_args_is_help=True)


@app.command("run")
def run_ingest(
    job: str | None = typer.Option(None, "--job", "-j", help="Job name (default from settings)"),
    source: list[str] | None = typer.Option(None, "--source", "-s", help="Restrict to these sources"),
    max_items: int | None = typer.Option(None, "--max-items", "-n"),
    max_seconds: int | None = typer.Option(None, "--max-seconds"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Discover and count without writing"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one ingestion pass. Exits 1 when the run FAILED."""
    from marketspine.ingest import IngestOrchestrator, IngestRequest, RunOutcome, build_dispatcher
    from marketspine.logging import configure_logging
    from marketspine.sources import build_registry
    from marketspine.verification import AnafVerifier

    ctx = make_context(database)
    settings = ctx.settings
    configure_logging(settings.log_level, settings.log_format)

    verifier = AnafVerifier(
        ctx.kv,
        url=settings.anaf_api_url,
        timeout=settings.verify_timeout_seconds,
        cache_days=settings.verify_cache_days,
        min_interval_ms=settings.verify_min_interval_ms,
    )
    orchestrator = IngestOrchestrator(
        ctx.conn,
        ctx.kv,
        build_registry(settings),
        verifier,
        alerts=build_dispatcher(settings.alert_webhook_url),
        settings=settings,
    )
    request = IngestRequest(
        job_name=job or settings.job_name,
        sources=source or None,
        max_items=settings.max_items if max_items is None else max_items,
        max_duration_ms=(settings.max_duration_seconds if max_seconds is None else max_seconds) * 1000,
        dry_run=dry_run,
    )
    try:
        summary = orchestrator.run(request)
    except ConfigError as e:
        fail(str(e))

    if json_out:
        print_json(summary)
    else:
        print_dict(
            {
                "run_id": summary.run_id,
                "status": summary.status.value,
                "dry_run": summary.dry_run,
                "budget_exhausted": summary.budget_exhausted,
                **summary.totals().to_dict(),
            },
            title=f"Ingest: {summary.job_name}",
        )
        print_table(
            [
                {
                    "source": s.source,
                    "state": s.state.value,
                    **s.counters.to_dict(),
                    "cursor": s.cursor_after,
                }
                for s in summary.sources
            ],
            title="Sources",
        )
    if summary.status is RunOutcome.FAILED:
        raise typer.Exit(code=1)


@app.command()
def sources(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List configured source adapters in processing order."""
    from marketspine.core.settings import get_settings
    from marketspine.sources import build_registry

    registry = build_registry(get_settings())
    rows = [
        {"name": adapter.name, "trust": getattr(adapter, "nominal_trust", None), "adapter": type(adapter).__name__}
        for adapter in registry.select()
    ]
    if json_out:
        print_json(rows)
    elif not rows:
        console.print("[dim]No sources configured. Set MARKETSPINE_SEAP_CSV_URL and friends.[/dim]")
    else:
        print_table(rows, title="Sources")


@app.command()
def staging(
    source: str | None = typer.Option(None, "--source", "-s"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Staging row counts by status."""
    ctx = make_context(database)
    counts = DiscoveredStore(ctx.conn).counts_by_status(source)
    if json_out:
        print_json(counts)
    else:
        print_table([{"status": k, "count": v} for k, v in sorted(counts.items())], title="Staging")


@app.command()
def runs(
    job: str | None = typer.Option(None, "--job", "-j"),
    limit: int = typer.Option(20, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Recent run records."""
    ctx = make_context(database)
    rows = RunLog(ctx.conn).list_recent(job, limit)
    if json_out:
        print_json(rows)
    else:
        print_table(rows, title="Runs")


@app.command()
def errors(
    run_id: str = typer.Argument(..., help="Run ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Per-item errors recorded by one run."""
    ctx = make_context(database)
    rows = RunLog(ctx.conn).item_errors(run_id)
    if json_out:
        print_json(rows)
    else:
        print_table(rows, title=f"Item errors: {run_id}")
