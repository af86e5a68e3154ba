"""
CLI: ``marketspine lock`` - inspect and break run locks.
"""

from __future__ import annotations

import typer

from marketspine.cli.utils import console, make_context, print_json, print_table
from marketspine.core.locks import DistributedLock
from marketspine.ingest.orchestrator import IngestOrchestrator

app = typer.Typer(no_args_is_help=True)


@app.command()
def status(
    job: str | None = typer.Option(None, "--job", "-j", help="Only this job"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show held locks with their remaining TTL."""
    ctx = make_context()
    locks = DistributedLock(ctx.kv)
    names = [IngestOrchestrator.lock_name(job)] if job else locks.list_held()
    rows = [
        {"lock": name, "held": locks.is_held(name), "ttl_ms": locks.ttl_remaining_ms(name)}
        for name in names
    ]
    if json_out:
        print_json(rows)
    else:
        print_table(rows, title="Locks")


@app.command()
def release(
    job: str = typer.Argument(..., help="Job whose run lock to break"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Force-release a job's run lock (use only after a crashed run)."""
    ctx = make_context()
    name = IngestOrchestrator.lock_name(job)
    if not yes:
        typer.confirm(f"Break lock {name}? A live run would lose exclusivity.", abort=True)
    if DistributedLock(ctx.kv).force_release(name):
        console.print(f"[green]Released[/green] {name}")
    else:
        console.print(f"[dim]{name} was not held[/dim]")
