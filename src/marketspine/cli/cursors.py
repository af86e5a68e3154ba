"""
CLI: ``marketspine cursors`` - per-source resume cursors.
"""

from __future__ import annotations

import typer

from marketspine.cli.utils import console, make_context, print_json, print_table
from marketspine.stores.cursors import CursorStore

app = typer.Typer(no_args_is_help=True)


@app.command()
def show(
    source: list[str] = typer.Argument(..., help="Source names, e.g. SEAP EU_FUNDS"),
    job: str | None = typer.Option(None, "--job", "-j"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Cursor, last run and stats per source."""
    ctx = make_context()
    job_name = job or ctx.settings.job_name
    snapshot = CursorStore(ctx.kv).snapshot(job_name, source)
    if json_out:
        print_json(snapshot)
        return
    print_table(
        [{"source": name, **values} for name, values in snapshot.items()],
        title=f"Cursors: {job_name}",
    )


@app.command()
def reset(
    source: str = typer.Argument(..., help="Source name"),
    job: str | None = typer.Option(None, "--job", "-j"),
) -> None:
    """Forget a source's cursor so the next run starts from the beginning."""
    ctx = make_context()
    job_name = job or ctx.settings.job_name
    if CursorStore(ctx.kv).clear(job_name, source):
        console.print(f"[green]Reset[/green] cursor for {job_name}/{source}")
    else:
        console.print(f"[dim]No cursor for {job_name}/{source}[/dim]")
