"""
CLI: ``marketspine flags`` - kill switches.
"""

from __future__ import annotations

import typer

from marketspine.cli.utils import console, fail, make_context, print_json, print_table
from marketspine.core.flags import FlagStore

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_flags(
    name: list[str] | None = typer.Argument(None, help="Extra flag names to resolve"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Resolved value of every stored flag (plus any named ones)."""
    ctx = make_context()
    snapshot = FlagStore(ctx.kv).snapshot(name or [])
    rows = [{"flag": key, "enabled": value} for key, value in snapshot.values.items()]
    if json_out:
        print_json(rows)
    else:
        print_table(rows, title="Flags")


@app.command("set")
def set_flag(
    name: str = typer.Argument(..., help="Flag name, e.g. INGEST_SEAP"),
    enabled: bool = typer.Argument(..., help="true / false"),
) -> None:
    """Store a flag value in the shared KV store."""
    ctx = make_context()
    try:
        FlagStore(ctx.kv).set(name, enabled)
    except ValueError as e:
        fail(str(e))
    console.print(f"{name} = {'[green]on[/green]' if enabled else '[red]off[/red]'}")


@app.command()
def reset(
    name: str = typer.Argument(..., help="Flag name"),
) -> None:
    """Remove a stored flag so its default applies."""
    ctx = make_context()
    FlagStore(ctx.kv).reset(name)
    console.print(f"{name} reset to default")
