"""
CLI: ``marketspine db`` - database management commands.
"""

from __future__ import annotations

import typer

from marketspine.cli.utils import console, make_context, print_json, print_table
from marketspine.core.schema import TABLES

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database path"),
) -> None:
    """Initialise database schema (create tables)."""
    ctx = make_context(database)
    console.print(f"[green]Initialised[/green] {len(TABLES)} tables")
    ctx.conn.close()


@app.command()
def tables(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show row counts for all ingestion tables."""
    ctx = make_context(database)
    rows = [
        {"table": table, "rows": ctx.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]}
        for table in TABLES.values()
    ]
    if json_out:
        print_json(rows)
    else:
        print_table(rows, title="Table Counts")
