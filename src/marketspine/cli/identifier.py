"""
CLI: ``marketspine identifier`` - fiscal code helpers.
"""

from __future__ import annotations

import typer

from marketspine.cli.utils import console, fail
from marketspine.core.identifiers import format_for_display, normalize_cui

app = typer.Typer(no_args_is_help=True)


@app.command()
def check(
    values: list[str] = typer.Argument(..., help="Raw identifiers, e.g. RO18547290"),
) -> None:
    """Normalise and validate CUIs. Exits 1 if any is invalid."""
    invalid = 0
    for raw in values:
        normalized = normalize_cui(raw)
        if normalized is None:
            invalid += 1
            console.print(f"[red]✗[/red] {raw!r}: invalid")
        else:
            console.print(f"[green]✓[/green] {raw!r} → {normalized} ({format_for_display(normalized)})")
    if invalid:
        fail(f"{invalid} invalid identifier(s)")
