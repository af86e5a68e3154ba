"""
Root Typer application for the marketspine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="marketspine",
    help="marketspine - company discovery, verification and scoring.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from marketspine import __version__

        typer.echo(f"marketspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """marketspine CLI - ingestion runs, locks, cursors, flags and scores."""


# ── Sub-command registration ─────────────────────────────────────────────

from marketspine.cli.cursors import app as cursors_app  # noqa: E402
from marketspine.cli.db import app as db_app  # noqa: E402
from marketspine.cli.flags import app as flags_app  # noqa: E402
from marketspine.cli.identifier import app as identifier_app  # noqa: E402
from marketspine.cli.ingest import app as ingest_app  # noqa: E402
from marketspine.cli.lock import app as lock_app  # noqa: E402
from marketspine.cli.score import app as score_app  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(ingest_app, name="ingest", help="Ingestion runs, sources and staging.")
app.add_typer(lock_app, name="lock", help="Run lock inspection.")
app.add_typer(cursors_app, name="cursors", help="Per-source resume cursors.")
app.add_typer(flags_app, name="flags", help="Kill switches.")
app.add_typer(identifier_app, name="identifier", help="CUI normalisation.")
app.add_typer(score_app, name="score", help="Company scoring.")
