"""
CLI utility helpers: output formatting and connection management.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from marketspine.core.kv import KVStore, create_kv_store
from marketspine.core.schema import create_tables
from marketspine.core.settings import IngestSettings, get_settings

console = Console()
err_console = Console(stderr=True)


# ── Connection helpers ───────────────────────────────────────────────────


def open_connection(database: str | Path) -> sqlite3.Connection:
    """Open (and if needed create) the SQLite database with all tables."""
    path = Path(database)
    if str(database) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(database))
    conn.row_factory = sqlite3.Row
    create_tables(conn)
    return conn


@dataclass
class CliContext:
    settings: IngestSettings
    conn: sqlite3.Connection
    kv: KVStore


def make_context(database: str | None = None, redis_url: str | None = None) -> CliContext:
    """Settings + connection + KV store for one CLI command."""
    settings = get_settings()
    conn = open_connection(database or settings.database_path)
    kv = create_kv_store(redis_url or settings.redis_url)
    return CliContext(settings=settings, conn=conn, kv=kv)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert an object with ``to_dict`` / dataclass / dict to a plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def print_json(data: Any) -> None:
    payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
    console.print_json(json.dumps(payload, default=str))


def print_table(items: list[Any], *, title: str = "", columns: list[str] | None = None) -> None:
    """Render a list of dicts/dataclasses as a Rich table."""
    if not items:
        console.print("[dim]No items.[/dim]")
        return
    rows = [_to_dict(item) for item in items]
    columns = columns or list(rows[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if row.get(col) is None else str(row.get(col)) for col in columns))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


def fail(message: str, code: int = 1) -> None:
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=code)
