"""
Structural protocols shared across stores.

Stores speak to SQL through the minimal synchronous ``Connection``
protocol below. ``sqlite3.Connection`` satisfies it natively; any other
driver only needs a thin adapter with the same three methods.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous DB-API style connection.

    ``execute`` returns a cursor exposing ``fetchone``, ``fetchall`` and
    ``rowcount``.

    Examples:
        >>> cur = conn.execute("SELECT id FROM companies WHERE tax_id = ?", ("18547290",))
        >>> cur.fetchone()
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute one statement with ``?`` placeholders."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...


__all__ = ["Connection"]
