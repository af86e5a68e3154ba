"""Base store pairing a :class:`Connection` with row helpers.

Stores write raw SQL with ``?`` placeholders and return rows as dicts.
Transactions are the caller's business: stores never commit implicitly
except through :meth:`BaseStore.commit`.

Tags:
    store, database, sqlite
"""

from __future__ import annotations

from typing import Any

from marketspine.core.protocols import Connection


class BaseStore:
    """Row-as-dict helpers over a DB-API connection."""

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor."""
        return self.conn.execute(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts.

        Works with ``sqlite3.Row`` factories and with plain tuple rows
        (column names taken from ``cursor.description``).
        """
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []
        if hasattr(rows[0], "keys"):
            return [dict(row) for row in rows]
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def scalar(self, sql: str, params: tuple = ()) -> Any:
        row = self.conn.execute(sql, params).fetchone()
        return row[0] if row else None

    def insert(self, table: str, data: dict[str, Any]) -> Any:
        """Insert a single row from a dict."""
        columns = list(data.keys())
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        return self.conn.execute(sql, tuple(data.values()))

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()


__all__ = ["BaseStore"]
