from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Protocol

from earned_time.db_constants import HOUSEKEEPING_KEYS
from earned_time.db_repo.base import LEDGER_TABLES


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


def _table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    return [str(r["name"]) for r in conn.execute(f"PRAGMA table_info({table})").fetchall()]


class SystemMixin:
    def get_housekeeping_instant(self: DbProtocol, key: str) -> datetime | None:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM housekeeping WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return datetime.fromisoformat(str(row["value"]))
        except ValueError:
            return None

    def set_housekeeping_instant(self: DbProtocol, key: str, instant: datetime) -> None:
        if key not in HOUSEKEEPING_KEYS:
            raise ValueError(f"unknown housekeeping key: {key}")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO housekeeping(key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_at=excluded.updated_at
                """,
                (key, instant.isoformat(), datetime.now().isoformat(timespec="seconds")),
            )

    def dump_ledger_tables(self: DbProtocol) -> dict[str, list[dict[str, Any]]]:
        dumped: dict[str, list[dict[str, Any]]] = {}
        with self._connect() as conn:
            for table in LEDGER_TABLES:
                rows = conn.execute(f"SELECT * FROM {table} ORDER BY rowid ASC").fetchall()
                dumped[table] = [dict(r) for r in rows]
        return dumped

    def replace_ledger_tables(self: DbProtocol, tables: dict[str, list[dict[str, Any]]]) -> None:
        """Clear every ledger table and insert the given rows in one transaction.

        Any failure rolls the whole replacement back, leaving the previous
        contents untouched.
        """
        unknown = set(tables) - set(LEDGER_TABLES)
        if unknown:
            raise ValueError(f"unknown tables: {sorted(unknown)}")
        conn = self._connect()
        try:
            with conn:
                for table in reversed(LEDGER_TABLES):
                    conn.execute(f"DELETE FROM {table}")
                for table in LEDGER_TABLES:
                    allowed = set(_table_columns(conn, table))
                    for row in tables.get(table, []):
                        columns = [c for c in row if c in allowed]
                        placeholders = ", ".join("?" for _ in columns)
                        conn.execute(
                            f"INSERT INTO {table}({', '.join(columns)}) VALUES ({placeholders})",
                            [row[c] for c in columns],
                        )
        finally:
            conn.close()
