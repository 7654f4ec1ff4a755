"""SQLite-backed string key/value store used as the client's durable storage."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable, Optional


class SQLiteKeyValueStore:
    """Durable string-keyed store; one row per key."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get_item(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?",
                (key,),
            ).fetchone()
        if not row:
            return None
        return row["value"]

    def set_item(self, key: str, value: str) -> None:
        if not key:
            raise ValueError("Key must be a non-empty string")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def multi_set(self, items: dict[str, str]) -> None:
        """Write several keys in one transaction."""
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO kv_store (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                list(items.items()),
            )

    def remove_item(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def multi_remove(self, keys: Iterable[str]) -> None:
        with self._connect() as conn:
            conn.executemany(
                "DELETE FROM kv_store WHERE key = ?",
                [(key,) for key in keys],
            )


__all__ = ["SQLiteKeyValueStore"]
