"""SQLite-backed RecordStore.

Keyed documents live in a ``documents`` table (JSON text, replaced on set);
logs live in ``log_records`` and are only ever inserted.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from specialty_match.storage.base import RecordStore, write_retry


class SqliteRecordStore(RecordStore):
    """Document + append-log storage in a single SQLite file."""

    def __init__(self, db_path: Path) -> None:
        """Open or create the SQLite database.

        Args:
            db_path: Path to the SQLite database file.
                     Parent directory is created if needed.
        """
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_tables()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _ensure_tables(self) -> None:
        """Create tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS log_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                log_key TEXT NOT NULL,
                record_json TEXT NOT NULL,
                appended_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_log_records_key
                ON log_records(log_key);
        """)
        self._conn.commit()

    def get(self, key: str, default: Any = None) -> Any:
        row = self._conn.execute(
            "SELECT value_json FROM documents WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return default
        return json.loads(row["value_json"])

    @write_retry
    def set(self, key: str, value: Any) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO documents (key, value_json, updated_at)
               VALUES (?, ?, ?)""",
            (key, json.dumps(value), datetime.now(tz=UTC).isoformat()),
        )
        self._conn.commit()

    @write_retry
    def append(self, key: str, record: dict[str, Any]) -> None:
        self._conn.execute(
            """INSERT INTO log_records (log_key, record_json, appended_at)
               VALUES (?, ?, ?)""",
            (key, json.dumps(record), datetime.now(tz=UTC).isoformat()),
        )
        self._conn.commit()

    def read_log(self, key: str) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT record_json FROM log_records WHERE log_key = ? ORDER BY id",
            (key,),
        ).fetchall()
        return [json.loads(row["record_json"]) for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
