"""SQLite-backed storage for per-survey specialty mappings.

One row per (survey, source, target) triple. A logical SpecialtyMapping with
several targets is several rows sharing ``source_specialty``; saving a mapping
replaces every existing row for that survey and source.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from specialty_match.models.matching import SpecialtyMapping, SpecialtyMappingRecord
from specialty_match.storage.base import write_retry


class SpecialtyMappingStore:
    """Per-survey source -> canonical mapping rows.

    Designed for single-user CLI usage; all writes use individual
    transactions.
    """

    def __init__(self, db_path: Path) -> None:
        """Open or create the SQLite database.

        Args:
            db_path: Path to the SQLite database file.
                     Parent directory is created if needed.
        """
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        """Create tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS specialty_mappings (
                row_id INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT UNIQUE NOT NULL,
                survey_id TEXT NOT NULL,
                source_specialty TEXT NOT NULL,
                mapped_specialty TEXT NOT NULL,
                confidence REAL NOT NULL,
                is_verified INTEGER NOT NULL DEFAULT 0,
                notes TEXT,
                UNIQUE(survey_id, source_specialty, mapped_specialty)
            );
            CREATE INDEX IF NOT EXISTS idx_specialty_mappings_survey
                ON specialty_mappings(survey_id);
        """)
        self._conn.commit()

    @write_retry
    def save(self, mapping: SpecialtyMapping) -> None:
        """Replace all rows for the mapping's survey and source.

        Args:
            mapping: The mapping to persist.
        """
        with self._conn:
            self._conn.execute(
                """DELETE FROM specialty_mappings
                   WHERE survey_id = ? AND source_specialty = ?""",
                (mapping.survey_id, mapping.source_specialty),
            )
            self._conn.executemany(
                """INSERT INTO specialty_mappings
                   (id, survey_id, source_specialty, mapped_specialty,
                    confidence, is_verified, notes)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        rec.id,
                        rec.survey_id,
                        rec.source_specialty,
                        rec.mapped_specialty,
                        rec.confidence,
                        int(rec.is_verified),
                        rec.notes,
                    )
                    for rec in mapping.to_records()
                ],
            )

    def get(self, survey_id: str, source_specialty: str) -> SpecialtyMapping | None:
        """Load one logical mapping, or None if no rows exist."""
        rows = self._conn.execute(
            """SELECT * FROM specialty_mappings
               WHERE survey_id = ? AND source_specialty = ?
               ORDER BY row_id""",
            (survey_id, source_specialty),
        ).fetchall()
        if not rows:
            return None
        return SpecialtyMapping.from_records([self._row_to_record(r) for r in rows])

    def list_for_survey(self, survey_id: str) -> list[SpecialtyMapping]:
        """All mappings of a survey, in the order their sources were first saved."""
        rows = self._conn.execute(
            "SELECT * FROM specialty_mappings WHERE survey_id = ? ORDER BY row_id",
            (survey_id,),
        ).fetchall()
        by_source: dict[str, list[SpecialtyMappingRecord]] = {}
        for row in rows:
            by_source.setdefault(row["source_specialty"], []).append(self._row_to_record(row))
        return [SpecialtyMapping.from_records(recs) for recs in by_source.values()]

    def records_for_survey(self, survey_id: str) -> list[SpecialtyMappingRecord]:
        """Raw persisted rows of a survey."""
        rows = self._conn.execute(
            "SELECT * FROM specialty_mappings WHERE survey_id = ? ORDER BY row_id",
            (survey_id,),
        ).fetchall()
        return [self._row_to_record(r) for r in rows]

    @write_retry
    def delete(self, survey_id: str, source_specialty: str) -> int:
        """Delete a mapping; returns the number of rows removed."""
        with self._conn:
            cur = self._conn.execute(
                """DELETE FROM specialty_mappings
                   WHERE survey_id = ? AND source_specialty = ?""",
                (survey_id, source_specialty),
            )
        return cur.rowcount

    @write_retry
    def delete_survey(self, survey_id: str) -> int:
        """Delete every mapping of a survey; returns the number of rows removed."""
        with self._conn:
            cur = self._conn.execute(
                "DELETE FROM specialty_mappings WHERE survey_id = ?", (survey_id,)
            )
        return cur.rowcount

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> SpecialtyMappingRecord:
        return SpecialtyMappingRecord(
            id=row["id"],
            survey_id=row["survey_id"],
            source_specialty=row["source_specialty"],
            mapped_specialty=row["mapped_specialty"],
            confidence=row["confidence"],
            is_verified=bool(row["is_verified"]),
            notes=row["notes"],
        )

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
