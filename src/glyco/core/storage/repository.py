"""Glucose data repository: reading queries and daily snapshot upserts.

The repository mediates between domain objects (GlucoseReading,
DailyTIRSnapshot) and the SQLite database, using FieldEncryptor to
encrypt/decrypt free-text reading notes.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from glyco.core.storage.database import GlucoseDatabase
from glyco.core.storage.encryption import FieldEncryptor
from glyco.core.storage.models import (
    DailyTIRSnapshot,
    GlucoseReading,
    ReadingSource,
    ReadingType,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def to_utc_iso(moment: datetime) -> str:
    """Normalise a datetime to a fixed-width UTC ISO 8601 string.

    A fixed format keeps lexicographic order equal to chronological order,
    which the range queries rely on. Naive datetimes are taken as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


class GlucoseRepository:
    """Repository for glucose readings and per-day TIR snapshots.

    Usage::

        db = GlucoseDatabase(":memory:")
        db.initialize()
        repo = GlucoseRepository(db, FieldEncryptor(key="..."))

        repo.add_reading("user-1", GlucoseReading(value=112, timestamp=now))
        readings = repo.get_readings("user-1", start, end)
    """

    def __init__(self, database: GlucoseDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # ------------------------------------------------------------------
    # Readings
    # ------------------------------------------------------------------

    def add_reading(self, user_id: str, reading: GlucoseReading) -> str:
        """Persist a single reading and return its ID."""
        with self._db.connection:
            return self._insert_reading(user_id, reading)

    def add_readings(self, user_id: str, readings: Iterable[GlucoseReading]) -> int:
        """Persist many readings in one transaction.

        Either every reading is written or, if any insert fails, none are.

        Returns:
            Number of readings written.
        """
        count = 0
        with self._db.connection:
            for reading in readings:
                self._insert_reading(user_id, reading)
                count += 1
        logger.info("Stored %d readings for user %s", count, user_id)
        return count

    def _insert_reading(self, user_id: str, reading: GlucoseReading) -> str:
        rid = reading.id or self._new_id()
        self._db.connection.execute(
            """INSERT INTO glucose_readings
               (id, user_id, value, reading_time, reading_type, source, notes_enc)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                rid,
                user_id,
                int(reading.value),
                to_utc_iso(reading.timestamp),
                reading.reading_type.value,
                reading.source.value,
                self._enc.encrypt(reading.notes),
            ),
        )
        return rid

    def get_readings(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[GlucoseReading]:
        """Return a user's readings with ``start <= reading_time < end``.

        Returns:
            Readings ordered ascending by time.
        """
        rows = self._db.connection.execute(
            """SELECT id, value, reading_time, reading_type, source, notes_enc
               FROM glucose_readings
               WHERE user_id = ? AND reading_time >= ? AND reading_time < ?
               ORDER BY reading_time ASC""",
            (user_id, to_utc_iso(start), to_utc_iso(end)),
        ).fetchall()
        return [self._row_to_reading(row) for row in rows]

    def count_readings(self, user_id: str | None = None) -> int:
        """Return the number of stored readings, optionally for one user."""
        if user_id is None:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM glucose_readings"
            ).fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM glucose_readings WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row[0]

    def delete_readings_for_user(self, user_id: str) -> int:
        """Delete every reading for a user.

        Returns:
            Number of readings deleted.
        """
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM glucose_readings WHERE user_id = ?", (user_id,))
        conn.commit()
        logger.warning("Deleted %d readings for user %s", cursor.rowcount, user_id)
        return cursor.rowcount

    def reencrypt_notes(self) -> int:
        """Re-encrypt every stored note under the encryptor's current key.

        Run after adding a new key and moving the old one to the retired
        keys; once it completes the retired key can be dropped. A note that fails
        to rotate rolls back the whole pass.

        Returns:
            Number of notes rewritten.
        """
        conn = self._db.connection
        rows = conn.execute(
            "SELECT id, notes_enc FROM glucose_readings WHERE notes_enc IS NOT NULL"
        ).fetchall()
        with conn:
            for row in rows:
                conn.execute(
                    "UPDATE glucose_readings SET notes_enc = ? WHERE id = ?",
                    (self._enc.rotate(row["notes_enc"]), row["id"]),
                )
        logger.info("Re-encrypted %d reading notes", len(rows))
        return len(rows)

    # ------------------------------------------------------------------
    # Daily TIR snapshots
    # ------------------------------------------------------------------

    def upsert_daily_snapshot(self, snapshot: DailyTIRSnapshot) -> None:
        """Insert or overwrite the snapshot for (user_id, date).

        Last write wins; the write is a full-record overwrite so concurrent
        recomputations of the same key need no locking.
        """
        conn = self._db.connection
        conn.execute(
            """INSERT INTO daily_tir_snapshots (
                   user_id, date, readings_count,
                   time_in_range_pct, time_above_range_pct, time_below_range_pct,
                   average_glucose, glucose_variability, estimated_a1c
               ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id, date) DO UPDATE SET
                   readings_count = excluded.readings_count,
                   time_in_range_pct = excluded.time_in_range_pct,
                   time_above_range_pct = excluded.time_above_range_pct,
                   time_below_range_pct = excluded.time_below_range_pct,
                   average_glucose = excluded.average_glucose,
                   glucose_variability = excluded.glucose_variability,
                   estimated_a1c = excluded.estimated_a1c""",
            (
                snapshot.user_id,
                snapshot.date,
                snapshot.readings_count,
                snapshot.time_in_range_pct,
                snapshot.time_above_range_pct,
                snapshot.time_below_range_pct,
                snapshot.average_glucose,
                snapshot.glucose_variability,
                snapshot.estimated_a1c,
            ),
        )
        conn.commit()
        logger.info("Upserted TIR snapshot for user %s on %s", snapshot.user_id, snapshot.date)

    def get_daily_snapshot(self, user_id: str, date: str) -> DailyTIRSnapshot | None:
        """Return the snapshot for (user_id, date), or None."""
        row = self._db.connection.execute(
            "SELECT * FROM daily_tir_snapshots WHERE user_id = ? AND date = ?",
            (user_id, date),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_snapshot(row)

    def get_snapshot_history(
        self,
        user_id: str,
        *,
        since: str | None = None,
        until: str | None = None,
        limit: int | None = None,
    ) -> list[DailyTIRSnapshot]:
        """Get a user's daily snapshots, oldest first.

        Args:
            user_id: Owner of the snapshots.
            since: Optional YYYY-MM-DD lower bound (inclusive).
            until: Optional YYYY-MM-DD upper bound (inclusive).
            limit: Optional cap; the most recent ``limit`` days are kept.
        """
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]
        if since:
            conditions.append("date >= ?")
            params.append(since)
        if until:
            conditions.append("date <= ?")
            params.append(until)

        where = " AND ".join(conditions)
        query = f"SELECT * FROM daily_tir_snapshots WHERE {where} ORDER BY date DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_snapshot(row) for row in reversed(rows)]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_reading(self, row: Any) -> GlucoseReading:
        """Convert a database row to a GlucoseReading with decrypted notes."""
        try:
            return GlucoseReading(
                value=row["value"],
                timestamp=datetime.fromisoformat(row["reading_time"]),
                reading_type=ReadingType(row["reading_type"]),
                source=ReadingSource(row["source"]),
                notes=self._enc.decrypt(row["notes_enc"]),
                id=row["id"],
            )
        except ValueError as exc:
            raise RepositoryError(f"Malformed reading row {row['id']!r}: {exc}") from exc

    @staticmethod
    def _row_to_snapshot(row: Any) -> DailyTIRSnapshot:
        return DailyTIRSnapshot(
            user_id=row["user_id"],
            date=row["date"],
            readings_count=row["readings_count"],
            time_in_range_pct=row["time_in_range_pct"],
            time_above_range_pct=row["time_above_range_pct"],
            time_below_range_pct=row["time_below_range_pct"],
            average_glucose=row["average_glucose"],
            glucose_variability=row["glucose_variability"],
            estimated_a1c=row["estimated_a1c"],
        )
