"""SQLite database for glucose readings and daily TIR snapshots.

The schema is built from an ordered list of migrations; each applied
migration is recorded in ``schema_version`` so reopening an existing file
only runs what is new.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

_READINGS_DDL = """
CREATE TABLE IF NOT EXISTS glucose_readings (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    value         INTEGER NOT NULL,              -- mg/dL
    reading_time  TEXT NOT NULL,                 -- fixed-width ISO 8601, UTC
    reading_type  TEXT NOT NULL,
    source        TEXT NOT NULL,
    notes_enc     TEXT,                          -- Fernet token
    created_at    TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_readings_user_time ON glucose_readings(user_id, reading_time);
"""

# No wall-clock columns: rewriting a snapshot with the same values must leave
# the row unchanged.
_SNAPSHOTS_DDL = """
CREATE TABLE IF NOT EXISTS daily_tir_snapshots (
    user_id               TEXT NOT NULL,
    date                  TEXT NOT NULL,         -- YYYY-MM-DD, local calendar day
    readings_count        INTEGER NOT NULL DEFAULT 0,
    time_in_range_pct     REAL NOT NULL DEFAULT 0,
    time_above_range_pct  REAL NOT NULL DEFAULT 0,
    time_below_range_pct  REAL NOT NULL DEFAULT 0,
    average_glucose       INTEGER NOT NULL DEFAULT 0,
    glucose_variability   REAL NOT NULL DEFAULT 0,
    estimated_a1c         REAL,
    PRIMARY KEY (user_id, date)
);

CREATE INDEX IF NOT EXISTS idx_tir_snapshots_date ON daily_tir_snapshots(date);
"""

# (version, description, DDL), applied in order
_MIGRATIONS: tuple[tuple[int, str, str], ...] = (
    (1, "glucose_readings table", _READINGS_DDL),
    (2, "daily_tir_snapshots table", _SNAPSHOTS_DDL),
)

SCHEMA_VERSION = _MIGRATIONS[-1][0]


class DatabaseError(Exception):
    """Raised when the database is used before initialisation or cannot be opened."""


class GlucoseDatabase:
    """Owns the SQLite connection shared by the glucose repository.

    ``db_path`` is a file path (``~`` expanded, parent directories created)
    or ``":memory:"``. Usable as a context manager::

        with GlucoseDatabase(":memory:") as db:
            repo = GlucoseRepository(db, encryptor)
    """

    def __init__(self, db_path: str = MEMORY) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return
        self._conn = self._connect()
        self._migrate()
        logger.info("Glucose database ready: %s (schema v%d)", self._db_path, SCHEMA_VERSION)

    def _connect(self) -> sqlite3.Connection:
        target = self._db_path
        try:
            if target != MEMORY:
                path = Path(target).expanduser()
                path.parent.mkdir(parents=True, exist_ok=True)
                target = str(path)
            conn = sqlite3.connect(target)
        except (OSError, sqlite3.Error) as exc:
            raise DatabaseError(f"Cannot open glucose database {self._db_path!r}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _migrate(self) -> None:
        conn = self.connection
        conn.execute(
            """CREATE TABLE IF NOT EXISTS schema_version (
                   version    INTEGER PRIMARY KEY,
                   applied_at TEXT NOT NULL DEFAULT (datetime('now'))
               )"""
        )
        current = self.get_schema_version()
        for version, description, ddl in _MIGRATIONS:
            if version <= current:
                continue
            conn.executescript(ddl)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            conn.commit()
            logger.info("Applied schema migration V%d: %s", version, description)

    def get_schema_version(self) -> int:
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Glucose database closed: %s", self._db_path)

    def __enter__(self) -> GlucoseDatabase:
        self.initialize()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
