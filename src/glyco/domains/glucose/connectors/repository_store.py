"""SQLite-backed stores: adapters over GlucoseRepository.

Readings and snapshots live in the glucose database. Storage failures are
translated into DataUnavailableError so the analytics layer can degrade the
affected branch instead of failing the whole request.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from glyco.core.storage.database import DatabaseError
from glyco.core.storage.encryption import EncryptionError
from glyco.core.storage.models import DailyTIRSnapshot, GlucoseReading
from glyco.core.storage.repository import GlucoseRepository, RepositoryError
from glyco.domains.glucose.connectors import DataUnavailableError

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (sqlite3.Error, DatabaseError, RepositoryError, EncryptionError)


class RepositoryReadingStore:
    """ReadingStore backed by the glucose_readings table."""

    def __init__(self, repository: GlucoseRepository) -> None:
        self._repo = repository

    async def query(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[GlucoseReading]:
        try:
            return self._repo.get_readings(user_id, start, end)
        except _STORAGE_ERRORS as exc:
            logger.error("Reading query failed for user %s: %s", user_id, exc)
            raise DataUnavailableError(f"Reading store unavailable: {exc}") from exc


class RepositorySnapshotStore:
    """SnapshotStore backed by the daily_tir_snapshots table."""

    def __init__(self, repository: GlucoseRepository) -> None:
        self._repo = repository

    async def upsert(self, snapshot: DailyTIRSnapshot) -> None:
        try:
            self._repo.upsert_daily_snapshot(snapshot)
        except _STORAGE_ERRORS as exc:
            logger.error(
                "Snapshot upsert failed for user %s on %s: %s", snapshot.user_id, snapshot.date, exc
            )
            raise DataUnavailableError(f"Snapshot store unavailable: {exc}") from exc

    async def get(self, user_id: str, day: str) -> DailyTIRSnapshot | None:
        try:
            return self._repo.get_daily_snapshot(user_id, day)
        except _STORAGE_ERRORS as exc:
            logger.error("Snapshot lookup failed for user %s on %s: %s", user_id, day, exc)
            raise DataUnavailableError(f"Snapshot store unavailable: {exc}") from exc

    async def history(
        self, user_id: str, since: str | None = None, until: str | None = None
    ) -> list[DailyTIRSnapshot]:
        try:
            return self._repo.get_snapshot_history(user_id, since=since, until=until)
        except _STORAGE_ERRORS as exc:
            logger.error("Snapshot history query failed for user %s: %s", user_id, exc)
            raise DataUnavailableError(f"Snapshot store unavailable: {exc}") from exc
