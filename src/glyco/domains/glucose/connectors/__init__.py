"""Glucose data connectors: abstraction layer for reading and snapshot storage."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from glyco.core.storage.models import DailyTIRSnapshot, GlucoseReading


class DataUnavailableError(Exception):
    """Raised by a store when its backing storage cannot be queried."""


@runtime_checkable
class ReadingStore(Protocol):
    """Abstract interface for glucose reading retrieval.

    The analytics engine calls ``query`` without knowing whether readings
    come from SQLite, a remote service, or an in-memory fixture.
    """

    async def query(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[GlucoseReading]:
        """Readings with ``start <= timestamp < end``, ascending by time.

        Raises:
            DataUnavailableError: If the backing store fails.
        """
        ...


@runtime_checkable
class SnapshotStore(Protocol):
    """Persistence for per-day TIR snapshots keyed by (user_id, date)."""

    async def upsert(self, snapshot: DailyTIRSnapshot) -> None:
        """Insert or fully overwrite the snapshot for its key."""
        ...

    async def get(self, user_id: str, day: str) -> DailyTIRSnapshot | None:
        """Snapshot for a YYYY-MM-DD day, or None."""
        ...

    async def history(
        self, user_id: str, since: str | None = None, until: str | None = None
    ) -> list[DailyTIRSnapshot]:
        """Snapshots dated within ``[since, until]``, oldest first."""
        ...
