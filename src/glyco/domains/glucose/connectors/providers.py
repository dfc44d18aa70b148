"""In-memory ReadingStore and SnapshotStore implementations."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable

from glyco.core.storage.models import DailyTIRSnapshot, GlucoseReading


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class InMemoryReadingStore:
    """Dict-backed reading store. Always available."""

    def __init__(self, readings: dict[str, Iterable[GlucoseReading]] | None = None) -> None:
        self._readings: dict[str, list[GlucoseReading]] = defaultdict(list)
        for user_id, user_readings in (readings or {}).items():
            self.add(user_id, user_readings)

    def add(self, user_id: str, readings: Iterable[GlucoseReading]) -> int:
        """Append readings for a user; returns how many were added."""
        added = list(readings)
        self._readings[user_id].extend(added)
        return len(added)

    async def query(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[GlucoseReading]:
        lo, hi = _aware(start), _aware(end)
        selected = [
            r for r in self._readings.get(user_id, ())
            if lo <= _aware(r.timestamp) < hi
        ]
        return sorted(selected, key=lambda r: _aware(r.timestamp))


class InMemorySnapshotStore:
    """Dict-backed snapshot store keyed by (user_id, date)."""

    def __init__(self) -> None:
        self._snapshots: dict[tuple[str, str], DailyTIRSnapshot] = {}

    async def upsert(self, snapshot: DailyTIRSnapshot) -> None:
        self._snapshots[(snapshot.user_id, snapshot.date)] = snapshot

    async def get(self, user_id: str, day: str) -> DailyTIRSnapshot | None:
        return self._snapshots.get((user_id, day))

    async def history(
        self, user_id: str, since: str | None = None, until: str | None = None
    ) -> list[DailyTIRSnapshot]:
        return sorted(
            (
                s for (uid, day), s in self._snapshots.items()
                if uid == user_id
                and (since is None or day >= since)
                and (until is None or day <= until)
            ),
            key=lambda s: s.date,
        )
