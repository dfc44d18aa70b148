"""Data models for the glucose persistence layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class ReadingType(str, Enum):
    """Context in which a reading was taken."""

    FASTING = "fasting"
    PRE_MEAL = "pre_meal"
    POST_MEAL = "post_meal"
    BEDTIME = "bedtime"
    RANDOM = "random"


class ReadingSource(str, Enum):
    """Device or channel a reading came from."""

    MANUAL = "manual"
    CGM = "cgm"
    METER = "meter"


@dataclass(frozen=True)
class GlucoseReading:
    """A single blood-glucose reading.

    Readings are immutable once recorded; the analytics engine only reads them.
    ``timestamp`` is timezone-aware (naive values are treated as UTC by the
    repository).
    """

    value: int  # mg/dL
    timestamp: datetime
    reading_type: ReadingType = ReadingType.RANDOM
    source: ReadingSource = ReadingSource.CGM
    notes: str | None = None
    id: str = ""


@dataclass(frozen=True)
class DailyTIRSnapshot:
    """Per-day TIR/variability/A1C summary, keyed by (user_id, date).

    No wall-clock timestamps are stored so recomputation over unchanged
    readings writes an identical record.
    """

    user_id: str
    date: str  # YYYY-MM-DD, local calendar day
    readings_count: int
    time_in_range_pct: float
    time_above_range_pct: float
    time_below_range_pct: float
    average_glucose: int
    glucose_variability: float
    estimated_a1c: float | None

    def as_dict(self) -> dict[str, Any]:
        """Return the snapshot fields as a plain dict."""
        return asdict(self)
