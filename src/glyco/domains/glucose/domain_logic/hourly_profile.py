"""Hour-of-day aggregation: the hourly glucose profile and the AGP bands."""

from __future__ import annotations

from datetime import timezone, tzinfo
from typing import Sequence

from glyco.core.storage.models import GlucoseReading
from glyco.domains.glucose.domain_logic.analytics_models import (
    DEFAULT_TARGET_MAX,
    DEFAULT_TARGET_MIN,
    HOURS_PER_DAY,
    IN_RANGE_MAX,
    LOW_BELOW,
    AGPProfile,
    DailyGlucoseProfile,
    DataStatus,
)
from glyco.domains.glucose.domain_logic.glucose_math import (
    mean,
    percentage,
    percentile,
    round_int,
)


def local_hour(reading: GlucoseReading, tz: tzinfo = timezone.utc) -> int:
    """Hour-of-day of a reading in ``tz`` (naive timestamps are UTC)."""
    moment = reading.timestamp
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).hour


def group_by_hour(
    readings: Sequence[GlucoseReading],
    tz: tzinfo = timezone.utc,
) -> list[list[int]]:
    """Values bucketed by local hour; index ``h`` holds hour ``h``."""
    hourly: list[list[int]] = [[] for _ in range(HOURS_PER_DAY)]
    for reading in readings:
        hourly[local_hour(reading, tz)].append(reading.value)
    return hourly


def build_daily_profile(
    readings: Sequence[GlucoseReading],
    tz: tzinfo = timezone.utc,
) -> list[DailyGlucoseProfile]:
    """One record per hour 0..23; hours without samples report zeros.

    ``in_range_pct`` always uses the fixed 70-180 mg/dL band.
    """
    profile = []
    for hour, values in enumerate(group_by_hour(readings, tz)):
        if not values:
            profile.append(DailyGlucoseProfile(hour=hour))
            continue
        in_range = sum(1 for v in values if LOW_BELOW <= v <= IN_RANGE_MAX)
        profile.append(
            DailyGlucoseProfile(
                hour=hour,
                average_glucose=round_int(mean(values)),
                min_glucose=min(values),
                max_glucose=max(values),
                reading_count=len(values),
                in_range_pct=percentage(in_range, len(values)),
            )
        )
    return profile


def build_agp_profile(
    readings: Sequence[GlucoseReading],
    tz: tzinfo = timezone.utc,
    *,
    target_min: int = DEFAULT_TARGET_MIN,
    target_max: int = DEFAULT_TARGET_MAX,
) -> AGPProfile:
    """10/25/50/75/90th percentile of glucose per local hour."""
    if not readings:
        return AGPProfile.empty(target_min, target_max)

    hourly = group_by_hour(readings, tz)
    return AGPProfile(
        median=[percentile(values, 50) for values in hourly],
        percentile_10=[percentile(values, 10) for values in hourly],
        percentile_25=[percentile(values, 25) for values in hourly],
        percentile_75=[percentile(values, 75) for values in hourly],
        percentile_90=[percentile(values, 90) for values in hourly],
        target_min=target_min,
        target_max=target_max,
        status=DataStatus.OK,
    )
