"""Time-in-range calculation over the five fixed clinical bands.

Band boundaries (mg/dL)::

    very_low   value < 54
    low        54 <= value < 70
    in_range   70 <= value <= 180
    high       180 < value <= 250
    very_high  value > 250

The configurable target band only decides ``meets_target``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Sequence

from dateutil.relativedelta import relativedelta

from glyco.core.storage.models import GlucoseReading
from glyco.domains.glucose.domain_logic.analytics_models import (
    DEFAULT_TARGET_MAX,
    DEFAULT_TARGET_MIN,
    DEFAULT_TARGET_TIR,
    HIGH_MAX,
    IN_RANGE_MAX,
    LOW_BELOW,
    VERY_LOW_BELOW,
    DataStatus,
    GlucoseBand,
    RangeClassification,
    ReadingClassification,
    Severity,
    TIRPeriod,
    TimeInRangeResult,
)
from glyco.domains.glucose.domain_logic.glucose_math import percentage


def classify_band(value: float) -> GlucoseBand:
    """Map a glucose value onto exactly one clinical band.

    Args:
        value: Glucose in mg/dL.

    Returns:
        The band whose bounds contain ``value``.
    """
    if value < VERY_LOW_BELOW:
        return GlucoseBand.VERY_LOW
    if value < LOW_BELOW:
        return GlucoseBand.LOW
    if value <= IN_RANGE_MAX:
        return GlucoseBand.IN_RANGE
    if value <= HIGH_MAX:
        return GlucoseBand.HIGH
    return GlucoseBand.VERY_HIGH


def classify_reading(
    value: float,
    target_min: int = DEFAULT_TARGET_MIN,
    target_max: int = DEFAULT_TARGET_MAX,
) -> ReadingClassification:
    """Classify a single value against the target band, with severity.

    Args:
        value: Glucose in mg/dL.
        target_min: Lower bound of the target band (inclusive).
        target_max: Upper bound of the target band (inclusive).

    Returns:
        ``low``, ``in_range`` or ``high`` with a severity; in-range values
        are always ``normal``.
    """
    if value < target_min:
        if value < 54:
            severity = Severity.SEVERE
        elif value < 60:
            severity = Severity.MODERATE
        else:
            severity = Severity.MILD
        return ReadingClassification(RangeClassification.LOW, severity)
    if value > target_max:
        if value > 250:
            severity = Severity.SEVERE
        elif value > 200:
            severity = Severity.MODERATE
        else:
            severity = Severity.MILD
        return ReadingClassification(RangeClassification.HIGH, severity)
    return ReadingClassification(RangeClassification.IN_RANGE, Severity.NORMAL)


def period_window(period: TIRPeriod, now: datetime) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` for a period preset ending at ``now``.

    ``month`` steps back one calendar month (clamped to month end), the other
    presets step back a fixed number of days.

    Args:
        period: Window preset.
        now: End of the window; must be timezone-aware.

    Returns:
        ``(start, end)`` with ``end == now``.

    Raises:
        ValueError: ``period`` is not a known preset.
    """
    if period is TIRPeriod.DAY:
        start = now - timedelta(days=1)
    elif period is TIRPeriod.WEEK:
        start = now - timedelta(days=7)
    elif period is TIRPeriod.MONTH:
        start = now - relativedelta(months=1)
    elif period is TIRPeriod.NINETY_DAYS:
        start = now - timedelta(days=90)
    else:  # pragma: no cover
        raise ValueError(f"Unknown TIR period: {period!r}")
    return start, now


def calculate_time_in_range(
    readings: Sequence[GlucoseReading],
    period: TIRPeriod,
    start_date: datetime,
    end_date: datetime,
    *,
    target_min: int = DEFAULT_TARGET_MIN,
    target_max: int = DEFAULT_TARGET_MAX,
    target_tir: int = DEFAULT_TARGET_TIR,
) -> TimeInRangeResult:
    """Count readings per band and compute independently rounded percentages.

    Because each band is rounded on its own, the five percentages sum to
    100 within +/-4.

    Args:
        readings: Readings inside ``[start_date, end_date)``.
        period: Preset the window was built from.
        start_date: Window start, echoed into the result.
        end_date: Window end, echoed into the result.
        target_min: Lower bound of the target band for ``meets_target``.
        target_max: Upper bound of the target band for ``meets_target``.
        target_tir: Percentage of readings in the target band needed to meet it.

    Returns:
        Per-band counts and percentages. It is the empty ``no_data`` result
        when there are no readings.
    """
    total = len(readings)
    if total == 0:
        return TimeInRangeResult.empty(period, start_date, end_date, target_tir=target_tir)

    counts = {band: 0 for band in GlucoseBand}
    in_target = 0
    for reading in readings:
        counts[classify_band(reading.value)] += 1
        if target_min <= reading.value <= target_max:
            in_target += 1

    target_range_pct = percentage(in_target, total)

    return TimeInRangeResult(
        period=period,
        start_date=start_date,
        end_date=end_date,
        total_readings=total,
        very_low_count=counts[GlucoseBand.VERY_LOW],
        low_count=counts[GlucoseBand.LOW],
        in_range_count=counts[GlucoseBand.IN_RANGE],
        high_count=counts[GlucoseBand.HIGH],
        very_high_count=counts[GlucoseBand.VERY_HIGH],
        very_low_pct=percentage(counts[GlucoseBand.VERY_LOW], total),
        low_pct=percentage(counts[GlucoseBand.LOW], total),
        in_range_pct=percentage(counts[GlucoseBand.IN_RANGE], total),
        high_pct=percentage(counts[GlucoseBand.HIGH], total),
        very_high_pct=percentage(counts[GlucoseBand.VERY_HIGH], total),
        target_range_pct=target_range_pct,
        target_tir=target_tir,
        meets_target=target_range_pct >= target_tir,
        status=DataStatus.OK,
    )
