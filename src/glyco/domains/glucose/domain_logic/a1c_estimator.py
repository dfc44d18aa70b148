"""Estimated A1C / GMI from mean glucose.

    estimated_a1c = (avg_glucose + 46.7) / 28.7      (ADAG)
    GMI           = 3.31 + 0.02392 * avg_glucose
"""

from __future__ import annotations

import math
from typing import Sequence

from glyco.core.storage.models import GlucoseReading
from glyco.domains.glucose.domain_logic.analytics_models import (
    A1CEstimation,
    Confidence,
    DataStatus,
    TrendDirection,
)
from glyco.domains.glucose.domain_logic.glucose_math import mean, round_half_up, round_int

# Confidence tiers: (minimum days of data, minimum readings)
HIGH_CONFIDENCE_DAYS = 60
HIGH_CONFIDENCE_READINGS = 100
MEDIUM_CONFIDENCE_DAYS = 30
MEDIUM_CONFIDENCE_READINGS = 50

# The prior window only counts with at least this many readings
MIN_PREVIOUS_WINDOW_READINGS = 30

# |change| beyond this many A1C points moves the trend off "stable"
A1C_TREND_THRESHOLD = 0.3

_SECONDS_PER_DAY = 86400


def estimate_a1c(average_glucose: float) -> float:
    return (average_glucose + 46.7) / 28.7


def calculate_gmi(average_glucose: float) -> float:
    return 3.31 + 0.02392 * average_glucose


def days_spanned(readings: Sequence[GlucoseReading]) -> int:
    """Whole days (rounded up) between the first and last reading."""
    if len(readings) < 2:
        return 0
    span = readings[-1].timestamp - readings[0].timestamp
    return max(0, math.ceil(span.total_seconds() / _SECONDS_PER_DAY))


def a1c_confidence(days_of_data: int, reading_count: int) -> Confidence:
    if days_of_data >= HIGH_CONFIDENCE_DAYS and reading_count >= HIGH_CONFIDENCE_READINGS:
        return Confidence.HIGH
    if days_of_data >= MEDIUM_CONFIDENCE_DAYS and reading_count >= MEDIUM_CONFIDENCE_READINGS:
        return Confidence.MEDIUM
    return Confidence.LOW


def a1c_trend(change: float) -> TrendDirection:
    if change < -A1C_TREND_THRESHOLD:
        return TrendDirection.IMPROVING
    if change > A1C_TREND_THRESHOLD:
        return TrendDirection.WORSENING
    return TrendDirection.STABLE


def previous_a1c_estimate(previous_readings: Sequence[GlucoseReading]) -> float | None:
    """Unrounded A1C for the prior window, or None when it is too sparse."""
    if len(previous_readings) < MIN_PREVIOUS_WINDOW_READINGS:
        return None
    return estimate_a1c(mean([r.value for r in previous_readings]))


def calculate_a1c_estimation(
    readings: Sequence[GlucoseReading],
    previous_readings: Sequence[GlucoseReading] = (),
) -> A1CEstimation:
    """Build the A1C estimation for the current window.

    Args:
        readings: Current window, ascending by time.
        previous_readings: The equally long window immediately before it.
    """
    if not readings:
        return A1CEstimation.empty()

    average = mean([r.value for r in readings])
    current = estimate_a1c(average)
    days_of_data = days_spanned(readings)

    previous = previous_a1c_estimate(previous_readings)
    trend = TrendDirection.STABLE
    previous_estimate: float | None = None
    change_from_previous: float | None = None
    if previous is not None:
        change = current - previous
        trend = a1c_trend(change)
        previous_estimate = round_half_up(previous, 1)
        change_from_previous = round_half_up(change, 1)

    return A1CEstimation(
        estimated_a1c=round_half_up(current, 1),
        glucose_management_indicator=round_half_up(calculate_gmi(average), 1),
        average_glucose=round_int(average),
        reading_count=len(readings),
        days_of_data=days_of_data,
        confidence=a1c_confidence(days_of_data, len(readings)),
        trend=trend,
        previous_estimate=previous_estimate,
        change_from_previous=change_from_previous,
        status=DataStatus.OK,
    )
