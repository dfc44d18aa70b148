"""Heuristic detection of recurring glucose patterns.

Three independent detectors run over hour-of-day sub-windows of a multi-day
window of readings:

* dawn phenomenon: early-morning mean rises above the night-time mean
* nocturnal hypo: share of overnight readings below 70 mg/dL
* afternoon drop: afternoon mean falls below the late-morning mean

All hour windows, cutoffs and minimum sample counts live in
:class:`PatternThresholds` so each heuristic can be audited and tested on
its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Sequence

from glyco.core.storage.models import GlucoseReading
from glyco.domains.glucose.domain_logic.analytics_models import (
    Confidence,
    GlucosePattern,
    PatternType,
)
from glyco.domains.glucose.domain_logic.glucose_math import mean, round_int
from glyco.domains.glucose.domain_logic.hourly_profile import local_hour

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternThresholds:
    """Tunable constants for the pattern heuristics.

    Hour windows are ``range`` objects over local hour-of-day, so
    ``range(4, 7)`` covers 04:00-06:59.
    """

    min_total_readings: int = 20
    min_window_samples: int = 5

    # Dawn phenomenon
    dawn_early_hours: range = range(4, 7)
    dawn_night_hours: range = range(0, 4)
    dawn_min_rise: float = 20
    dawn_medium_rise: float = 30
    dawn_high_rise: float = 40

    # Nocturnal hypoglycemia
    nocturnal_hours: range = range(0, 6)
    hypo_threshold: int = 70
    nocturnal_min_rate: float = 10
    nocturnal_high_rate: float = 20
    nocturnal_min_events: int = 2

    # Afternoon drop
    afternoon_hours: range = range(14, 17)
    late_morning_hours: range = range(10, 12)
    afternoon_min_drop: float = 30
    afternoon_high_drop: float = 50


DEFAULT_THRESHOLDS = PatternThresholds()


def _values_in_hours(
    readings: Sequence[GlucoseReading], hours: range, tz: tzinfo
) -> list[int]:
    return [r.value for r in readings if local_hour(r, tz) in hours]


def detect_dawn_phenomenon(
    readings: Sequence[GlucoseReading],
    *,
    window_days: int = 14,
    tz: tzinfo = timezone.utc,
    thresholds: PatternThresholds = DEFAULT_THRESHOLDS,
) -> GlucosePattern | None:
    early = _values_in_hours(readings, thresholds.dawn_early_hours, tz)
    night = _values_in_hours(readings, thresholds.dawn_night_hours, tz)
    if len(early) < thresholds.min_window_samples or len(night) < thresholds.min_window_samples:
        return None

    rise = mean(early) - mean(night)
    if rise <= thresholds.dawn_min_rise:
        return None

    if rise > thresholds.dawn_high_rise:
        confidence = Confidence.HIGH
    elif rise > thresholds.dawn_medium_rise:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW

    magnitude = round_int(rise)
    return GlucosePattern(
        pattern_type=PatternType.DAWN_PHENOMENON,
        frequency=round_int(len(early) / window_days * 100),
        average_magnitude=magnitude,
        typical_time="4:00 AM - 7:00 AM",
        confidence=confidence,
        description=f"Glucose rises an average of {magnitude} mg/dL in early morning hours",
        recommendation=(
            "Consider discussing with your healthcare provider about adjusting "
            "overnight basal insulin or timing of evening meals"
        ),
    )


def detect_nocturnal_hypo(
    readings: Sequence[GlucoseReading],
    *,
    tz: tzinfo = timezone.utc,
    thresholds: PatternThresholds = DEFAULT_THRESHOLDS,
) -> GlucosePattern | None:
    night = _values_in_hours(readings, thresholds.nocturnal_hours, tz)
    if not night:
        return None

    hypos = [v for v in night if v < thresholds.hypo_threshold]
    rate = len(hypos) / len(night) * 100
    if rate <= thresholds.nocturnal_min_rate or len(hypos) < thresholds.nocturnal_min_events:
        return None

    rate_pct = round_int(rate)
    return GlucosePattern(
        pattern_type=PatternType.NOCTURNAL_HYPO,
        frequency=rate_pct,
        average_magnitude=round_int(thresholds.hypo_threshold - mean(hypos)),
        typical_time="12:00 AM - 5:00 AM",
        confidence=Confidence.HIGH if rate > thresholds.nocturnal_high_rate else Confidence.MEDIUM,
        description=(
            f"Nighttime glucose drops below {thresholds.hypo_threshold} mg/dL "
            f"approximately {rate_pct}% of nights"
        ),
        recommendation=(
            "Consider a bedtime snack with protein and complex carbs, and discuss "
            "with your provider about overnight basal rates"
        ),
    )


def detect_afternoon_drop(
    readings: Sequence[GlucoseReading],
    *,
    window_days: int = 14,
    tz: tzinfo = timezone.utc,
    thresholds: PatternThresholds = DEFAULT_THRESHOLDS,
) -> GlucosePattern | None:
    afternoon = _values_in_hours(readings, thresholds.afternoon_hours, tz)
    morning = _values_in_hours(readings, thresholds.late_morning_hours, tz)
    if len(afternoon) < thresholds.min_window_samples or len(morning) < thresholds.min_window_samples:
        return None

    drop = mean(morning) - mean(afternoon)
    if drop <= thresholds.afternoon_min_drop:
        return None

    magnitude = round_int(drop)
    return GlucosePattern(
        pattern_type=PatternType.AFTERNOON_DROP,
        frequency=round_int(len(afternoon) / window_days * 100),
        average_magnitude=magnitude,
        typical_time="2:00 PM - 5:00 PM",
        confidence=Confidence.HIGH if drop > thresholds.afternoon_high_drop else Confidence.MEDIUM,
        description=f"Glucose typically drops {magnitude} mg/dL in the afternoon",
        recommendation=(
            "Consider a small afternoon snack or discuss lunch insulin timing "
            "with your provider"
        ),
    )


def detect_patterns(
    readings: Sequence[GlucoseReading],
    *,
    window_days: int = 14,
    tz: tzinfo = timezone.utc,
    thresholds: PatternThresholds = DEFAULT_THRESHOLDS,
) -> list[GlucosePattern]:
    """Run every detector; empty unless the window holds enough readings."""
    if len(readings) < thresholds.min_total_readings:
        logger.debug(
            "Skipping pattern detection: %d readings < %d",
            len(readings),
            thresholds.min_total_readings,
        )
        return []

    candidates = (
        detect_dawn_phenomenon(readings, window_days=window_days, tz=tz, thresholds=thresholds),
        detect_nocturnal_hypo(readings, tz=tz, thresholds=thresholds),
        detect_afternoon_drop(readings, window_days=window_days, tz=tz, thresholds=thresholds),
    )
    return [pattern for pattern in candidates if pattern is not None]
