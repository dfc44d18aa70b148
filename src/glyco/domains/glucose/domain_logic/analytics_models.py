"""Result types and domain constants for the glycemic analytics engine.

Every record here is an ephemeral value object computed from one window of
readings. Each record-shaped result carries a :class:`DataStatus` so that
"zero because there was no data" is distinguishable from a genuine zero.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Clinical constants
# ---------------------------------------------------------------------------

# Fixed clinical band boundaries (mg/dL), independent of the target band
VERY_LOW_BELOW = 54
LOW_BELOW = 70
IN_RANGE_MAX = 180
HIGH_MAX = 250

DEFAULT_TARGET_MIN = 70
DEFAULT_TARGET_MAX = 180
DEFAULT_TARGET_TIR = 70

HOURS_PER_DAY = 24


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class DataStatus(str, Enum):
    """Whether a result reflects real data."""

    OK = "ok"
    NO_DATA = "no_data"
    INSUFFICIENT_DATA = "insufficient_data"
    UNAVAILABLE = "unavailable"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


class StabilityRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class PatternType(str, Enum):
    """Recognised glucose patterns (post_meal_spike and exercise_effect are reserved)."""

    DAWN_PHENOMENON = "dawn_phenomenon"
    POST_MEAL_SPIKE = "post_meal_spike"
    NOCTURNAL_HYPO = "nocturnal_hypo"
    AFTERNOON_DROP = "afternoon_drop"
    EXERCISE_EFFECT = "exercise_effect"


class TIRPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    NINETY_DAYS = "90days"


class RangeClassification(str, Enum):
    LOW = "low"
    IN_RANGE = "in_range"
    HIGH = "high"


class Severity(str, Enum):
    NORMAL = "normal"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class GlucoseBand(str, Enum):
    """The five fixed clinical bands."""

    VERY_LOW = "very_low"
    LOW = "low"
    IN_RANGE = "in_range"
    HIGH = "high"
    VERY_HIGH = "very_high"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class TimeInRangeResult:
    """Five-band time-in-range distribution for one period."""

    period: TIRPeriod
    start_date: datetime
    end_date: datetime
    total_readings: int = 0
    very_low_count: int = 0
    low_count: int = 0
    in_range_count: int = 0
    high_count: int = 0
    very_high_count: int = 0
    very_low_pct: int = 0
    low_pct: int = 0
    in_range_pct: int = 0
    high_pct: int = 0
    very_high_pct: int = 0
    target_range_pct: int = 0  # share inside the configured target band
    target_tir: int = DEFAULT_TARGET_TIR
    meets_target: bool = False
    status: DataStatus = DataStatus.NO_DATA

    @classmethod
    def empty(
        cls,
        period: TIRPeriod,
        start_date: datetime,
        end_date: datetime,
        *,
        target_tir: int = DEFAULT_TARGET_TIR,
        status: DataStatus = DataStatus.NO_DATA,
    ) -> TimeInRangeResult:
        return cls(
            period=period,
            start_date=start_date,
            end_date=end_date,
            target_tir=target_tir,
            status=status,
        )

    def band_percentages(self) -> dict[GlucoseBand, int]:
        return {
            GlucoseBand.VERY_LOW: self.very_low_pct,
            GlucoseBand.LOW: self.low_pct,
            GlucoseBand.IN_RANGE: self.in_range_pct,
            GlucoseBand.HIGH: self.high_pct,
            GlucoseBand.VERY_HIGH: self.very_high_pct,
        }


@dataclass
class A1CEstimation:
    """Estimated A1C and GMI over the trailing A1C window."""

    estimated_a1c: float = 0.0
    glucose_management_indicator: float = 0.0
    average_glucose: int = 0
    reading_count: int = 0
    days_of_data: int = 0
    confidence: Confidence = Confidence.LOW
    trend: TrendDirection = TrendDirection.STABLE
    previous_estimate: float | None = None
    change_from_previous: float | None = None
    status: DataStatus = DataStatus.NO_DATA

    @classmethod
    def empty(cls, status: DataStatus = DataStatus.NO_DATA) -> A1CEstimation:
        return cls(status=status)


@dataclass
class GlycemicVariability:
    """SD, CV, MAGE, IQR and the composite stability score."""

    standard_deviation: float = 0.0
    coefficient_of_variation: float = 0.0
    mean_amplitude_glycemic_excursions: float = 0.0
    interquartile_range: int = 0
    stability_score: int = 0
    stability_rating: StabilityRating = StabilityRating.POOR
    average_glucose: int = 0
    min_glucose: int = 0
    max_glucose: int = 0
    glucose_range: int = 0
    status: DataStatus = DataStatus.NO_DATA

    @classmethod
    def empty(cls, status: DataStatus = DataStatus.NO_DATA) -> GlycemicVariability:
        return cls(status=status)


@dataclass
class DistributionBucket:
    range_start: int
    range_end: int
    count: int
    percentage: int
    label: str


@dataclass
class GlucoseDistribution:
    """Fixed-width histogram of glucose values."""

    buckets: list[DistributionBucket] = field(default_factory=list)
    peak_range: str = "N/A"
    median_glucose: float = 0
    status: DataStatus = DataStatus.NO_DATA

    @classmethod
    def empty(cls, status: DataStatus = DataStatus.NO_DATA) -> GlucoseDistribution:
        return cls(status=status)


@dataclass
class GlucosePattern:
    """A detected recurring glucose pattern with templated guidance."""

    pattern_type: PatternType
    frequency: int
    average_magnitude: int
    typical_time: str
    confidence: Confidence
    description: str
    recommendation: str


@dataclass
class DailyGlucoseProfile:
    """Aggregates for one hour-of-day across the whole window."""

    hour: int
    average_glucose: int = 0
    min_glucose: int = 0
    max_glucose: int = 0
    reading_count: int = 0
    in_range_pct: int = 0


@dataclass
class AGPProfile:
    """Ambulatory glucose profile: hourly percentile bands (24 entries each)."""

    median: list[float] = field(default_factory=lambda: [0.0] * HOURS_PER_DAY)
    percentile_10: list[float] = field(default_factory=lambda: [0.0] * HOURS_PER_DAY)
    percentile_25: list[float] = field(default_factory=lambda: [0.0] * HOURS_PER_DAY)
    percentile_75: list[float] = field(default_factory=lambda: [0.0] * HOURS_PER_DAY)
    percentile_90: list[float] = field(default_factory=lambda: [0.0] * HOURS_PER_DAY)
    target_min: int = DEFAULT_TARGET_MIN
    target_max: int = DEFAULT_TARGET_MAX
    status: DataStatus = DataStatus.NO_DATA

    @classmethod
    def empty(
        cls,
        target_min: int = DEFAULT_TARGET_MIN,
        target_max: int = DEFAULT_TARGET_MAX,
        status: DataStatus = DataStatus.NO_DATA,
    ) -> AGPProfile:
        return cls(target_min=target_min, target_max=target_max, status=status)


@dataclass
class TrendPrediction:
    """30-day projection fused from TIR and A1C trend signals."""

    direction: TrendDirection = TrendDirection.STABLE
    projected_a1c_30days: float = 0.0
    projected_tir_30days: int = 0
    confidence: float = 0.0
    factors: list[str] = field(default_factory=lambda: ["Insufficient data"])
    status: DataStatus = DataStatus.NO_DATA

    @classmethod
    def empty(cls, status: DataStatus = DataStatus.NO_DATA) -> TrendPrediction:
        return cls(status=status)


@dataclass
class ReadingClassification:
    classification: RangeClassification
    severity: Severity


@dataclass
class AverageTIR:
    """Mean of stored daily TIR snapshots over a look-back period."""

    average_tir: float = 0.0
    average_above: float = 0.0
    average_below: float = 0.0
    average_glucose: int = 0
    estimated_a1c: float = 0.0
    days_with_data: int = 0


@dataclass
class TIRGoalStatus:
    current_tir: float = 0.0
    goal_tir: int = DEFAULT_TARGET_TIR
    goal_met: bool = False
    trend: TrendDirection = TrendDirection.STABLE


@dataclass
class ComprehensiveAnalytics:
    """Bundle returned by the orchestrator; every section is always populated."""

    tir_daily: TimeInRangeResult
    tir_weekly: TimeInRangeResult
    tir_monthly: TimeInRangeResult
    tir_90days: TimeInRangeResult
    a1c: A1CEstimation
    variability: GlycemicVariability
    distribution: GlucoseDistribution
    patterns: list[GlucosePattern]
    daily_profile: list[DailyGlucoseProfile]
    agp: AGPProfile
    trend: TrendPrediction

    def as_dict(self) -> dict[str, Any]:
        """Plain-dict view for the presentation layer."""
        return asdict(self)
