"""Glycemic variability: SD, CV, IQR, MAGE and a composite stability score.

MAGE is computed by an explicit two-state scanner over the time-ordered
values. The scanner alternates between seeking a peak and seeking a valley;
an excursion is closed whenever the trace reverses by more than one SD from
the running extreme, and is recorded only if its amplitude also exceeds one SD.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from glyco.core.storage.models import GlucoseReading
from glyco.domains.glucose.domain_logic.analytics_models import (
    DataStatus,
    GlycemicVariability,
    StabilityRating,
)
from glyco.domains.glucose.domain_logic.glucose_math import (
    mean,
    percentile,
    population_sd,
    round_half_up,
    round_int,
)

MIN_VARIABILITY_READINGS = 10
MIN_MAGE_VALUES = 5

# Stability score penalties: (threshold, penalty), checked high to low
CV_PENALTIES = ((36, 30), (33, 15))
SD_PENALTIES = ((50, 25), (40, 10))
MAGE_PENALTIES = ((100, 25), (70, 10))


class ScanState(str, Enum):
    SEEKING_PEAK = "seeking_peak"
    SEEKING_VALLEY = "seeking_valley"


@dataclass
class ExcursionScanner:
    """Peak/valley state machine feeding one value at a time.

    ``peak`` and ``valley`` are the anchors of the excursion currently being
    measured; both start at the first value.
    """

    threshold: float
    peak: float
    valley: float
    state: ScanState
    excursions: list[float] = field(default_factory=list)

    @classmethod
    def start(cls, first: float, second: float, threshold: float) -> ExcursionScanner:
        state = ScanState.SEEKING_PEAK if second > first else ScanState.SEEKING_VALLEY
        return cls(threshold=threshold, peak=first, valley=first, state=state)

    # Transition guards

    def _is_new_peak(self, value: float) -> bool:
        return value > self.peak

    def _pulled_back_from_peak(self, value: float) -> bool:
        return self.peak - value > self.threshold

    def _is_new_valley(self, value: float) -> bool:
        return value < self.valley

    def _rebounded_from_valley(self, value: float) -> bool:
        return value - self.valley > self.threshold

    def _close_excursion(self) -> None:
        amplitude = self.peak - self.valley
        if amplitude > self.threshold:
            self.excursions.append(amplitude)

    def feed(self, value: float) -> None:
        if self.state is ScanState.SEEKING_PEAK:
            if self._is_new_peak(value):
                self.peak = value
            elif self._pulled_back_from_peak(value):
                self._close_excursion()
                self.valley = value
                self.state = ScanState.SEEKING_VALLEY
        elif self.state is ScanState.SEEKING_VALLEY:
            if self._is_new_valley(value):
                self.valley = value
            elif self._rebounded_from_valley(value):
                self._close_excursion()
                self.peak = value
                self.state = ScanState.SEEKING_PEAK
        else:  # pragma: no cover
            raise ValueError(f"Unknown scan state: {self.state!r}")


def calculate_mage(values: Sequence[float]) -> float:
    """Mean amplitude of glycemic excursions over time-ordered values.

    Returns 0 for fewer than five values or when no excursion exceeds one SD.
    """
    if len(values) < MIN_MAGE_VALUES:
        return 0.0

    scanner = ExcursionScanner.start(values[0], values[1], population_sd(values))
    for value in values[1:]:
        scanner.feed(value)

    return mean(scanner.excursions)


def calculate_stability_score(cv: float, sd: float, mage: float) -> int:
    """Start from 100 and subtract the first matching penalty per metric."""
    score = 100
    for metric, penalties in ((cv, CV_PENALTIES), (sd, SD_PENALTIES), (mage, MAGE_PENALTIES)):
        for threshold, penalty in penalties:
            if metric > threshold:
                score -= penalty
                break
    return max(0, min(100, score))


def stability_rating(score: int) -> StabilityRating:
    if score >= 80:
        return StabilityRating.EXCELLENT
    if score >= 60:
        return StabilityRating.GOOD
    if score >= 40:
        return StabilityRating.FAIR
    return StabilityRating.POOR


def calculate_glycemic_variability(readings: Sequence[GlucoseReading]) -> GlycemicVariability:
    """Variability metrics for a window of readings (ascending by time).

    Fewer than ten readings yields the empty result rated ``poor``.
    """
    if not readings:
        return GlycemicVariability.empty()
    if len(readings) < MIN_VARIABILITY_READINGS:
        return GlycemicVariability.empty(DataStatus.INSUFFICIENT_DATA)

    ordered = [r.value for r in readings]
    values = sorted(ordered)
    average = mean(values)
    sd = population_sd(values)
    cv = sd / average * 100 if average > 0 else 0.0
    iqr = percentile(values, 75) - percentile(values, 25)
    mage = calculate_mage(ordered)

    score = calculate_stability_score(cv, sd, mage)

    return GlycemicVariability(
        standard_deviation=round_half_up(sd, 1),
        coefficient_of_variation=round_half_up(cv, 1),
        mean_amplitude_glycemic_excursions=round_half_up(mage, 1),
        interquartile_range=round_int(iqr),
        stability_score=score,
        stability_rating=stability_rating(score),
        average_glucose=round_int(average),
        min_glucose=values[0],
        max_glucose=values[-1],
        glucose_range=values[-1] - values[0],
        status=DataStatus.OK,
    )
