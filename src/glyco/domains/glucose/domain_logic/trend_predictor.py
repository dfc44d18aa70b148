"""30-day trend projection from the weekly/monthly TIR delta and the A1C trend.

The weekly TIR result is "current" and the monthly TIR result is the
baseline. These are two independently computed windows; the A1C estimator's
own prior-90-day comparison is a separate signal.
"""

from __future__ import annotations

import logging

from glyco.domains.glucose.domain_logic.analytics_models import (
    A1CEstimation,
    Confidence,
    DataStatus,
    TimeInRangeResult,
    TrendDirection,
    TrendPrediction,
)
from glyco.domains.glucose.domain_logic.glucose_math import round_half_up

logger = logging.getLogger(__name__)

# |weekly - monthly| TIR points beyond which the TIR signal is directional
TIR_TREND_THRESHOLD = 5

PROJECTED_A1C_STEP = 0.2
PROJECTED_TIR_STEP = 5


def tir_direction(tir_trend: float) -> TrendDirection:
    if tir_trend > TIR_TREND_THRESHOLD:
        return TrendDirection.IMPROVING
    if tir_trend < -TIR_TREND_THRESHOLD:
        return TrendDirection.WORSENING
    return TrendDirection.STABLE


def reconcile_direction(tir: TrendDirection, a1c: TrendDirection) -> TrendDirection:
    """Decision table for the two trend signals.

    A directional A1C signal overrides the TIR signal; the TIR signal only
    decides the direction when the A1C trend is stable.

        tir \\ a1c   improving   stable      worsening
        improving   improving   improving   worsening
        stable      improving   stable      worsening
        worsening   improving   worsening   worsening
    """
    if a1c is not TrendDirection.STABLE:
        return a1c
    return tir


def confidence_score(confidence: Confidence) -> float:
    if confidence is Confidence.HIGH:
        return 0.8
    elif confidence is Confidence.MEDIUM:
        return 0.6
    elif confidence is Confidence.LOW:
        return 0.4
    else:  # pragma: no cover
        raise ValueError(f"Unknown confidence tier: {confidence!r}")


def project_a1c(current: float, direction: TrendDirection) -> float:
    if direction is TrendDirection.IMPROVING:
        projected = current - PROJECTED_A1C_STEP
    elif direction is TrendDirection.WORSENING:
        projected = current + PROJECTED_A1C_STEP
    elif direction is TrendDirection.STABLE:
        projected = current
    else:  # pragma: no cover
        raise ValueError(f"Unknown trend direction: {direction!r}")
    return round_half_up(projected, 1)


def project_tir(current: int, direction: TrendDirection) -> int:
    if direction is TrendDirection.IMPROVING:
        return min(100, current + PROJECTED_TIR_STEP)
    elif direction is TrendDirection.WORSENING:
        return max(0, current - PROJECTED_TIR_STEP)
    elif direction is TrendDirection.STABLE:
        return current
    else:  # pragma: no cover
        raise ValueError(f"Unknown trend direction: {direction!r}")


def _trend_factors(tir: TrendDirection, a1c: TrendDirection) -> list[str]:
    factors = []
    if tir is TrendDirection.IMPROVING:
        factors.append("Time in range increasing")
    elif tir is TrendDirection.WORSENING:
        factors.append("Time in range decreasing")

    if a1c is TrendDirection.IMPROVING:
        factors.append("Estimated A1C trending down")
    elif a1c is TrendDirection.WORSENING:
        factors.append("Estimated A1C trending up")

    return factors or ["Metrics stable"]


def predict_trend(
    weekly_tir: TimeInRangeResult,
    monthly_tir: TimeInRangeResult,
    a1c: A1CEstimation,
) -> TrendPrediction:
    """Fuse the TIR and A1C signals into a 30-day projection.

    Returns the empty prediction when there is no A1C estimate to project
    from; it is marked unavailable if either input was.
    """
    if a1c.status is not DataStatus.OK:
        if DataStatus.UNAVAILABLE in (weekly_tir.status, a1c.status):
            return TrendPrediction.empty(DataStatus.UNAVAILABLE)
        return TrendPrediction.empty()

    tir_signal = tir_direction(weekly_tir.in_range_pct - monthly_tir.in_range_pct)
    direction = reconcile_direction(tir_signal, a1c.trend)
    if a1c.trend is not TrendDirection.STABLE and tir_signal not in (
        TrendDirection.STABLE,
        a1c.trend,
    ):
        logger.debug("A1C trend %s overrides TIR trend %s", a1c.trend.value, tir_signal.value)

    return TrendPrediction(
        direction=direction,
        projected_a1c_30days=project_a1c(a1c.estimated_a1c, direction),
        projected_tir_30days=project_tir(weekly_tir.in_range_pct, direction),
        confidence=confidence_score(a1c.confidence),
        factors=_trend_factors(tir_signal, a1c.trend),
        status=DataStatus.OK,
    )
