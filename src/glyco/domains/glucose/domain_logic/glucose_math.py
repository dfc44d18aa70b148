"""Numeric helpers shared by the glycemic analytics components."""

from __future__ import annotations

import math
import statistics
from typing import Sequence


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with ties towards +infinity.

    Reported metrics follow this policy rather than Python's round-half-even,
    so 0.5 -> 1 and 2.25 -> 2.3 (one digit).
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """Round half-up to an ``int``."""
    return int(math.floor(value + 0.5))


def percentage(part: int, total: int) -> int:
    """Integer percentage of ``part`` in ``total`` (0 when total is 0)."""
    if total <= 0:
        return 0
    return round_int(part / total * 100)


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return statistics.fmean(values)


def population_sd(values: Sequence[float]) -> float:
    """Standard deviation using the population variance."""
    if len(values) < 2:
        return 0.0
    return statistics.pstdev(values)


def percentile(values: Sequence[float], p: int) -> float:
    """Percentile ``p`` (1..99) with linear interpolation between order statistics.

    Position is ``p/100 * (n - 1)`` on the sorted values; an empty input
    yields 0 and a single value is its own percentile.
    """
    if not 1 <= p <= 99:
        raise ValueError(f"percentile must be within 1..99, got {p}")
    if not values:
        return 0.0
    if len(values) == 1:
        return float(values[0])
    return statistics.quantiles(values, n=100, method="inclusive")[p - 1]
