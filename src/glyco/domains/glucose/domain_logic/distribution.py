"""Fixed-width glucose histogram with peak bucket and median."""

from __future__ import annotations

import math
from collections import Counter
from typing import Sequence

from glyco.core.storage.models import GlucoseReading
from glyco.domains.glucose.domain_logic.analytics_models import (
    DataStatus,
    DistributionBucket,
    GlucoseDistribution,
)
from glyco.domains.glucose.domain_logic.glucose_math import percentage

BUCKET_WIDTH = 20


def bucket_start(value: float, width: int = BUCKET_WIDTH) -> int:
    """Lower edge of the bucket holding ``value`` (180 -> 180, 199.99 -> 180)."""
    return int(math.floor(value / width) * width)


def lower_median(values: Sequence[float]) -> float:
    """Middle element of the sorted values; even lengths take the lower middle."""
    ordered = sorted(values)
    return ordered[(len(ordered) - 1) // 2]


def calculate_distribution(
    readings: Sequence[GlucoseReading],
    *,
    width: int = BUCKET_WIDTH,
) -> GlucoseDistribution:
    """Bucket readings into ``width`` mg/dL bins, ascending by range start."""
    if not readings:
        return GlucoseDistribution.empty()

    total = len(readings)
    counts = Counter(bucket_start(r.value, width) for r in readings)

    buckets = [
        DistributionBucket(
            range_start=start,
            range_end=start + width,
            count=count,
            percentage=percentage(count, total),
            label=f"{start}-{start + width}",
        )
        for start, count in sorted(counts.items())
    ]

    # max() keeps the first (lowest) bucket on ties
    peak = max(buckets, key=lambda b: b.count)

    return GlucoseDistribution(
        buckets=buckets,
        peak_range=peak.label,
        median_glucose=lower_median([r.value for r in readings]),
        status=DataStatus.OK,
    )
