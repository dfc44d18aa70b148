"""Tests for the fixed-width glucose distribution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from glyco.core.storage.models import GlucoseReading
from glyco.domains.glucose.domain_logic.analytics_models import DataStatus
from glyco.domains.glucose.domain_logic.distribution import (
    bucket_start,
    calculate_distribution,
    lower_median,
)

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _readings(values) -> list[GlucoseReading]:
    return [
        GlucoseReading(value=v, timestamp=T0 + timedelta(minutes=5 * i))
        for i, v in enumerate(values)
    ]


class TestBucketStart:
    def test_boundaries(self):
        assert bucket_start(180) == 180
        assert bucket_start(199.99) == 180
        assert bucket_start(200) == 200
        assert bucket_start(39) == 20


class TestLowerMedian:
    def test_odd_length(self):
        assert lower_median([130, 100, 120]) == 120

    def test_even_length_takes_lower_middle(self):
        assert lower_median([130, 100, 110, 120]) == 110


class TestCalculateDistribution:
    def test_empty(self):
        result = calculate_distribution([])
        assert result.buckets == []
        assert result.peak_range == "N/A"
        assert result.median_glucose == 0
        assert result.status is DataStatus.NO_DATA

    def test_buckets_sorted_with_labels(self):
        result = calculate_distribution(_readings([205, 180, 199, 100, 185]))
        assert [b.label for b in result.buckets] == ["100-120", "180-200", "200-220"]
        assert [b.count for b in result.buckets] == [1, 3, 1]
        assert [b.percentage for b in result.buckets] == [20, 60, 20]
        assert result.buckets[1].range_start == 180
        assert result.buckets[1].range_end == 200
        assert result.peak_range == "180-200"
        assert result.median_glucose == 185
        assert result.status is DataStatus.OK

    def test_peak_tie_takes_lowest_bucket(self):
        result = calculate_distribution(_readings([150, 150, 90, 90]))
        assert result.peak_range == "80-100"
