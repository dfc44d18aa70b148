"""Tests for the hourly glucose profile and the AGP percentile bands."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from glyco.core.storage.models import GlucoseReading
from glyco.domains.glucose.domain_logic.analytics_models import DataStatus
from glyco.domains.glucose.domain_logic.hourly_profile import (
    build_agp_profile,
    build_daily_profile,
    local_hour,
)

DAY0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _at(hour: int, value: int, day: int = 0, minute: int = 0) -> GlucoseReading:
    return GlucoseReading(
        value=value, timestamp=DAY0 + timedelta(days=day, hours=hour, minutes=minute)
    )


class TestLocalHour:
    def test_utc_default(self):
        assert local_hour(_at(7, 100)) == 7

    def test_converted_to_zone(self):
        # 20:00 UTC is 01:30 the next day in India (+05:30)
        assert local_hour(_at(20, 100), ZoneInfo("Asia/Kolkata")) == 1

    def test_naive_timestamp_is_utc(self):
        reading = GlucoseReading(value=100, timestamp=datetime(2026, 3, 1, 9, 45))
        assert local_hour(reading) == 9


class TestDailyProfile:
    def test_always_24_hours(self):
        profile = build_daily_profile([])
        assert [p.hour for p in profile] == list(range(24))
        assert all(p.reading_count == 0 and p.average_glucose == 0 for p in profile)

    def test_groups_by_hour_ignoring_date(self):
        readings = [_at(8, 100, day=0), _at(8, 200, day=1), _at(8, 150, day=2, minute=30)]
        hour8 = build_daily_profile(readings)[8]
        assert hour8.average_glucose == 150
        assert hour8.min_glucose == 100
        assert hour8.max_glucose == 200
        assert hour8.reading_count == 3
        assert hour8.in_range_pct == 67

    def test_in_range_uses_fixed_band(self):
        profile = build_daily_profile([_at(2, 70), _at(2, 180), _at(2, 181), _at(2, 69)])
        assert profile[2].in_range_pct == 50

    def test_hours_follow_zone(self):
        profile = build_daily_profile([_at(20, 100)], ZoneInfo("Asia/Kolkata"))
        assert profile[1].reading_count == 1
        assert profile[20].reading_count == 0


class TestAGPProfile:
    def test_empty(self):
        agp = build_agp_profile([], target_min=70, target_max=180)
        assert agp.status is DataStatus.NO_DATA
        assert agp.median == [0.0] * 24
        assert (agp.target_min, agp.target_max) == (70, 180)

    def test_percentiles_per_hour(self):
        readings = [_at(8, v, day=i) for i, v in enumerate((140, 100, 130, 110, 120))]
        agp = build_agp_profile(readings, target_min=80, target_max=160)
        assert agp.median[8] == pytest.approx(120)
        assert agp.percentile_10[8] == pytest.approx(104)
        assert agp.percentile_25[8] == pytest.approx(110)
        assert agp.percentile_75[8] == pytest.approx(130)
        assert agp.percentile_90[8] == pytest.approx(136)
        assert agp.median[9] == 0.0
        assert len(agp.percentile_90) == 24
        assert (agp.target_min, agp.target_max) == (80, 160)
        assert agp.status is DataStatus.OK
