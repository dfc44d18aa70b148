"""Tests for GlycemicAnalyticsService: windows, error boundaries, snapshots."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone

import pytest

from glyco.core.storage.models import DailyTIRSnapshot, GlucoseReading
from glyco.domains.glucose.connectors import DataUnavailableError
from glyco.domains.glucose.connectors.mock_data import constant_trace
from glyco.domains.glucose.connectors.providers import (
    InMemoryReadingStore,
    InMemorySnapshotStore,
)
from glyco.domains.glucose.domain_logic.analytics_config import (
    AnalyticsConfig,
    InvalidConfigurationError,
)
from glyco.domains.glucose.domain_logic.analytics_models import (
    DataStatus,
    TIRPeriod,
    TrendDirection,
)
from glyco.domains.glucose.domain_logic.analytics_service import (
    GlycemicAnalyticsService,
    summarise_day,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _service(store=None, config=None, **kwargs) -> GlycemicAnalyticsService:
    return GlycemicAnalyticsService(
        store or InMemoryReadingStore(), config or AnalyticsConfig(), clock=lambda: NOW, **kwargs
    )


def _at(moment: datetime, value: int) -> GlucoseReading:
    return GlucoseReading(value=value, timestamp=moment)


class RecordingStore(InMemoryReadingStore):
    """In-memory store that records every queried window."""

    def __init__(self, readings=None) -> None:
        super().__init__(readings)
        self.windows: list[tuple[datetime, datetime]] = []

    async def query(self, user_id, start, end):
        self.windows.append((start, end))
        return await super().query(user_id, start, end)


class FailingStore:
    async def query(self, user_id, start, end):
        raise DataUnavailableError("connection refused")


class SlowStore:
    async def query(self, user_id, start, end):
        await asyncio.sleep(5)
        return []


def _snapshot(day: str, tir: float, glucose: int = 150) -> DailyTIRSnapshot:
    return DailyTIRSnapshot(
        user_id="user-1",
        date=day,
        readings_count=288,
        time_in_range_pct=tir,
        time_above_range_pct=round(100 - tir, 1),
        time_below_range_pct=0.0,
        average_glucose=glucose,
        glucose_variability=30.0,
        estimated_a1c=6.9,
    )


class TestComponentQueries:
    def test_time_in_range_week(self):
        store = InMemoryReadingStore(
            {"user-1": constant_trace(NOW - timedelta(days=6), 120, 100, interval_minutes=60)}
        )
        result = _run(_service(store).get_time_in_range("user-1", TIRPeriod.WEEK))
        assert result.total_readings == 100
        assert result.in_range_pct == 100
        assert result.meets_target is True
        assert result.start_date == NOW - timedelta(days=7)
        assert result.end_date == NOW

    def test_a1c_reads_current_and_previous_windows(self):
        store = RecordingStore()
        result = _run(_service(store).get_a1c_estimation("user-1"))
        assert result.status is DataStatus.NO_DATA
        ninety = timedelta(days=90)
        assert sorted(store.windows) == [
            (NOW - 2 * ninety, NOW - ninety),
            (NOW - ninety, NOW),
        ]

    def test_window_lengths_follow_config(self):
        store = RecordingStore()
        service = _service(store, AnalyticsConfig(variability_window_days=3))
        _run(service.get_glycemic_variability("user-1"))
        _run(service.get_glucose_distribution("user-1", days=5))
        assert store.windows == [
            (NOW - timedelta(days=3), NOW),
            (NOW - timedelta(days=5), NOW),
        ]

    @pytest.mark.parametrize(
        "method",
        [
            "get_glycemic_variability",
            "get_glucose_distribution",
            "detect_patterns",
            "get_daily_glucose_profile",
            "get_agp_profile",
        ],
    )
    def test_non_positive_override_fails_fast(self, method):
        store = RecordingStore()
        with pytest.raises(InvalidConfigurationError):
            _run(getattr(_service(store), method)("user-1", days=0))
        assert store.windows == []

    def test_agp_carries_target_band(self):
        service = _service(config=AnalyticsConfig(target_min=80, target_max=160))
        agp = _run(service.get_agp_profile("user-1"))
        assert (agp.target_min, agp.target_max) == (80, 160)
        assert agp.status is DataStatus.NO_DATA

    def test_trend_prediction_uses_weekly_and_monthly_tir(self):
        # Last week all in range; the rest of the month mostly high
        week = constant_trace(NOW - timedelta(days=6), 120, 60, interval_minutes=120)
        earlier = constant_trace(NOW - timedelta(days=27), 240, 120, interval_minutes=120)
        store = InMemoryReadingStore({"user-1": earlier + week})
        prediction = _run(_service(store).get_trend_prediction("user-1"))
        assert prediction.direction is TrendDirection.IMPROVING
        assert "Time in range increasing" in prediction.factors
        assert prediction.projected_tir_30days == 100


class TestErrorBoundaries:
    def test_store_failure_degrades_every_branch(self, caplog):
        service = _service(FailingStore())
        with caplog.at_level(logging.WARNING):
            tir = _run(service.get_time_in_range("user-1"))
            a1c = _run(service.get_a1c_estimation("user-1"))
            variability = _run(service.get_glycemic_variability("user-1"))
            distribution = _run(service.get_glucose_distribution("user-1"))
            patterns = _run(service.detect_patterns("user-1"))
            profile = _run(service.get_daily_glucose_profile("user-1"))
            agp = _run(service.get_agp_profile("user-1"))

        assert tir.status is DataStatus.UNAVAILABLE
        assert tir.meets_target is False
        assert a1c.status is DataStatus.UNAVAILABLE
        assert variability.status is DataStatus.UNAVAILABLE
        assert distribution.peak_range == "N/A"
        assert distribution.status is DataStatus.UNAVAILABLE
        assert patterns == []
        assert len(profile) == 24
        assert agp.status is DataStatus.UNAVAILABLE
        assert "returning empty result" in caplog.text

    def test_timeout_degrades_to_empty(self):
        service = _service(SlowStore(), AnalyticsConfig(branch_timeout_seconds=0.05))
        result = _run(service.get_glycemic_variability("user-1"))
        assert result.status is DataStatus.UNAVAILABLE

    def test_trend_with_failing_store_is_empty(self):
        prediction = _run(_service(FailingStore()).get_trend_prediction("user-1"))
        assert prediction.factors == ["Insufficient data"]
        assert prediction.confidence == 0.0
        assert prediction.status is DataStatus.UNAVAILABLE

    def test_unexpected_exception_is_contained(self):
        class BrokenStore:
            async def query(self, user_id, start, end):
                return [None]

        result = _run(_service(BrokenStore()).get_glucose_distribution("user-1"))
        assert result.status is DataStatus.UNAVAILABLE


class TestDailySnapshot:
    def test_summary_fields(self):
        day = date(2026, 3, 14)
        readings = [
            _at(datetime(2026, 3, 14, 1, tzinfo=timezone.utc), 60),
            _at(datetime(2026, 3, 14, 6, tzinfo=timezone.utc), 100),
            _at(datetime(2026, 3, 14, 12, tzinfo=timezone.utc), 150),
            _at(datetime(2026, 3, 14, 23, tzinfo=timezone.utc), 200),
        ]
        snapshot = summarise_day("user-1", day, readings, target_min=70, target_max=180)
        assert snapshot.date == "2026-03-14"
        assert snapshot.readings_count == 4
        assert snapshot.time_in_range_pct == 50.0
        assert snapshot.time_above_range_pct == 25.0
        assert snapshot.time_below_range_pct == 25.0
        assert snapshot.average_glucose == 128
        assert snapshot.glucose_variability == 52.6
        assert snapshot.estimated_a1c == 6.1

    def test_compute_uses_local_day_and_upserts(self):
        readings = [
            _at(datetime(2026, 3, 14, 3, 59, tzinfo=timezone.utc), 300),  # Mar 13 local
            _at(datetime(2026, 3, 14, 4, 0, tzinfo=timezone.utc), 100),
            _at(datetime(2026, 3, 15, 2, 0, tzinfo=timezone.utc), 120),  # still Mar 14 local
            _at(datetime(2026, 3, 15, 4, 0, tzinfo=timezone.utc), 300),  # Mar 15 local
        ]
        snapshots = InMemorySnapshotStore()
        service = _service(
            InMemoryReadingStore({"user-1": readings}),
            AnalyticsConfig(local_timezone="America/New_York"),
            snapshot_store=snapshots,
        )
        snapshot = _run(service.compute_daily_snapshot("user-1", date(2026, 3, 14)))
        assert snapshot.readings_count == 2
        assert snapshot.average_glucose == 110
        assert _run(snapshots.get("user-1", "2026-03-14")) == snapshot

    def test_empty_day_writes_nothing(self):
        snapshots = InMemorySnapshotStore()
        service = _service(snapshot_store=snapshots)
        assert _run(service.compute_daily_snapshot("user-1", date(2026, 3, 14))) is None
        assert _run(snapshots.history("user-1")) == []

    def test_store_failure_returns_none(self):
        service = _service(FailingStore(), snapshot_store=InMemorySnapshotStore())
        assert _run(service.compute_daily_snapshot("user-1", date(2026, 3, 14))) is None


class TestTIRHistory:
    def _service_with(self, *snapshots: DailyTIRSnapshot) -> GlycemicAnalyticsService:
        store = InMemorySnapshotStore()
        for snapshot in snapshots:
            _run(store.upsert(snapshot))
        return _service(snapshot_store=store)

    def test_history_without_snapshot_store(self):
        assert _run(_service().get_tir_history("user-1")) == []

    def test_history_window(self):
        service = self._service_with(
            _snapshot("2026-01-01", 90.0), _snapshot("2026-03-01", 70.0), _snapshot("2026-03-14", 75.0)
        )
        history = _run(service.get_tir_history("user-1", days=30))
        assert [s.date for s in history] == ["2026-03-01", "2026-03-14"]

    def test_history_excludes_future_dated_snapshots(self):
        service = self._service_with(
            _snapshot("2026-03-14", 70.0), _snapshot("2026-03-15", 75.0), _snapshot("2026-03-16", 10.0)
        )
        history = _run(service.get_tir_history("user-1", days=30))
        assert [s.date for s in history] == ["2026-03-14", "2026-03-15"]
        assert _run(service.get_average_tir("user-1")).average_tir == 72.5

    def test_history_longer_than_a_year_reaches_today(self, glucose_repository):
        from glyco.domains.glucose.connectors.repository_store import RepositorySnapshotStore

        today = NOW.date()
        for offset in range(400):
            day = (today - timedelta(days=offset)).isoformat()
            glucose_repository.upsert_daily_snapshot(_snapshot(day, 70.0))
        service = _service(snapshot_store=RepositorySnapshotStore(glucose_repository))

        history = _run(service.get_tir_history("user-1", days=399))
        assert len(history) == 400
        assert history[0].date == (today - timedelta(days=399)).isoformat()
        assert history[-1].date == "2026-03-15"

    def test_history_rejects_non_positive_days(self):
        with pytest.raises(InvalidConfigurationError):
            _run(_service().get_tir_history("user-1", days=0))

    def test_average_tir(self):
        service = self._service_with(
            _snapshot("2026-03-01", 80.0, 140),
            _snapshot("2026-03-05", 70.0, 150),
            _snapshot("2026-03-10", 65.0, 160),
            _snapshot("2026-01-01", 10.0, 300),
        )
        average = _run(service.get_average_tir("user-1"))
        assert average.average_tir == 71.7
        assert average.average_glucose == 150
        assert average.estimated_a1c == 6.9
        assert average.days_with_data == 3

    def test_average_tir_empty(self):
        average = _run(self._service_with().get_average_tir("user-1"))
        assert average.average_tir == 0.0
        assert average.days_with_data == 0

    def test_goal_status_improving(self):
        service = self._service_with(
            *(_snapshot(f"2026-03-{d:02d}", 80.0) for d in (10, 12, 14)),
            *(_snapshot(f"2026-03-{d:02d}", 50.0) for d in (2, 4, 6)),
        )
        status = _run(service.get_tir_goal_status("user-1"))
        assert status.current_tir == 80.0
        assert status.goal_tir == 70
        assert status.goal_met is True
        assert status.trend is TrendDirection.IMPROVING

    def test_goal_status_no_history(self):
        status = _run(self._service_with().get_tir_goal_status("user-1"))
        assert status.current_tir == 0.0
        assert status.goal_met is False
        assert status.trend is TrendDirection.STABLE
