"""Tests for the synthetic CGM trace generator."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from glyco.domains.glucose.connectors.mock_data import (
    SENSOR_MAX,
    SENSOR_MIN,
    constant_trace,
    generate_cgm_trace,
)

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


class TestGenerateCgmTrace:
    def test_cadence_and_length(self):
        trace = generate_cgm_trace(T0, days=2)
        assert len(trace) == 2 * 288
        assert trace[1].timestamp - trace[0].timestamp == timedelta(minutes=5)
        assert trace[0].timestamp == T0

    def test_deterministic_for_seed(self):
        assert generate_cgm_trace(T0, days=1, seed=7) == generate_cgm_trace(T0, days=1, seed=7)
        assert generate_cgm_trace(T0, days=1, seed=7) != generate_cgm_trace(T0, days=1, seed=8)

    def test_values_within_sensor_range(self):
        trace = generate_cgm_trace(T0, days=3, baseline=300, amplitude=150, noise_sd=40)
        assert all(SENSOR_MIN <= r.value <= SENSOR_MAX for r in trace)
        assert all(isinstance(r.value, int) for r in trace)

    def test_dawn_rise_without_noise(self):
        trace = generate_cgm_trace(T0, days=1, amplitude=0, noise_sd=0, dawn_rise=50)
        by_hour = {r.timestamp.hour: r.value for r in trace}
        assert by_hour[5] == 190
        assert by_hour[2] == 140
        assert by_hour[7] == 140


class TestConstantTrace:
    def test_flat(self):
        trace = constant_trace(T0, 120, 10)
        assert {r.value for r in trace} == {120}
        assert len(trace) == 10
