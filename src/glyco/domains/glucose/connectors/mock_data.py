"""Synthetic CGM traces for development and testing.

Traces are deterministic for a given seed: a daily sinusoid around a
baseline, an optional early-morning rise and Gaussian sensor noise, sampled
on a fixed cadence and clamped to the sensor's reporting range.
"""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, timezone, tzinfo

from glyco.core.storage.models import GlucoseReading, ReadingSource, ReadingType

# Typical CGM reporting limits (mg/dL)
SENSOR_MIN = 40
SENSOR_MAX = 400


def generate_cgm_trace(
    start: datetime,
    days: int = 14,
    *,
    interval_minutes: int = 5,
    baseline: float = 140,
    amplitude: float = 30,
    dawn_rise: float = 0,
    noise_sd: float = 10,
    seed: int = 0,
    tz: tzinfo = timezone.utc,
) -> list[GlucoseReading]:
    """Return ``days`` worth of readings from ``start``, ascending by time.

    Args:
        start: First sample time (naive values are taken as UTC).
        days: Length of the trace.
        interval_minutes: Sampling cadence.
        baseline: Mean glucose before the daily swing.
        amplitude: Half peak-to-trough of the daily sinusoid, peaking mid-afternoon.
        dawn_rise: Extra mg/dL added between 04:00 and 07:00 local time.
        noise_sd: Standard deviation of the sensor noise.
        seed: Seed for the noise generator.
        tz: Zone used to place the daily cycle.
    """
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)

    rng = random.Random(seed)
    step = timedelta(minutes=interval_minutes)
    samples = days * 24 * 60 // interval_minutes

    readings = []
    moment = start
    for _ in range(samples):
        local = moment.astimezone(tz)
        hour = local.hour + local.minute / 60
        value = baseline + amplitude * math.sin((hour - 9) / 24 * 2 * math.pi)
        if 4 <= local.hour < 7:
            value += dawn_rise
        value += rng.gauss(0, noise_sd) if noise_sd > 0 else 0
        readings.append(
            GlucoseReading(
                value=int(max(SENSOR_MIN, min(SENSOR_MAX, round(value)))),
                timestamp=moment,
                reading_type=ReadingType.RANDOM,
                source=ReadingSource.CGM,
            )
        )
        moment += step
    return readings


def constant_trace(
    start: datetime,
    value: int,
    count: int,
    *,
    interval_minutes: int = 5,
) -> list[GlucoseReading]:
    """A flat trace of ``count`` identical readings."""
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    return [
        GlucoseReading(value=value, timestamp=start + timedelta(minutes=interval_minutes * i))
        for i in range(count)
    ]
