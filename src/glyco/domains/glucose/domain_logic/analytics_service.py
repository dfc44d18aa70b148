"""Glycemic analytics service: per-component queries and the comprehensive fan-out.

Every public query reads its own window from the ReadingStore and runs one
pure component over it. Each query is its own error boundary: a store
failure, malformed data or a timeout is logged and replaced by that
component's empty result with ``status=unavailable``. Only invalid
configuration (a non-positive window override) is raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, TypeVar

from glyco.core.storage.models import DailyTIRSnapshot, GlucoseReading
from glyco.domains.glucose.connectors import ReadingStore, SnapshotStore
from glyco.domains.glucose.domain_logic.a1c_estimator import (
    calculate_a1c_estimation,
    estimate_a1c,
)
from glyco.domains.glucose.domain_logic.analytics_config import (
    AnalyticsConfig,
    InvalidConfigurationError,
    require_positive_days,
)
from glyco.domains.glucose.domain_logic.analytics_models import (
    HOURS_PER_DAY,
    A1CEstimation,
    AGPProfile,
    AverageTIR,
    ComprehensiveAnalytics,
    DailyGlucoseProfile,
    DataStatus,
    GlucoseDistribution,
    GlucosePattern,
    GlycemicVariability,
    TIRGoalStatus,
    TIRPeriod,
    TimeInRangeResult,
    TrendDirection,
    TrendPrediction,
)
from glyco.domains.glucose.domain_logic.distribution import calculate_distribution
from glyco.domains.glucose.domain_logic.glucose_math import (
    mean,
    population_sd,
    round_half_up,
    round_int,
)
from glyco.domains.glucose.domain_logic.hourly_profile import (
    build_agp_profile,
    build_daily_profile,
)
from glyco.domains.glucose.domain_logic.pattern_detector import detect_patterns
from glyco.domains.glucose.domain_logic.time_in_range import (
    calculate_time_in_range,
    period_window,
)
from glyco.domains.glucose.domain_logic.trend_predictor import predict_trend
from glyco.domains.glucose.domain_logic.variability import calculate_glycemic_variability

logger = logging.getLogger(__name__)

T = TypeVar("T")

# |recent - longer-period| average TIR beyond which the goal trend moves
GOAL_TREND_THRESHOLD = 5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _unavailable_profile() -> list[DailyGlucoseProfile]:
    return [DailyGlucoseProfile(hour=hour) for hour in range(HOURS_PER_DAY)]


class GlycemicAnalyticsService:
    """Computes glycemic analytics for one user from a ReadingStore.

    Usage::

        service = GlycemicAnalyticsService(
            InMemoryReadingStore({"user-1": readings}),
            AnalyticsConfig(),
        )
        bundle = await service.get_comprehensive_analytics("user-1")
    """

    def __init__(
        self,
        reading_store: ReadingStore,
        config: AnalyticsConfig | None = None,
        *,
        snapshot_store: SnapshotStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._readings = reading_store
        self._config = config or AnalyticsConfig()
        self._snapshots = snapshot_store
        self._clock = clock or _utc_now

    @property
    def config(self) -> AnalyticsConfig:
        return self._config

    @property
    def reading_store(self) -> ReadingStore:
        return self._readings

    @property
    def snapshot_store(self) -> SnapshotStore | None:
        return self._snapshots

    # ------------------------------------------------------------------
    # Error boundary
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now

    async def _guarded(
        self,
        branch: str,
        work: Awaitable[T],
        fallback: Callable[[], T],
    ) -> T:
        """Await ``work`` within the branch timeout; degrade to ``fallback()``."""
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(work, self._config.branch_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Analytics branch %s timed out after %.1fs; returning empty result",
                branch,
                self._config.branch_timeout_seconds,
            )
            return fallback()
        except InvalidConfigurationError:
            raise
        except Exception:
            logger.warning(
                "Analytics branch %s failed; returning empty result", branch, exc_info=True
            )
            return fallback()
        logger.debug("Analytics branch %s finished in %.3fs", branch, time.perf_counter() - started)
        return result

    async def _window(self, user_id: str, days: int) -> list[GlucoseReading]:
        end = self._now()
        return await self._readings.query(user_id, end - timedelta(days=days), end)

    # ------------------------------------------------------------------
    # Component queries
    # ------------------------------------------------------------------

    async def get_time_in_range(
        self, user_id: str, period: TIRPeriod = TIRPeriod.WEEK
    ) -> TimeInRangeResult:
        """Time in range for the rolling window ending now.

        Args:
            user_id: Owner of the readings.
            period: Window length; defaults to the last seven days.

        Returns:
            The TIR result. It is empty with ``status=unavailable`` when the
            store fails or the branch times out.
        """
        start, end = period_window(period, self._now())
        return await self._guarded(
            f"tir_{period.value}",
            self._time_in_range(user_id, period, start, end),
            lambda: TimeInRangeResult.empty(
                period,
                start,
                end,
                target_tir=self._config.target_tir,
                status=DataStatus.UNAVAILABLE,
            ),
        )

    async def _time_in_range(
        self, user_id: str, period: TIRPeriod, start: datetime, end: datetime
    ) -> TimeInRangeResult:
        readings = await self._readings.query(user_id, start, end)
        return calculate_time_in_range(
            readings,
            period,
            start,
            end,
            target_min=self._config.target_min,
            target_max=self._config.target_max,
            target_tir=self._config.target_tir,
        )

    async def get_a1c_estimation(self, user_id: str) -> A1CEstimation:
        """Estimated A1C over the A1C window, trended against the window before it.

        Args:
            user_id: Owner of the readings.

        Returns:
            The estimation, or its empty ``unavailable`` form on failure.
        """
        return await self._guarded(
            "a1c",
            self._a1c_estimation(user_id),
            lambda: A1CEstimation.empty(DataStatus.UNAVAILABLE),
        )

    async def _a1c_estimation(self, user_id: str) -> A1CEstimation:
        window = timedelta(days=self._config.a1c_window_days)
        end = self._now()
        start = end - window
        current, previous = await asyncio.gather(
            self._readings.query(user_id, start, end),
            self._readings.query(user_id, start - window, start),
        )
        return calculate_a1c_estimation(current, previous)

    async def get_glycemic_variability(
        self, user_id: str, days: int | None = None
    ) -> GlycemicVariability:
        """SD, CV, MAGE, IQR and stability score over the trailing window.

        Args:
            user_id: Owner of the readings.
            days: Window override; defaults to ``config.variability_window_days``.

        Returns:
            The variability metrics, or their empty ``unavailable`` form on failure.

        Raises:
            InvalidConfigurationError: ``days`` is not positive.
        """
        days = require_positive_days(self._config.variability_window_days if days is None else days)
        return await self._guarded(
            "variability",
            self._compute(user_id, days, calculate_glycemic_variability),
            lambda: GlycemicVariability.empty(DataStatus.UNAVAILABLE),
        )

    async def get_glucose_distribution(
        self, user_id: str, days: int | None = None
    ) -> GlucoseDistribution:
        """Bucketed histogram, median and peak range over the trailing window.

        Args:
            user_id: Owner of the readings.
            days: Window override; defaults to ``config.distribution_window_days``.

        Returns:
            The distribution, or its empty ``unavailable`` form on failure.

        Raises:
            InvalidConfigurationError: ``days`` is not positive.
        """
        days = require_positive_days(self._config.distribution_window_days if days is None else days)
        return await self._guarded(
            "distribution",
            self._compute(user_id, days, calculate_distribution),
            lambda: GlucoseDistribution.empty(DataStatus.UNAVAILABLE),
        )

    async def detect_patterns(
        self, user_id: str, days: int | None = None
    ) -> list[GlucosePattern]:
        """Detect recurring patterns over the trailing window.

        Args:
            user_id: Owner of the readings.
            days: Window override; defaults to ``config.pattern_window_days``.

        Returns:
            Detected patterns; an empty list when none qualify or on failure.

        Raises:
            InvalidConfigurationError: ``days`` is not positive.
        """
        days = require_positive_days(self._config.pattern_window_days if days is None else days)
        return await self._guarded(
            "patterns",
            self._compute(
                user_id,
                days,
                lambda readings: detect_patterns(
                    readings, window_days=days, tz=self._config.tzinfo
                ),
            ),
            list,
        )

    async def get_daily_glucose_profile(
        self, user_id: str, days: int | None = None
    ) -> list[DailyGlucoseProfile]:
        """Per-hour average, min, max and count in the configured local zone.

        Args:
            user_id: Owner of the readings.
            days: Window override; defaults to ``config.profile_window_days``.

        Returns:
            Exactly 24 hourly entries, all zero when there is no data.

        Raises:
            InvalidConfigurationError: ``days`` is not positive.
        """
        days = require_positive_days(self._config.profile_window_days if days is None else days)
        return await self._guarded(
            "daily_profile",
            self._compute(
                user_id, days, lambda readings: build_daily_profile(readings, self._config.tzinfo)
            ),
            _unavailable_profile,
        )

    async def get_agp_profile(
        self, user_id: str, days: int | None = None
    ) -> AGPProfile:
        """Per-hour percentile bands for the ambulatory glucose profile.

        Args:
            user_id: Owner of the readings.
            days: Window override; defaults to ``config.profile_window_days``.

        Returns:
            The AGP profile carrying the target band, or its empty
            ``unavailable`` form on failure.

        Raises:
            InvalidConfigurationError: ``days`` is not positive.
        """
        days = require_positive_days(self._config.profile_window_days if days is None else days)
        target_min, target_max = self._config.target_min, self._config.target_max
        return await self._guarded(
            "agp",
            self._compute(
                user_id,
                days,
                lambda readings: build_agp_profile(
                    readings,
                    self._config.tzinfo,
                    target_min=target_min,
                    target_max=target_max,
                ),
            ),
            lambda: AGPProfile.empty(target_min, target_max, DataStatus.UNAVAILABLE),
        )

    async def _compute(
        self,
        user_id: str,
        days: int,
        component: Callable[[list[GlucoseReading]], T],
    ) -> T:
        return component(await self._window(user_id, days))

    async def get_trend_prediction(self, user_id: str) -> TrendPrediction:
        """30-day projection from the weekly and monthly TIR and the A1C trend.

        Args:
            user_id: Owner of the readings.

        Returns:
            The prediction. It is empty when there is no A1C estimate.
        """
        weekly, monthly, a1c = await asyncio.gather(
            self.get_time_in_range(user_id, TIRPeriod.WEEK),
            self.get_time_in_range(user_id, TIRPeriod.MONTH),
            self.get_a1c_estimation(user_id),
        )
        return await self._predict_trend(weekly, monthly, a1c)

    async def _predict_trend(
        self,
        weekly: TimeInRangeResult,
        monthly: TimeInRangeResult,
        a1c: A1CEstimation,
    ) -> TrendPrediction:
        async def predict() -> TrendPrediction:
            return predict_trend(weekly, monthly, a1c)

        return await self._guarded(
            "trend", predict(), lambda: TrendPrediction.empty(DataStatus.UNAVAILABLE)
        )

    # ------------------------------------------------------------------
    # Comprehensive fan-out
    # ------------------------------------------------------------------

    async def get_comprehensive_analytics(self, user_id: str) -> ComprehensiveAnalytics:
        """Run every component concurrently and assemble one bundle.

        Independent branches start together; the trend branch waits for the
        weekly TIR, monthly TIR and A1C branches and reuses their results.
        A failing or slow branch only empties its own section.

        Args:
            user_id: Owner of the readings.

        Returns:
            The bundle with every section populated or in its empty state.
        """
        started = time.perf_counter()
        tir_daily = asyncio.create_task(self.get_time_in_range(user_id, TIRPeriod.DAY))
        tir_weekly = asyncio.create_task(self.get_time_in_range(user_id, TIRPeriod.WEEK))
        tir_monthly = asyncio.create_task(self.get_time_in_range(user_id, TIRPeriod.MONTH))
        tir_90days = asyncio.create_task(
            self.get_time_in_range(user_id, TIRPeriod.NINETY_DAYS)
        )
        a1c = asyncio.create_task(self.get_a1c_estimation(user_id))
        variability = asyncio.create_task(self.get_glycemic_variability(user_id))
        distribution = asyncio.create_task(self.get_glucose_distribution(user_id))
        patterns = asyncio.create_task(self.detect_patterns(user_id))
        daily_profile = asyncio.create_task(self.get_daily_glucose_profile(user_id))
        agp = asyncio.create_task(self.get_agp_profile(user_id))
        trend = asyncio.create_task(self._trend_after(tir_weekly, tir_monthly, a1c))

        await asyncio.gather(
            tir_daily,
            tir_weekly,
            tir_monthly,
            tir_90days,
            a1c,
            variability,
            distribution,
            patterns,
            daily_profile,
            agp,
            trend,
        )
        logger.debug(
            "Comprehensive analytics for user %s finished in %.3fs",
            user_id,
            time.perf_counter() - started,
        )

        return ComprehensiveAnalytics(
            tir_daily=tir_daily.result(),
            tir_weekly=tir_weekly.result(),
            tir_monthly=tir_monthly.result(),
            tir_90days=tir_90days.result(),
            a1c=a1c.result(),
            variability=variability.result(),
            distribution=distribution.result(),
            patterns=patterns.result(),
            daily_profile=daily_profile.result(),
            agp=agp.result(),
            trend=trend.result(),
        )

    async def _trend_after(
        self,
        weekly: asyncio.Future[TimeInRangeResult],
        monthly: asyncio.Future[TimeInRangeResult],
        a1c: asyncio.Future[A1CEstimation],
    ) -> TrendPrediction:
        # Awaited outside the trend timeout; a trend timeout must not cancel
        # the shared dependency tasks.
        return await self._predict_trend(await weekly, await monthly, await a1c)

    # ------------------------------------------------------------------
    # Daily TIR snapshots
    # ------------------------------------------------------------------

    def _local_day_bounds(self, day: date) -> tuple[datetime, datetime]:
        tz = self._config.tzinfo
        start = datetime(day.year, day.month, day.day, tzinfo=tz)
        following = day + timedelta(days=1)
        end = datetime(following.year, following.month, following.day, tzinfo=tz)
        return start, end

    def _local_today(self) -> date:
        return self._now().astimezone(self._config.tzinfo).date()

    async def compute_daily_snapshot(
        self, user_id: str, day: date
    ) -> DailyTIRSnapshot | None:
        """Summarise one local calendar day and upsert it.

        Without a snapshot store the summary is returned but not persisted.

        Args:
            user_id: Owner of the readings.
            day: Calendar day in ``config.local_timezone``.

        Returns:
            The snapshot, or None (and nothing written) when the day has no
            readings or the stores are unavailable.
        """
        return await self._guarded(
            "daily_snapshot", self._daily_snapshot(user_id, day), lambda: None
        )

    async def _daily_snapshot(self, user_id: str, day: date) -> DailyTIRSnapshot | None:
        start, end = self._local_day_bounds(day)
        readings = await self._readings.query(user_id, start, end)
        if not readings:
            logger.debug("No readings for user %s on %s; snapshot skipped", user_id, day)
            return None

        snapshot = summarise_day(
            user_id,
            day,
            readings,
            target_min=self._config.target_min,
            target_max=self._config.target_max,
        )
        if self._snapshots is not None:
            await self._snapshots.upsert(snapshot)
        return snapshot

    async def get_tir_history(self, user_id: str, days: int = 30) -> list[DailyTIRSnapshot]:
        """Stored daily snapshots from ``days`` ago through today, oldest first.

        Args:
            user_id: Owner of the snapshots.
            days: Look-back in local calendar days.

        Returns:
            Snapshots dated ``[today - days, today]``; empty without a
            snapshot store or when it fails.

        Raises:
            InvalidConfigurationError: ``days`` is not positive.
        """
        days = require_positive_days(days)
        if self._snapshots is None:
            return []
        today = self._local_today()
        since = (today - timedelta(days=days)).isoformat()
        return await self._guarded(
            "tir_history",
            self._snapshots.history(user_id, since, today.isoformat()),
            list,
        )

    async def get_average_tir(self, user_id: str, days: int = 30) -> AverageTIR:
        """Mean of the stored daily snapshots over the last ``days``.

        Args:
            user_id: Owner of the snapshots.
            days: Look-back in local calendar days.

        Returns:
            The averages; all zeros with ``days_with_data=0`` when there is
            no history.

        Raises:
            InvalidConfigurationError: ``days`` is not positive.
        """
        history = await self.get_tir_history(user_id, days)
        if not history:
            return AverageTIR()

        average_glucose = round_int(mean([s.average_glucose for s in history]))
        return AverageTIR(
            average_tir=round_half_up(mean([s.time_in_range_pct for s in history]), 1),
            average_above=round_half_up(mean([s.time_above_range_pct for s in history]), 1),
            average_below=round_half_up(mean([s.time_below_range_pct for s in history]), 1),
            average_glucose=average_glucose,
            estimated_a1c=round_half_up(estimate_a1c(average_glucose), 1),
            days_with_data=len(history),
        )

    async def get_tir_goal_status(self, user_id: str, days: int = 7) -> TIRGoalStatus:
        """Recent average TIR against the goal, trended against twice the period.

        Args:
            user_id: Owner of the snapshots.
            days: Recent period; the comparison period is ``2 * days``.

        Returns:
            Current TIR, the goal, whether it is met and the trend.

        Raises:
            InvalidConfigurationError: ``days`` is not positive.
        """
        recent, longer = await asyncio.gather(
            self.get_average_tir(user_id, days),
            self.get_average_tir(user_id, days * 2),
        )
        diff = recent.average_tir - longer.average_tir
        if diff > GOAL_TREND_THRESHOLD:
            trend = TrendDirection.IMPROVING
        elif diff < -GOAL_TREND_THRESHOLD:
            trend = TrendDirection.WORSENING
        else:
            trend = TrendDirection.STABLE

        goal = self._config.target_tir
        return TIRGoalStatus(
            current_tir=recent.average_tir,
            goal_tir=goal,
            goal_met=recent.average_tir >= goal,
            trend=trend,
        )


def summarise_day(
    user_id: str,
    day: date,
    readings: list[GlucoseReading],
    *,
    target_min: int,
    target_max: int,
) -> DailyTIRSnapshot:
    """Build the snapshot record for one day of readings (non-empty)."""
    values = [r.value for r in readings]
    total = len(values)
    in_range = sum(1 for v in values if target_min <= v <= target_max)
    above = sum(1 for v in values if v > target_max)
    below = sum(1 for v in values if v < target_min)
    average = mean(values)

    return DailyTIRSnapshot(
        user_id=user_id,
        date=day.isoformat(),
        readings_count=total,
        time_in_range_pct=round_half_up(in_range / total * 100, 1),
        time_above_range_pct=round_half_up(above / total * 100, 1),
        time_below_range_pct=round_half_up(below / total * 100, 1),
        average_glucose=round_int(average),
        glucose_variability=round_half_up(population_sd(values), 1),
        estimated_a1c=round_half_up(estimate_a1c(average), 1),
    )
