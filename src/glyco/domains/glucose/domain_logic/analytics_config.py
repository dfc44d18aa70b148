"""Validated analytics configuration.

Invalid configuration is a programming error and fails fast, unlike data
conditions (store failures, small samples) which degrade to empty results.
"""

from __future__ import annotations

from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from glyco.core.config.settings import Settings
from glyco.domains.glucose.domain_logic.analytics_models import (
    DEFAULT_TARGET_MAX,
    DEFAULT_TARGET_MIN,
    DEFAULT_TARGET_TIR,
)


class InvalidConfigurationError(ValueError):
    """Raised when analytics configuration violates a precondition."""


def require_positive_days(days: int, name: str = "days") -> int:
    """Validate a window length override."""
    if days <= 0:
        raise InvalidConfigurationError(f"{name} must be positive, got {days}")
    return days


@dataclass(frozen=True)
class AnalyticsConfig:
    """Target band, analysis windows and fan-out timeout."""

    target_min: int = DEFAULT_TARGET_MIN
    target_max: int = DEFAULT_TARGET_MAX
    target_tir: int = DEFAULT_TARGET_TIR
    a1c_window_days: int = 90
    variability_window_days: int = 14
    distribution_window_days: int = 14
    pattern_window_days: int = 14
    profile_window_days: int = 14
    branch_timeout_seconds: float = 10.0
    local_timezone: str = "UTC"

    def __post_init__(self) -> None:
        if self.target_min >= self.target_max:
            raise InvalidConfigurationError(
                f"target_min ({self.target_min}) must be below target_max ({self.target_max})"
            )
        if not 0 <= self.target_tir <= 100:
            raise InvalidConfigurationError(
                f"target_tir must be within 0..100, got {self.target_tir}"
            )
        for name in (
            "a1c_window_days",
            "variability_window_days",
            "distribution_window_days",
            "pattern_window_days",
            "profile_window_days",
        ):
            require_positive_days(getattr(self, name), name)
        if self.branch_timeout_seconds <= 0:
            raise InvalidConfigurationError(
                f"branch_timeout_seconds must be positive, got {self.branch_timeout_seconds}"
            )
        try:
            ZoneInfo(self.local_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise InvalidConfigurationError(
                f"Unknown local_timezone: {self.local_timezone!r}"
            ) from exc

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.local_timezone)

    @classmethod
    def from_settings(cls, settings: Settings) -> AnalyticsConfig:
        """Build a validated config from environment-backed settings."""
        return cls(
            target_min=settings.target_min,
            target_max=settings.target_max,
            target_tir=settings.target_tir,
            a1c_window_days=settings.a1c_window_days,
            variability_window_days=settings.variability_window_days,
            distribution_window_days=settings.distribution_window_days,
            pattern_window_days=settings.pattern_window_days,
            profile_window_days=settings.profile_window_days,
            branch_timeout_seconds=settings.branch_timeout_seconds,
            local_timezone=settings.local_timezone,
        )
