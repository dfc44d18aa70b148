"""Application settings loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Glycemic analytics engine configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    glyco_log_level: str = "info"

    # Storage (reading store + daily snapshots)
    db_path: str = "~/.glyco/glucose.db"

    # Encryption of free-text reading notes at rest
    encryption_key: str = ""
    # Comma-separated retired keys, still accepted for decryption during rotation
    encryption_previous_keys: str = ""

    # Hour-of-day and calendar-day boundaries are derived in this zone
    local_timezone: str = "UTC"

    # Target band (only drives meets_target / snapshot above/below split;
    # the five clinical bands are fixed)
    target_min: int = 70
    target_max: int = 180
    target_tir: int = 70

    # Analysis windows, in days
    a1c_window_days: int = 90
    variability_window_days: int = 14
    distribution_window_days: int = 14
    pattern_window_days: int = 14
    profile_window_days: int = 14

    # Per-branch bound for the comprehensive fan-out
    branch_timeout_seconds: float = 10.0


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Configure root logging at the level named in settings."""
    logging.basicConfig(
        level=getattr(logging, settings.glyco_log_level.upper(), logging.INFO)
    )
