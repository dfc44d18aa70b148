"""Shared test fixtures for the glycemic analytics tests."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

# Fixed "now" used by clock-injected services: a Sunday, noon UTC.
FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GLYCO_LOG_LEVEL", "debug")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("ENCRYPTION_PREVIOUS_KEYS", "")
    monkeypatch.setenv("DB_PATH", ":memory:")


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock callable returning FIXED_NOW."""
    return lambda: FIXED_NOW


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def glucose_db():
    """Create an in-memory GlucoseDatabase for testing."""
    from glyco.core.storage.database import GlucoseDatabase

    db = GlucoseDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from glyco.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def glucose_repository(glucose_db, field_encryptor):
    """Create a GlucoseRepository backed by in-memory SQLite."""
    from glyco.core.storage.repository import GlucoseRepository

    return GlucoseRepository(glucose_db, field_encryptor)
