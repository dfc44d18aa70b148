"""Application factory: wires settings, storage and the analytics service.

The host application calls :func:`create_analytics_service` once at start-up.
Store overrides let tests and embedding applications supply their own
Reading/Snapshot stores.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from glyco.core.config.settings import Settings, get_settings
from glyco.core.storage.database import DatabaseError, GlucoseDatabase
from glyco.core.storage.encryption import EncryptionError, FieldEncryptor
from glyco.core.storage.repository import GlucoseRepository
from glyco.domains.glucose.connectors import ReadingStore, SnapshotStore
from glyco.domains.glucose.connectors.providers import (
    InMemoryReadingStore,
    InMemorySnapshotStore,
)
from glyco.domains.glucose.connectors.repository_store import (
    RepositoryReadingStore,
    RepositorySnapshotStore,
)
from glyco.domains.glucose.domain_logic.analytics_config import AnalyticsConfig
from glyco.domains.glucose.domain_logic.analytics_service import GlycemicAnalyticsService

logger = logging.getLogger(__name__)


def open_repository(settings: Settings) -> GlucoseRepository | None:
    """Open the encrypted SQLite repository, or None when it is not configured.

    A missing ``ENCRYPTION_KEY`` disables persistence. A bad key or an
    unopenable database is logged and also disables persistence.
    """
    if not settings.encryption_key:
        logger.info(
            "No ENCRYPTION_KEY configured; running without persistence. "
            "Set ENCRYPTION_KEY to store readings and daily snapshots."
        )
        return None

    previous_keys = [k for k in settings.encryption_previous_keys.split(",") if k.strip()]
    try:
        encryptor = FieldEncryptor(settings.encryption_key, previous_keys=previous_keys)
        database = GlucoseDatabase(settings.db_path)
        database.initialize()
    except (EncryptionError, DatabaseError) as exc:
        logger.error("Failed to initialize storage: %s", exc)
        logger.warning("Continuing without persistence; readings will not be stored")
        return None

    logger.info(
        "Glucose storage initialized: %s (schema v%d)",
        settings.db_path,
        database.get_schema_version(),
    )
    return GlucoseRepository(database, encryptor)


def create_analytics_service(
    settings: Settings | None = None,
    *,
    reading_store_override: ReadingStore | None = None,
    snapshot_store_override: SnapshotStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> GlycemicAnalyticsService:
    """Build a GlycemicAnalyticsService from settings.

    Raises:
        InvalidConfigurationError: If the analytics settings are invalid.
    """
    settings = settings or get_settings()
    config = AnalyticsConfig.from_settings(settings)

    reading_store = reading_store_override
    snapshot_store = snapshot_store_override
    if reading_store is None or snapshot_store is None:
        repository = open_repository(settings)
        if repository is not None:
            reading_store = reading_store or RepositoryReadingStore(repository)
            snapshot_store = snapshot_store or RepositorySnapshotStore(repository)
        else:
            reading_store = reading_store or InMemoryReadingStore()
            snapshot_store = snapshot_store or InMemorySnapshotStore()
            logger.info("Using in-memory reading and snapshot stores")

    logger.info(
        "Glycemic analytics ready: target %d-%d mg/dL, timezone %s",
        config.target_min,
        config.target_max,
        config.local_timezone,
    )
    return GlycemicAnalyticsService(
        reading_store, config, snapshot_store=snapshot_store, clock=clock
    )
