"""
app/services/dataset_store.py

Builds the process-wide dataset store from settings.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from app.config import DatasetStoreSettings, get_dataset_store_settings
from db.repositories.dataset_repository import DatasetStore
from db.repositories.storage import (
    DatasetStorageBackend,
    InMemoryDatasetStorage,
    LocalFileDatasetStorage,
    SQLAlchemyDatasetStorage,
)
from db.session import get_engine

logger = logging.getLogger(__name__)


def build_storage_backend(settings: DatasetStoreSettings) -> DatasetStorageBackend:
    if settings.backend == "database":
        return SQLAlchemyDatasetStorage(get_engine())
    if settings.backend == "memory":
        return InMemoryDatasetStorage()
    return LocalFileDatasetStorage(settings.directory)


@lru_cache(maxsize=1)
def get_dataset_store() -> DatasetStore:
    """
    Build and cache the dataset store with env-driven settings.
    """

    settings = get_dataset_store_settings()
    logger.info("Dataset store backend=%s", settings.backend)
    return DatasetStore(build_storage_backend(settings))
