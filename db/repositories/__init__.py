"""
Repository layer exports.
"""

from db.repositories.dataset_repository import DatasetStore, new_dataset_id
from db.repositories.errors import (
    DatasetNotFoundError,
    DatasetPersistenceError,
    DatasetSerializationError,
    DatasetStoreError,
)
from db.repositories.storage import (
    DatasetStorageBackend,
    InMemoryDatasetStorage,
    LocalFileDatasetStorage,
    SQLAlchemyDatasetStorage,
)
from db.repositories.types import DatasetMetadata, StoredDataset

__all__ = [
    "DatasetMetadata",
    "DatasetNotFoundError",
    "DatasetPersistenceError",
    "DatasetSerializationError",
    "DatasetStorageBackend",
    "DatasetStore",
    "DatasetStoreError",
    "InMemoryDatasetStorage",
    "LocalFileDatasetStorage",
    "SQLAlchemyDatasetStorage",
    "StoredDataset",
    "new_dataset_id",
]
