"""
Dataset store: in-memory cache in front of a pluggable storage backend.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Sequence

from app.domain.records import FieldMapping, NormaliseResult
from app.logging_utils import log_event
from db.repositories.errors import DatasetPersistenceError, DatasetSerializationError
from db.repositories.serialization import dataset_from_payload, dataset_to_payload
from db.repositories.storage import DatasetStorageBackend
from db.repositories.types import DatasetMetadata, StoredDataset

logger = logging.getLogger(__name__)

DATASET_ID_PREFIX = "dataset-"


def new_dataset_id() -> str:
    return f"{DATASET_ID_PREFIX}{uuid.uuid4().hex}"


class DatasetStore:
    """
    Keeps normalized datasets by id.

    Writes go to the cache first and then to the backend; a backend failure
    is logged and the cached copy stays usable. Reads hit the cache and fall
    through to the backend on a miss.
    """

    def __init__(self, backend: DatasetStorageBackend) -> None:
        self._backend = backend
        self._cache: dict[str, StoredDataset] = {}

    def store(
        self,
        result: NormaliseResult,
        *,
        source_type: str,
        row_count: int,
        field_mappings: Sequence[FieldMapping] = (),
        created_at: datetime | None = None,
    ) -> StoredDataset:
        dataset = StoredDataset(
            id=new_dataset_id(),
            records=list(result.records),
            stage_events=list(result.stage_events),
            actors=list(result.actors),
            created_at=created_at or datetime.now(timezone.utc),
            metadata=DatasetMetadata(
                source_type=source_type,
                row_count=row_count,
                field_mappings=list(field_mappings),
            ),
        )
        self._cache[dataset.id] = dataset

        try:
            self._backend.save(dataset.id, dataset_to_payload(dataset))
        except DatasetPersistenceError as exc:
            log_event(
                logger,
                logging.WARNING,
                "dataset_persist_failed",
                dataset_id=dataset.id,
                error=str(exc),
            )
        else:
            log_event(
                logger,
                logging.INFO,
                "dataset_stored",
                dataset_id=dataset.id,
                source_type=source_type,
                records=len(dataset.records),
            )
        return dataset

    def get(self, dataset_id: str) -> StoredDataset | None:
        cached = self._cache.get(dataset_id)
        if cached is not None:
            return cached

        try:
            payload = self._backend.load(dataset_id)
            if payload is None:
                return None
            dataset = dataset_from_payload(payload)
        except (DatasetPersistenceError, DatasetSerializationError) as exc:
            log_event(
                logger,
                logging.WARNING,
                "dataset_load_failed",
                dataset_id=dataset_id,
                error=str(exc),
            )
            return None

        self._cache[dataset.id] = dataset
        return dataset

    def delete(self, dataset_id: str) -> bool:
        cached = self._cache.pop(dataset_id, None) is not None
        try:
            stored = self._backend.delete(dataset_id)
        except DatasetPersistenceError as exc:
            log_event(logger, logging.WARNING, "dataset_delete_failed", dataset_id=dataset_id, error=str(exc))
            stored = False
        return cached or stored

    def list_ids(self) -> list[str]:
        try:
            stored = self._backend.list_ids()
        except DatasetPersistenceError as exc:
            log_event(logger, logging.WARNING, "dataset_list_failed", error=str(exc))
            stored = []
        return sorted(set(stored) | set(self._cache))

    def clear_cache(self) -> None:
        self._cache.clear()
