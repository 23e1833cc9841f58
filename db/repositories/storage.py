"""
Storage backend abstractions for normalized datasets.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from db.base import Base
from db.models.stored_dataset import StoredDatasetRow
from db.repositories.errors import DatasetPersistenceError
from db.session import build_session_factory

logger = logging.getLogger(__name__)

_SAFE_DATASET_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class DatasetStorageBackend(Protocol):
    """
    Durable storage for serialized dataset payloads.
    """

    def save(self, dataset_id: str, payload: dict[str, Any]) -> None:
        ...

    def load(self, dataset_id: str) -> dict[str, Any] | None:
        ...

    def delete(self, dataset_id: str) -> bool:
        ...

    def list_ids(self) -> list[str]:
        ...


def _checked_id(dataset_id: str) -> str:
    if not _SAFE_DATASET_ID.match(dataset_id):
        raise DatasetPersistenceError(f"Invalid dataset id: {dataset_id!r}")
    return dataset_id


class InMemoryDatasetStorage:
    """
    Process-local backend; nothing survives a restart.
    """

    def __init__(self) -> None:
        self._payloads: dict[str, dict[str, Any]] = {}

    def save(self, dataset_id: str, payload: dict[str, Any]) -> None:
        self._payloads[dataset_id] = payload

    def load(self, dataset_id: str) -> dict[str, Any] | None:
        return self._payloads.get(dataset_id)

    def delete(self, dataset_id: str) -> bool:
        return self._payloads.pop(dataset_id, None) is not None

    def list_ids(self) -> list[str]:
        return sorted(self._payloads)


class LocalFileDatasetStorage:
    """
    One JSON file per dataset under a root directory.
    """

    def __init__(self, root_dir: str | Path = ".data/datasets") -> None:
        self._root_dir = Path(root_dir)

    def _path(self, dataset_id: str) -> Path:
        return self._root_dir / f"{_checked_id(dataset_id)}.json"

    def save(self, dataset_id: str, payload: dict[str, Any]) -> None:
        target = self._path(dataset_id)
        tmp_path = target.with_suffix(".json.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, default=str)
            tmp_path.replace(target)
        except OSError as exc:
            raise DatasetPersistenceError(f"Failed to write dataset {dataset_id} to disk.") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    logger.warning("Could not remove temp file path=%s", tmp_path)

    def load(self, dataset_id: str) -> dict[str, Any] | None:
        target = self._path(dataset_id)
        if not target.exists():
            return None
        try:
            with target.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise DatasetPersistenceError(f"Failed to read dataset {dataset_id} from disk.") from exc

    def delete(self, dataset_id: str) -> bool:
        target = self._path(dataset_id)
        if not target.exists():
            return False
        try:
            target.unlink()
        except OSError as exc:
            raise DatasetPersistenceError(f"Failed to delete dataset {dataset_id} from disk.") from exc
        return True

    def list_ids(self) -> list[str]:
        if not self._root_dir.exists():
            return []
        return sorted(path.stem for path in self._root_dir.glob("*.json"))


class SQLAlchemyDatasetStorage:
    """
    Dataset payloads in the ``stored_datasets`` table.
    """

    def __init__(self, engine: Engine, *, create_tables: bool = True) -> None:
        self._session_factory = build_session_factory(engine)
        if create_tables:
            Base.metadata.create_all(bind=engine, tables=[StoredDatasetRow.__table__])

    def save(self, dataset_id: str, payload: dict[str, Any]) -> None:
        metadata = payload.get("metadata") or {}
        try:
            with self._session_factory() as session, session.begin():
                row = session.get(StoredDatasetRow, dataset_id)
                if row is None:
                    row = StoredDatasetRow(id=dataset_id)
                    session.add(row)
                row.source_type = str(metadata.get("sourceType", ""))
                row.row_count = int(metadata.get("rowCount", 0))
                row.record_count = len(payload.get("records") or [])
                row.payload = payload
        except SQLAlchemyError as exc:
            raise DatasetPersistenceError(f"Failed to persist dataset {dataset_id}.") from exc

    def load(self, dataset_id: str) -> dict[str, Any] | None:
        try:
            with self._session_factory() as session:
                row = session.get(StoredDatasetRow, dataset_id)
                return dict(row.payload) if row is not None else None
        except SQLAlchemyError as exc:
            raise DatasetPersistenceError(f"Failed to load dataset {dataset_id}.") from exc

    def delete(self, dataset_id: str) -> bool:
        try:
            with self._session_factory() as session, session.begin():
                row = session.get(StoredDatasetRow, dataset_id)
                if row is None:
                    return False
                session.delete(row)
                return True
        except SQLAlchemyError as exc:
            raise DatasetPersistenceError(f"Failed to delete dataset {dataset_id}.") from exc

    def list_ids(self) -> list[str]:
        with self._session_factory() as session:
            return list(session.scalars(select(StoredDatasetRow.id).order_by(StoredDatasetRow.id)).all())
