"""
Typed containers used by the dataset store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from app.domain.records import Actor, FieldMapping, Record, StageEvent


@dataclass(frozen=True)
class DatasetMetadata:
    source_type: str
    row_count: int
    field_mappings: list[FieldMapping] = field(default_factory=list)


@dataclass(frozen=True)
class StoredDataset:
    """
    A normalized dataset as kept by the store.
    """

    id: str
    records: list[Record]
    stage_events: list[StageEvent]
    actors: list[Actor]
    created_at: datetime
    metadata: DatasetMetadata
