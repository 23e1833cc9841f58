"""
app/domain/ingestion.py

Domain models used by source ingestion flows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from app.domain.records import ValidationResult

RawT = TypeVar("RawT")


@dataclass(frozen=True)
class IngestMetadata:
    """
    Provenance of one ingest run.
    """

    source: str
    ingested_at: datetime
    duration_ms: float


@dataclass(frozen=True)
class IngestResult(Generic[RawT]):
    """
    Raw extraction outcome, before any normalization.

    ``data`` is ``None`` whenever ``success`` is ``False``.
    """

    success: bool
    data: RawT | None
    row_count: int
    metadata: IngestMetadata
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class IngestionSummary:
    """
    End-of-run summary for a normalized and stored dataset.
    """

    dataset_id: str | None
    source_type: str
    rows_processed: int
    records_created: int
    actors_created: int
    unmapped_fields: list[str]
    validation: ValidationResult
