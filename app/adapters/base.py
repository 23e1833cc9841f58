"""
app/adapters/base.py

Source adapter capability interface and shared ingest-result helpers.

Adapters only know how to read their raw format. Normalization, preview,
schema detection and validation are free functions that accept any object
satisfying :class:`SourceAdapter`.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence, TypeVar, runtime_checkable

from app.domain.ingestion import IngestMetadata, IngestResult
from app.domain.records import DetectedField

RawT = TypeVar("RawT")


@runtime_checkable
class SourceAdapter(Protocol):
    """
    Read-side contract every source format implements.
    """

    source_type: str
    name: str
    supported_formats: tuple[str, ...]

    def extract_rows(self, raw: Any) -> Sequence[Any]:
        """
        Return the raw rows contained in *raw*.
        """

    def extract_field_names(self, raw: Any) -> list[str]:
        """
        Return every source field name, in source order.
        """

    def detect_field_types(self, raw: Any) -> list[DetectedField]:
        """
        Return type information for every source field.
        """


class IngestClock:
    """
    Measures one ingest call and builds its result envelope.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self._started = time.perf_counter()

    def _metadata(self) -> IngestMetadata:
        return IngestMetadata(
            source=self.source,
            ingested_at=datetime.now(timezone.utc),
            duration_ms=(time.perf_counter() - self._started) * 1000.0,
        )

    def success(self, data: RawT, *, row_count: int, warnings: list[str] | None = None) -> IngestResult[RawT]:
        return IngestResult(
            success=True,
            data=data,
            row_count=row_count,
            metadata=self._metadata(),
            warnings=list(warnings or []),
        )

    def failure(self, error: str, *, warnings: list[str] | None = None) -> IngestResult[Any]:
        return IngestResult(
            success=False,
            data=None,
            row_count=0,
            metadata=self._metadata(),
            error=error,
            warnings=list(warnings or []),
        )


def unique_headers(headers: Sequence[str]) -> tuple[list[str], list[str]]:
    """
    Suffix repeated header names (``name``, ``name_1``, ``name_2``...) so no
    column is lost when rows are keyed by header.

    Returns the unique headers and the names that were repeated.
    """

    seen = set(headers)
    taken: set[str] = set()
    unique: list[str] = []
    repeated: list[str] = []
    for header in headers:
        if header not in taken:
            taken.add(header)
            unique.append(header)
            continue
        if header not in repeated:
            repeated.append(header)
        suffix = 1
        while f"{header}_{suffix}" in taken or f"{header}_{suffix}" in seen:
            suffix += 1
        renamed = f"{header}_{suffix}"
        taken.add(renamed)
        unique.append(renamed)
    return unique, repeated
