"""
app/adapters/rows_adapter.py

Adapter for rows that are already in memory (JSON payloads, manual entry).
"""

from __future__ import annotations

from typing import Any, Sequence

from app.domain.records import DataSourceType, DetectedField
from app.normalization.schema_detection import (
    DEFAULT_SAMPLE_SIZE,
    collect_field_names,
    detect_fields,
)


class RowListAdapter:
    """
    Treats a sequence of mappings as the raw data itself.
    """

    name = "Row List"
    supported_formats = ("json",)

    def __init__(
        self,
        *,
        source_type: str = DataSourceType.MANUAL.value,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ) -> None:
        self.source_type = source_type
        self._sample_size = sample_size

    def extract_rows(self, raw: Sequence[Any]) -> Sequence[Any]:
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
            raise TypeError(f"Row data must be a sequence of objects, got {type(raw).__name__}")
        return raw

    def extract_field_names(self, raw: Sequence[Any]) -> list[str]:
        return collect_field_names(self.extract_rows(raw), sample_size=self._sample_size)

    def detect_field_types(self, raw: Sequence[Any]) -> list[DetectedField]:
        rows = self.extract_rows(raw)
        return detect_fields(rows, self.extract_field_names(raw), sample_size=self._sample_size)
