"""
app/adapters/csv_adapter.py

CSV upload adapter: parses delimited text into header-keyed rows.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field

from app.adapters.base import IngestClock, unique_headers
from app.domain.ingestion import IngestResult
from app.domain.records import DataSourceType, DetectedField
from app.normalization.schema_detection import DEFAULT_SAMPLE_SIZE, detect_fields

logger = logging.getLogger(__name__)

ALLOWED_DELIMITERS = (",", ";", "\t", "|")


@dataclass(frozen=True)
class CSVRawData:
    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)
    duplicate_headers: list[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _is_blank_line(cells: list[str]) -> bool:
    return not cells or (len(cells) == 1 and not cells[0].strip())


def parse_csv(content: str, *, delimiter: str = ",", has_header_row: bool = True) -> CSVRawData:
    """
    Parse CSV text into headers and string-valued rows.

    Blank lines are skipped and cell values are stripped. Missing header
    cells become ``column_<index>`` and repeated ones get a numeric suffix;
    short rows are padded with ``""``.
    """

    if delimiter not in ALLOWED_DELIMITERS:
        raise ValueError(f"Unsupported delimiter {delimiter!r}. Allowed: {ALLOWED_DELIMITERS!r}.")

    reader = csv.reader(io.StringIO(content.lstrip("\ufeff")), delimiter=delimiter)
    lines = [cells for cells in reader if not _is_blank_line(cells)]
    if not lines:
        return CSVRawData(headers=[])

    if has_header_row:
        header_cells, data_lines = lines[0], lines[1:]
        headers, duplicates = unique_headers(
            [cell.strip() or f"column_{index}" for index, cell in enumerate(header_cells)]
        )
    else:
        data_lines = lines
        headers, duplicates = [f"column_{index}" for index in range(len(lines[0]))], []

    rows: list[dict[str, str]] = []
    for cells in data_lines:
        rows.append(
            {
                header: cells[index].strip() if index < len(cells) else ""
                for index, header in enumerate(headers)
            }
        )
    return CSVRawData(headers=headers, rows=rows, duplicate_headers=duplicates)


class CSVAdapter:
    """
    Adapter for uploaded CSV, TSV and delimited text files.
    """

    source_type = DataSourceType.CSV_UPLOAD.value
    name = "CSV Upload"
    supported_formats = (".csv", ".tsv", ".txt")

    def __init__(self, *, sample_size: int = DEFAULT_SAMPLE_SIZE) -> None:
        self._sample_size = sample_size

    def ingest(
        self,
        content: str | None,
        *,
        delimiter: str = ",",
        has_header_row: bool = True,
        source: str | None = None,
    ) -> IngestResult[CSVRawData]:
        clock = IngestClock(source or self.source_type)
        if not content:
            return clock.failure("No CSV content provided")

        try:
            parsed = parse_csv(content, delimiter=delimiter, has_header_row=has_header_row)
        except (ValueError, csv.Error) as exc:
            logger.warning("CSV parse failed source=%s error=%s", clock.source, exc)
            return clock.failure(str(exc) or "Failed to parse CSV")

        warnings: list[str] = []
        if not parsed.rows:
            warnings.append("CSV appears to be empty or has only headers")
        if parsed.duplicate_headers:
            warnings.append(f"Duplicate column names renamed: {', '.join(parsed.duplicate_headers)}")
        return clock.success(parsed, row_count=parsed.row_count, warnings=warnings)

    def extract_rows(self, raw: CSVRawData) -> list[dict[str, str]]:
        return raw.rows

    def extract_field_names(self, raw: CSVRawData) -> list[str]:
        return list(raw.headers)

    def detect_field_types(self, raw: CSVRawData) -> list[DetectedField]:
        return detect_fields(raw.rows, raw.headers, sample_size=self._sample_size)
