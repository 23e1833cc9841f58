"""
app/adapters/sheets_adapter.py

Google Sheets adapter: reads a values grid whose first row holds headers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence
from urllib.parse import quote

from app.adapters.base import IngestClock, unique_headers
from app.adapters.http import ConnectorRequestError, HTTPSourceClient, SourceAuth
from app.config import ExternalHTTPSettings, GoogleSheetsSettings
from app.domain.ingestion import IngestResult
from app.domain.records import DataSourceType, DetectedField
from app.normalization.schema_detection import DEFAULT_SAMPLE_SIZE, detect_fields

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Sheet1"


@dataclass(frozen=True)
class SheetsRawData:
    spreadsheet_id: str
    sheet_name: str
    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def values_to_rows(values: Sequence[Sequence[Any]]) -> tuple[list[str], list[dict[str, str]]]:
    """
    Convert a Sheets values grid into headers and header-keyed rows.

    The API omits trailing empty cells, so short rows are padded with ``""``.
    Fully empty rows are dropped and repeated headers get a numeric suffix.
    """

    if not values:
        return [], []

    headers, _ = unique_headers([_cell_text(cell) or f"column_{index}" for index, cell in enumerate(values[0])])
    rows: list[dict[str, str]] = []
    for cells in values[1:]:
        texts = [_cell_text(cell) for cell in cells]
        if not any(texts):
            continue
        rows.append(
            {header: texts[index] if index < len(texts) else "" for index, header in enumerate(headers)}
        )
    return headers, rows


def resolve_range(sheet_range: str | None, sheet_name: str | None) -> str:
    requested = sheet_range or sheet_name or DEFAULT_SHEET_NAME
    return requested if "!" in requested else f"{requested}!A:Z"


class GoogleSheetsAdapter:
    """
    Adapter for Google Sheets spreadsheets via the Sheets v4 values API.
    """

    source_type = DataSourceType.GOOGLE_SHEETS.value
    name = "Google Sheets"
    supported_formats = ("google_sheets",)

    def __init__(
        self,
        *,
        settings: GoogleSheetsSettings,
        http_settings: ExternalHTTPSettings,
        client: HTTPSourceClient | None = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ) -> None:
        self._settings = settings
        self._client = client or HTTPSourceClient(source=self.source_type, http_settings=http_settings)
        self._sample_size = sample_size

    def ingest(
        self,
        spreadsheet_id: str | None,
        *,
        sheet_name: str | None = None,
        sheet_range: str | None = None,
        access_token: str | None = None,
        values: Sequence[Sequence[Any]] | None = None,
    ) -> IngestResult[SheetsRawData]:
        """
        Read one sheet. Pre-fetched *values* skip the HTTP call.
        """

        clock = IngestClock(self.source_type)
        if not spreadsheet_id:
            return clock.failure("Spreadsheet ID is required")

        try:
            grid = (
                values
                if values is not None
                else self.fetch_values(
                    spreadsheet_id,
                    sheet_range=resolve_range(sheet_range, sheet_name),
                    access_token=access_token,
                )
            )
        except ConnectorRequestError as exc:
            return clock.failure(str(exc) or "Failed to fetch Google Sheet")

        headers, rows = values_to_rows(grid)
        data = SheetsRawData(
            spreadsheet_id=spreadsheet_id,
            sheet_name=sheet_name or DEFAULT_SHEET_NAME,
            headers=headers,
            rows=rows,
        )
        warnings = ["Sheet appears to be empty"] if not rows else []
        return clock.success(data, row_count=data.row_count, warnings=warnings)

    def fetch_values(
        self,
        spreadsheet_id: str,
        *,
        sheet_range: str,
        access_token: str | None = None,
    ) -> list[list[Any]]:
        url = f"{self._settings.base_url.rstrip('/')}/{quote(spreadsheet_id, safe='')}/values/{quote(sheet_range, safe='!:')}"
        auth = SourceAuth(bearer_token=access_token, api_key=self._settings.api_key)
        payload = self._client.get_json(url, auth=auth)
        grid = payload.get("values", []) if isinstance(payload, dict) else []
        logger.debug("Fetched sheet values spreadsheet=%s range=%s rows=%s", spreadsheet_id, sheet_range, len(grid))
        return [list(row) for row in grid if isinstance(row, list)]

    def extract_rows(self, raw: SheetsRawData) -> list[dict[str, str]]:
        return raw.rows

    def extract_field_names(self, raw: SheetsRawData) -> list[str]:
        return list(raw.headers)

    def detect_field_types(self, raw: SheetsRawData) -> list[DetectedField]:
        return detect_fields(raw.rows, raw.headers, sample_size=self._sample_size)
