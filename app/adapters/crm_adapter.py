"""
app/adapters/crm_adapter.py

Generic CRM adapter: pages through a REST endpoint returning JSON records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from app.adapters.base import IngestClock
from app.adapters.http import ConnectorRequestError, HTTPSourceClient, SourceAuth
from app.config import CRMSettings, ExternalHTTPSettings
from app.domain.ingestion import IngestResult
from app.domain.records import DataSourceType, DetectedField
from app.normalization.schema_detection import (
    DEFAULT_SAMPLE_SIZE,
    collect_field_names,
    detect_fields,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CRMRawData:
    endpoint: str
    entity_type: str
    records: list[dict[str, Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class CRMPage:
    records: list[dict[str, Any]]
    total_pages: int | None = None


def parse_page(payload: Any) -> CRMPage:
    """
    Unwrap the record list from the common REST envelope shapes.
    """

    if isinstance(payload, list):
        return CRMPage(records=[item for item in payload if isinstance(item, dict)])
    if not isinstance(payload, Mapping):
        return CRMPage(records=[])

    for key, pagination_keys in (("data", ("pagination", "meta")), ("records", ("pagination",))):
        items = payload.get(key)
        if isinstance(items, list):
            pagination: Any = None
            for pagination_key in pagination_keys:
                if isinstance(payload.get(pagination_key), Mapping):
                    pagination = payload[pagination_key]
                    break
            return CRMPage(records=[item for item in items if isinstance(item, dict)], total_pages=_total_pages(pagination))

    items = payload.get("items")
    if isinstance(items, list):
        return CRMPage(
            records=[item for item in items if isinstance(item, dict)],
            total_pages=_as_int(payload.get("pages")),
        )

    return CRMPage(records=[dict(payload)])


def _total_pages(pagination: Mapping[str, Any] | None) -> int | None:
    if pagination is None:
        return None
    for key in ("totalPages", "total_pages", "pages"):
        if key in pagination:
            return _as_int(pagination[key])
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class GenericCRMAdapter:
    """
    Adapter for REST-API based CRMs with page/per_page pagination.
    """

    source_type = DataSourceType.GENERIC_CRM.value
    name = "Generic CRM API"
    supported_formats = ("rest_api", "json")

    def __init__(
        self,
        *,
        settings: CRMSettings,
        http_settings: ExternalHTTPSettings,
        client: HTTPSourceClient | None = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ) -> None:
        self._settings = settings
        self._client = client or HTTPSourceClient(source=self.source_type, http_settings=http_settings)
        self._sample_size = sample_size

    def ingest(
        self,
        endpoint: str | None,
        *,
        entity_type: str = "records",
        api_key: str | None = None,
        page_size: int | None = None,
    ) -> IngestResult[CRMRawData]:
        clock = IngestClock(self.source_type)
        if not endpoint:
            return clock.failure("API endpoint is required")

        try:
            records = self.fetch_all_pages(endpoint, api_key=api_key, page_size=page_size)
        except ConnectorRequestError as exc:
            return clock.failure(str(exc) or "Failed to fetch from CRM")

        data = CRMRawData(endpoint=endpoint, entity_type=entity_type, records=records)
        warnings = ["No records returned from API"] if not records else []
        return clock.success(data, row_count=data.row_count, warnings=warnings)

    def fetch_all_pages(
        self,
        endpoint: str,
        *,
        api_key: str | None = None,
        page_size: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch pages until the envelope reports the last page, a short page
        arrives, or the page cap is reached.
        """

        per_page = page_size or self._settings.page_size
        auth = SourceAuth(bearer_token=api_key) if api_key else None

        records: list[dict[str, Any]] = []
        pages = 0
        for page, payload in self._client.iter_pages(
            endpoint,
            per_page=per_page,
            max_pages=self._settings.max_pages,
            auth=auth,
        ):
            pages = page
            parsed = parse_page(payload)
            records.extend(parsed.records)

            if parsed.total_pages is not None:
                has_more = page < parsed.total_pages
            else:
                has_more = len(parsed.records) == per_page
            if not has_more:
                break

        logger.debug("Fetched CRM records endpoint=%s pages=%s records=%s", endpoint, pages, len(records))
        return records

    def extract_rows(self, raw: CRMRawData) -> list[dict[str, Any]]:
        return raw.records

    def extract_field_names(self, raw: CRMRawData) -> list[str]:
        return collect_field_names(raw.records, sample_size=self._sample_size)

    def detect_field_types(self, raw: CRMRawData) -> list[DetectedField]:
        return detect_fields(raw.records, self.extract_field_names(raw), sample_size=self._sample_size)
