"""
Source adapter registry and factory.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from app.adapters.base import SourceAdapter
from app.adapters.crm_adapter import GenericCRMAdapter
from app.adapters.csv_adapter import CSVAdapter
from app.adapters.rows_adapter import RowListAdapter
from app.adapters.sheets_adapter import GoogleSheetsAdapter
from app.config import (
    get_crm_settings,
    get_external_http_settings,
    get_google_sheets_settings,
    get_normalization_settings,
)
from app.domain.records import DataSourceType

AdapterFactory = Callable[[], SourceAdapter]


def _builtin_factories() -> dict[str, AdapterFactory]:
    sample_size = get_normalization_settings().type_sample_size
    return {
        DataSourceType.CSV_UPLOAD.value: lambda: CSVAdapter(sample_size=sample_size),
        DataSourceType.GOOGLE_SHEETS.value: lambda: GoogleSheetsAdapter(
            settings=get_google_sheets_settings(),
            http_settings=get_external_http_settings(),
            sample_size=sample_size,
        ),
        DataSourceType.GENERIC_CRM.value: lambda: GenericCRMAdapter(
            settings=get_crm_settings(),
            http_settings=get_external_http_settings(),
            sample_size=sample_size,
        ),
        DataSourceType.API.value: lambda: RowListAdapter(
            source_type=DataSourceType.API.value,
            sample_size=sample_size,
        ),
        DataSourceType.MANUAL.value: lambda: RowListAdapter(sample_size=sample_size),
    }


class AdapterRegistry:
    """
    Adapter registry keyed by source type, with lazily built instances.
    """

    def __init__(self, registrations: Mapping[str, AdapterFactory] | None = None) -> None:
        factories = _builtin_factories()
        if registrations:
            factories.update({key.strip().lower(): value for key, value in registrations.items()})
        self._factories = factories
        self._instances: dict[str, SourceAdapter] = {}

    def register(self, *, source_type: str, factory: AdapterFactory) -> None:
        key = source_type.strip().lower()
        self._factories[key] = factory
        self._instances.pop(key, None)

    def get(self, source_type: str) -> SourceAdapter:
        key = source_type.strip().lower()
        instance = self._instances.get(key)
        if instance is not None:
            return instance

        factory = self._factories.get(key)
        if factory is None:
            allowed = ", ".join(sorted(self._factories.keys()))
            raise ValueError(f"Unknown source_type='{source_type}'. Allowed types: {allowed}.")
        instance = factory()
        self._instances[key] = instance
        return instance

    def source_types(self) -> list[str]:
        return sorted(self._factories.keys())
