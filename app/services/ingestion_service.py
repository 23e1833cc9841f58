"""
app/services/ingestion_service.py

Service layer for source ingestion: mapping validation, normalization,
record validation and dataset storage.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Sequence

from app.adapters.csv_adapter import CSVAdapter, CSVRawData
from app.adapters.registry import AdapterRegistry
from app.config import get_normalization_settings
from app.domain.ingestion import IngestionSummary
from app.domain.records import (
    DataSourceType,
    DetectedSchema,
    FieldMapping,
    PreviewResult,
    ValidationResult,
)
from app.logging_utils import log_event
from app.normalization.normalizer import normalise, preview
from app.normalization.schema_detection import detect_schema, suggested_field_mappings
from app.services.dataset_store import get_dataset_store
from app.validators.mapping_validator import MappingValidator
from app.validators.record_validator import validate
from db.repositories.dataset_repository import DatasetStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SourceReadError(ValueError):
    """
    Raised when an adapter cannot read the raw source at all.
    """


class IngestionError(ValueError):
    """
    Raised when normalization produced no valid records.
    """

    def __init__(self, message: str, *, validation: ValidationResult) -> None:
        super().__init__(message)
        self.validation = validation


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class IngestionService:
    """
    Coordinates adapters, normalization, validation and storage.
    """

    def __init__(
        self,
        *,
        store: DatasetStore,
        registry: AdapterRegistry | None = None,
        mapping_validator: MappingValidator | None = None,
        preview_limit: int = 10,
    ) -> None:
        self._store = store
        self._registry = registry or AdapterRegistry()
        self._mapping_validator = mapping_validator or MappingValidator()
        self._preview_limit = max(1, preview_limit)

    def read_csv(self, content: str, *, delimiter: str = ",", has_header_row: bool = True) -> CSVRawData:
        adapter = self._registry.get(DataSourceType.CSV_UPLOAD.value)
        if not isinstance(adapter, CSVAdapter):
            raise SourceReadError("The csv_upload adapter does not accept CSV text.")
        result = adapter.ingest(content, delimiter=delimiter, has_header_row=has_header_row)
        if not result.success or result.data is None:
            raise SourceReadError(result.error or "Failed to parse CSV")
        for warning in result.warnings:
            logger.info("CSV ingest warning: %s", warning)
        return result.data

    def detect_schema(self, source_type: str, raw: Any) -> DetectedSchema:
        return detect_schema(self._registry.get(source_type), raw)

    def preview(self, source_type: str, raw: Any, mappings: Sequence[FieldMapping]) -> PreviewResult:
        adapter = self._registry.get(source_type)
        self._mapping_validator.validate(mappings, source_fields=adapter.extract_field_names(raw))
        return preview(adapter, raw, mappings, limit=self._preview_limit)

    def ingest(
        self,
        source_type: str,
        raw: Any,
        mappings: Sequence[FieldMapping] | None = None,
        *,
        store: bool = True,
    ) -> IngestionSummary:
        """
        Normalize *raw* and store the resulting dataset.

        Without *mappings*, the suggestions from schema detection are used.
        Raises SchemaMappingError for unusable mappings and IngestionError
        when no record is valid.
        """

        adapter = self._registry.get(source_type)
        if mappings is None:
            mappings = suggested_field_mappings(detect_schema(adapter, raw))
        self._mapping_validator.validate(mappings, source_fields=adapter.extract_field_names(raw))

        result = normalise(adapter, raw, mappings)
        validation = validate(result)
        rows_processed = len(adapter.extract_rows(raw))

        if validation.stats.valid_records == 0:
            log_event(
                logger,
                logging.WARNING,
                "ingestion_rejected",
                source_type=adapter.source_type,
                rows=rows_processed,
                errors=len(validation.errors),
            )
            raise IngestionError("No valid records were produced from the source data.", validation=validation)

        dataset_id: str | None = None
        if store:
            dataset_id = self._store.store(
                result,
                source_type=adapter.source_type,
                row_count=rows_processed,
                field_mappings=mappings,
            ).id

        log_event(
            logger,
            logging.INFO,
            "ingestion_completed",
            dataset_id=dataset_id,
            source_type=adapter.source_type,
            rows=rows_processed,
            records=len(result.records),
            transform_errors=len(result.transform_errors),
            warnings=len(validation.warnings),
        )
        return IngestionSummary(
            dataset_id=dataset_id,
            source_type=adapter.source_type,
            rows_processed=rows_processed,
            records_created=len(result.records),
            actors_created=len(result.actors),
            unmapped_fields=result.unmapped_fields,
            validation=validation,
        )


@lru_cache(maxsize=1)
def get_ingestion_service() -> IngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """

    return IngestionService(
        store=get_dataset_store(),
        preview_limit=get_normalization_settings().preview_limit,
    )
