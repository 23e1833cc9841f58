"""
app/domain package marker.
"""

from app.domain.ingestion import IngestMetadata, IngestionSummary, IngestResult
from app.domain.records import (
    CORE_TARGET_FIELDS,
    REQUIRED_TARGET_FIELDS,
    UNASSIGNED_OWNER,
    UNKNOWN_STATUS,
    Actor,
    DataSourceType,
    DateTransform,
    DetectedField,
    DetectedSchema,
    DirectTransform,
    FieldMapping,
    FieldStats,
    FieldTransform,
    FieldType,
    FormulaTransform,
    LookupTransform,
    NormaliseResult,
    NumberTransform,
    PreviewResult,
    Record,
    RecordMetadata,
    StageEvent,
    SuggestedMapping,
    TransformError,
    ValidationIssue,
    ValidationResult,
    ValidationStats,
    transform_from_dict,
)

__all__ = [
    "CORE_TARGET_FIELDS",
    "REQUIRED_TARGET_FIELDS",
    "UNASSIGNED_OWNER",
    "UNKNOWN_STATUS",
    "Actor",
    "DataSourceType",
    "DateTransform",
    "DetectedField",
    "DetectedSchema",
    "DirectTransform",
    "FieldMapping",
    "FieldStats",
    "FieldTransform",
    "FieldType",
    "FormulaTransform",
    "IngestMetadata",
    "IngestResult",
    "IngestionSummary",
    "LookupTransform",
    "NormaliseResult",
    "NumberTransform",
    "PreviewResult",
    "Record",
    "RecordMetadata",
    "StageEvent",
    "SuggestedMapping",
    "TransformError",
    "ValidationIssue",
    "ValidationResult",
    "ValidationStats",
    "transform_from_dict",
]
