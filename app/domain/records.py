"""
app/domain/records.py

Generic record model produced by source normalization.

Every entity here is a plain frozen dataclass with no behaviour beyond
construction helpers, so results can be handed straight to the API layer
and serialized to JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Union

UNASSIGNED_OWNER = "unassigned"
UNKNOWN_STATUS = "unknown"

# Record attributes that a FieldMapping may target directly, keyed by the
# wire name users pick in the mapping UI.
CORE_TARGET_FIELDS: tuple[str, ...] = (
    "id",
    "ownerId",
    "value",
    "status",
    "createdAt",
    "updatedAt",
    "closedAt",
)

REQUIRED_TARGET_FIELDS: tuple[str, ...] = ("id", "status")


class DataSourceType(str, Enum):
    CSV_UPLOAD = "csv_upload"
    GOOGLE_SHEETS = "google_sheets"
    GENERIC_CRM = "generic_crm"
    API = "api"
    MANUAL = "manual"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    MIXED = "mixed"


# ---------------------------------------------------------------------------
# Core entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecordMetadata:
    """
    Provenance of a record plus every mapped field that is not a core attribute.
    """

    source: str
    source_type: str
    custom_fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Record:
    """
    Canonical unit of analysis (a deal, order, lead, ticket...).
    """

    id: str
    owner_id: str
    status: str
    metadata: RecordMetadata
    created_at: datetime
    updated_at: datetime
    external_id: str | None = None
    value: float | None = None
    closed_at: datetime | None = None


@dataclass(frozen=True)
class Actor:
    """
    Owner of one or more records, derived during normalization.
    """

    id: str
    name: str
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
    external_id: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class StageEvent:
    """
    Transition of a record between two statuses.

    ``from_stage`` is ``None`` for the initial creation event.
    ``duration_in_previous_stage`` is expressed in milliseconds.
    """

    id: str
    record_id: str
    from_stage: str | None
    to_stage: str
    timestamp: datetime
    actor_id: str | None = None
    duration_in_previous_stage: float | None = None


# ---------------------------------------------------------------------------
# Field mappings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DirectTransform:
    type: str = field(default="direct", init=False)


@dataclass(frozen=True)
class DateTransform:
    format: str | None = None
    type: str = field(default="date", init=False)


@dataclass(frozen=True)
class NumberTransform:
    decimals: int | None = None
    type: str = field(default="number", init=False)


@dataclass(frozen=True)
class LookupTransform:
    mapping: dict[str, Any] = field(default_factory=dict)
    type: str = field(default="lookup", init=False)


@dataclass(frozen=True)
class FormulaTransform:
    """
    Declared extension point; values pass through unchanged.
    """

    expression: str = ""
    type: str = field(default="formula", init=False)


FieldTransform = Union[
    DirectTransform,
    DateTransform,
    NumberTransform,
    LookupTransform,
    FormulaTransform,
]


def transform_from_dict(payload: Mapping[str, Any] | None) -> FieldTransform | None:
    """
    Build a transform from its tagged ``{"type": ...}`` representation.
    """

    if payload is None:
        return None

    transform_type = str(payload.get("type", "direct")).strip().lower()
    if transform_type == "direct":
        return DirectTransform()
    if transform_type == "date":
        return DateTransform(format=payload.get("format"))
    if transform_type == "number":
        decimals = payload.get("decimals")
        return NumberTransform(decimals=int(decimals) if decimals is not None else None)
    if transform_type == "lookup":
        return LookupTransform(mapping=dict(payload.get("mapping") or {}))
    if transform_type == "formula":
        return FormulaTransform(expression=str(payload.get("expression") or ""))
    raise ValueError(
        f"Unknown transform type '{transform_type}'. "
        "Allowed types: date, direct, formula, lookup, number."
    )


@dataclass(frozen=True)
class FieldMapping:
    """
    Maps one raw source field (dot paths allowed) onto a record attribute.

    ``target_field`` is either one of :data:`CORE_TARGET_FIELDS` or the name
    of a custom field stored under ``metadata.custom_fields``.
    """

    source_field: str
    target_field: str
    transform: FieldTransform | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FieldMapping":
        return cls(
            source_field=str(payload.get("sourceField", payload.get("source_field", ""))),
            target_field=str(payload.get("targetField", payload.get("target_field", ""))),
            transform=transform_from_dict(payload.get("transform")),
        )


# ---------------------------------------------------------------------------
# Normalization results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransformError:
    """
    One field- or row-level failure collected during normalization.
    """

    row: int
    field: str
    source_value: Any
    error: str


@dataclass(frozen=True)
class NormaliseResult:
    records: list[Record] = field(default_factory=list)
    stage_events: list[StageEvent] = field(default_factory=list)
    actors: list[Actor] = field(default_factory=list)
    unmapped_fields: list[str] = field(default_factory=list)
    transform_errors: list[TransformError] = field(default_factory=list)


@dataclass(frozen=True)
class ValidationIssue:
    type: str
    code: str
    message: str
    field: str | None = None
    row: int | None = None
    suggestion: str | None = None


@dataclass(frozen=True)
class ValidationStats:
    total_records: int
    valid_records: int
    invalid_records: int
    missing_required_fields: int


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationIssue]
    stats: ValidationStats


@dataclass(frozen=True)
class FieldStats:
    field: str
    type: FieldType
    non_null_count: int
    unique_count: int
    sample_values: list[Any]


@dataclass(frozen=True)
class PreviewResult:
    records: list[Record]
    sample_size: int
    total_estimated: int
    field_stats: list[FieldStats]
    transform_errors: list[TransformError] = field(default_factory=list)


@dataclass(frozen=True)
class DetectedField:
    name: str
    type: FieldType
    nullable: bool
    sample_values: list[Any]


@dataclass(frozen=True)
class SuggestedMapping:
    source_field: str
    target_field: str
    confidence: float
    reason: str

    def to_field_mapping(self) -> FieldMapping:
        return FieldMapping(source_field=self.source_field, target_field=self.target_field)


@dataclass(frozen=True)
class DetectedSchema:
    fields: list[DetectedField]
    suggested_mappings: list[SuggestedMapping]
    confidence: float
