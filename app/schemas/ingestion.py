"""
app/schemas/ingestion.py

Request and response schemas for ingestion endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.domain.records import FieldType


class FieldMappingPayload(BaseModel):
    """
    One user-supplied field mapping in its camelCase wire form.
    """

    model_config = ConfigDict(populate_by_name=True)

    source_field: str = Field(..., alias="sourceField")
    target_field: str = Field(..., alias="targetField")
    transform: dict[str, Any] | None = None


class ValidationIssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    code: str
    message: str
    field: str | None = None
    row: int | None = None
    suggestion: str | None = None


class ValidationStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_records: int = Field(..., ge=0)
    valid_records: int = Field(..., ge=0)
    invalid_records: int = Field(..., ge=0)
    missing_required_fields: int = Field(..., ge=0)


class ValidationResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    valid: bool
    errors: list[ValidationIssueResponse] = Field(default_factory=list)
    warnings: list[ValidationIssueResponse] = Field(default_factory=list)
    stats: ValidationStatsResponse


class IngestionSummaryResponse(BaseModel):
    """
    API response model for one completed ingestion.
    """

    model_config = ConfigDict(from_attributes=True)

    dataset_id: str | None
    source_type: str
    rows_processed: int = Field(..., ge=0)
    records_created: int = Field(..., ge=0)
    actors_created: int = Field(..., ge=0)
    unmapped_fields: list[str] = Field(default_factory=list)
    validation: ValidationResultResponse


class DetectedFieldResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    type: FieldType
    nullable: bool
    sample_values: list[Any] = Field(default_factory=list)


class SuggestedMappingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source_field: str
    target_field: str
    confidence: float = Field(..., ge=0, le=1)
    reason: str


class DetectedSchemaResponse(BaseModel):
    """
    API response model for schema detection over an uploaded source.
    """

    model_config = ConfigDict(from_attributes=True)

    fields: list[DetectedFieldResponse] = Field(default_factory=list)
    suggested_mappings: list[SuggestedMappingResponse] = Field(default_factory=list)
    confidence: float = Field(..., ge=0, le=1)
