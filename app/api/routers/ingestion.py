"""
app/api/routers/ingestion.py

Source ingestion HTTP endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Form, HTTPException, UploadFile, status

from app.api.dependencies import get_csv_upload, get_field_mappings, read_upload_text
from app.domain.records import DataSourceType, FieldMapping
from app.schemas.ingestion import DetectedSchemaResponse, IngestionSummaryResponse
from app.services.ingestion_service import (
    IngestionError,
    IngestionService,
    SourceReadError,
    get_ingestion_service,
)
from app.validators.mapping_validator import SchemaMappingError

router = APIRouter(tags=["ingestion"])


@router.post("/ingest/csv", response_model=IngestionSummaryResponse)
def ingest_csv(
    file: UploadFile = Depends(get_csv_upload),
    mappings: list[FieldMapping] | None = Depends(get_field_mappings),
    delimiter: str = Form(default=","),
    has_header_row: bool = Form(default=True),
    ingestion_service: IngestionService = Depends(get_ingestion_service),
) -> IngestionSummaryResponse:
    """
    Normalize one uploaded CSV into a stored dataset.

    Without ``mappings`` the suggested mappings from schema detection are used.
    """

    content = read_upload_text(file)
    try:
        raw = ingestion_service.read_csv(content, delimiter=delimiter, has_header_row=has_header_row)
        summary = ingestion_service.ingest(DataSourceType.CSV_UPLOAD.value, raw, mappings)
    except SchemaMappingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.to_dict(),
        ) from exc
    except SourceReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except IngestionError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": str(exc),
                "errors": [
                    {"code": issue.code, "message": issue.message, "field": issue.field, "row": issue.row}
                    for issue in exc.validation.errors
                ],
            },
        ) from exc

    return IngestionSummaryResponse.model_validate(summary)


@router.post("/ingest/schema", response_model=DetectedSchemaResponse)
def detect_csv_schema(
    file: UploadFile = Depends(get_csv_upload),
    delimiter: str = Form(default=","),
    has_header_row: bool = Form(default=True),
    ingestion_service: IngestionService = Depends(get_ingestion_service),
) -> DetectedSchemaResponse:
    """
    Detect field types and suggest mappings for an uploaded CSV.
    """

    content = read_upload_text(file)
    try:
        raw = ingestion_service.read_csv(content, delimiter=delimiter, has_header_row=has_header_row)
    except SourceReadError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return DetectedSchemaResponse.model_validate(
        ingestion_service.detect_schema(DataSourceType.CSV_UPLOAD.value, raw)
    )
