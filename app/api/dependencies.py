"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

import json

from fastapi import File, Form, HTTPException, UploadFile, status
from pydantic import TypeAdapter, ValidationError

from app.domain.records import FieldMapping, transform_from_dict
from app.schemas.ingestion import FieldMappingPayload

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
    "text/tab-separated-values",
    "text/plain",
}
CSV_EXTENSIONS = (".csv", ".tsv", ".txt")

_MAPPINGS_ADAPTER = TypeAdapter(list[FieldMappingPayload])


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is delimited text by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    is_csv_filename = filename.endswith(CSV_EXTENSIONS)
    is_csv_content_type = content_type in CSV_CONTENT_TYPES

    if not is_csv_filename and not is_csv_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV files are allowed.",
        )

    return file


def read_upload_text(file: UploadFile) -> str:
    """
    Read an uploaded file as UTF-8 text and close it.
    """

    try:
        return file.file.read().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file must be UTF-8 encoded text.",
        ) from exc
    finally:
        file.file.close()


def get_field_mappings(
    mappings: str | None = Form(default=None, description="JSON list of {sourceField, targetField, transform}"),
) -> list[FieldMapping] | None:
    """
    Parse the optional JSON ``mappings`` form field into field mappings.
    """

    if mappings is None or not mappings.strip():
        return None

    try:
        payloads = _MAPPINGS_ADAPTER.validate_python(json.loads(mappings))
        return [
            FieldMapping(
                source_field=payload.source_field,
                target_field=payload.target_field,
                transform=transform_from_dict(payload.transform),
            )
            for payload in payloads
        ]
    except (json.JSONDecodeError, ValidationError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid mappings: {exc}",
        ) from exc
