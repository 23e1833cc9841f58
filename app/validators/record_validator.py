"""
app/validators/record_validator.py

Post-normalization validation of generic records.
"""

from __future__ import annotations

from app.domain.records import (
    UNASSIGNED_OWNER,
    UNKNOWN_STATUS,
    NormaliseResult,
    ValidationIssue,
    ValidationResult,
    ValidationStats,
)
from app.normalization.transforms import is_blank

MISSING_ID = "MISSING_ID"
MISSING_OWNER = "MISSING_OWNER"
MISSING_STATUS = "MISSING_STATUS"
TRANSFORM_ERROR = "TRANSFORM_ERROR"


def validate(result: NormaliseResult) -> ValidationResult:
    """
    Classify records as valid or invalid and surface transform errors.

    Only a missing id invalidates a record. Owners and statuses that fell
    back to their defaults are reported as warnings.
    """

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    valid_records = 0
    invalid_records = 0
    missing_required_fields = 0

    for row, record in enumerate(result.records):
        if is_blank(record.id):
            errors.append(
                ValidationIssue(
                    type="error",
                    code=MISSING_ID,
                    message="Record is missing an ID",
                    field="id",
                    row=row,
                    suggestion="Map a unique identifier column to 'id'.",
                )
            )
            missing_required_fields += 1
            invalid_records += 1
        else:
            valid_records += 1

        if is_blank(record.owner_id) or record.owner_id == UNASSIGNED_OWNER:
            warnings.append(
                ValidationIssue(
                    type="warning",
                    code=MISSING_OWNER,
                    message=f"Record {record.id} has no owner assigned",
                    field="ownerId",
                    row=row,
                )
            )

        if is_blank(record.status) or record.status == UNKNOWN_STATUS:
            warnings.append(
                ValidationIssue(
                    type="warning",
                    code=MISSING_STATUS,
                    message=f"Record {record.id} has no status",
                    field="status",
                    row=row,
                )
            )

    for transform_error in result.transform_errors:
        errors.append(
            ValidationIssue(
                type="error",
                code=TRANSFORM_ERROR,
                message=transform_error.error,
                field=transform_error.field,
                row=transform_error.row,
            )
        )

    return ValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        stats=ValidationStats(
            total_records=len(result.records),
            valid_records=valid_records,
            invalid_records=invalid_records,
            missing_required_fields=missing_required_fields,
        ),
    )
