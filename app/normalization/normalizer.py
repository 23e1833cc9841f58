"""
app/normalization/normalizer.py

Turn raw adapter rows into generic records, actors and transform errors.

Malformed values never abort a run: field failures are collected per field
and a row that cannot be read at all is skipped with a single ``unknown``
error.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Sequence

from app.domain.records import (
    UNASSIGNED_OWNER,
    UNKNOWN_STATUS,
    Actor,
    FieldMapping,
    NormaliseResult,
    PreviewResult,
    Record,
    RecordMetadata,
    TransformError,
)
from app.normalization.schema_detection import calculate_field_stats
from app.normalization.transforms import (
    apply_transform,
    get_field_value,
    is_blank,
    parse_date,
    parse_number,
)

if TYPE_CHECKING:
    from app.adapters.base import SourceAdapter

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_LIMIT = 10
ROW_LEVEL_FIELD = "unknown"

_NON_ROW_TYPES = (str, bytes, int, float, bool, list, tuple)
_DATE_TARGETS = {"createdAt": "created_at", "updatedAt": "updated_at", "closedAt": "closed_at"}


def _ensure_row(row: Any, row_index: int) -> None:
    if row is None or isinstance(row, _NON_ROW_TYPES):
        raise TypeError(f"Row {row_index} is not an object: {type(row).__name__}")


def _assign_field(
    fields: dict[str, Any],
    custom_fields: dict[str, Any],
    target: str,
    value: Any,
) -> None:
    """
    Write one transformed value onto the record being built.

    Unparseable creation and update dates keep their ingestion-time
    default. Raises ``ValueError`` for a non-empty close date that cannot be
    parsed.
    """

    if target == "id":
        if not is_blank(value):
            fields["id"] = str(value)
            fields["external_id"] = str(value)
    elif target == "ownerId":
        if not is_blank(value):
            fields["owner_id"] = str(value)
    elif target == "status":
        if not is_blank(value):
            fields["status"] = str(value)
    elif target == "value":
        fields["value"] = parse_number(value)
    elif target in _DATE_TARGETS:
        if is_blank(value):
            return
        parsed = parse_date(value)
        if parsed is None:
            if target != "closedAt":
                return
            raise ValueError(f"Invalid date for {target}: {value!r}")
        fields[_DATE_TARGETS[target]] = parsed
    else:
        custom_fields[target] = value


def build_record(
    row: Any,
    mappings: Sequence[FieldMapping],
    row_index: int,
    errors: list[TransformError],
    *,
    source: str,
    source_type: str,
    now: datetime,
) -> Record:
    """
    Build one record from a raw row.

    Field-level failures are appended to *errors* and leave the field at its
    default. Raises ``TypeError`` when the row is not an object at all.
    """

    _ensure_row(row, row_index)

    fields: dict[str, Any] = {"id": str(uuid.uuid4())}
    custom_fields: dict[str, Any] = {}

    for mapping in mappings:
        source_value = get_field_value(row, mapping.source_field)
        try:
            transformed = apply_transform(source_value, mapping.transform)
            _assign_field(fields, custom_fields, mapping.target_field, transformed)
        except (TypeError, ValueError) as exc:
            errors.append(
                TransformError(
                    row=row_index,
                    field=mapping.source_field,
                    source_value=source_value,
                    error=str(exc),
                )
            )

    return Record(
        id=fields["id"],
        external_id=fields.get("external_id"),
        owner_id=fields.get("owner_id", UNASSIGNED_OWNER),
        status=fields.get("status", UNKNOWN_STATUS),
        value=fields.get("value"),
        created_at=fields.get("created_at", now),
        updated_at=fields.get("updated_at", now),
        closed_at=fields.get("closed_at"),
        metadata=RecordMetadata(
            source=source,
            source_type=source_type,
            custom_fields=custom_fields,
        ),
    )


def _normalise_rows(
    rows: Sequence[Any],
    mappings: Sequence[FieldMapping],
    *,
    source: str,
    source_type: str,
    now: datetime,
) -> tuple[list[Record], list[Actor], list[TransformError]]:
    records: list[Record] = []
    actors: dict[str, Actor] = {}
    errors: list[TransformError] = []

    for row_index, row in enumerate(rows):
        try:
            record = build_record(
                row,
                mappings,
                row_index,
                errors,
                source=source,
                source_type=source_type,
                now=now,
            )
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            errors.append(
                TransformError(
                    row=row_index,
                    field=ROW_LEVEL_FIELD,
                    source_value=row,
                    error=str(exc),
                )
            )
            continue

        records.append(record)
        if record.owner_id not in actors:
            actors[record.owner_id] = Actor(
                id=record.owner_id,
                name=record.owner_id,
                created_at=now,
            )

    return records, list(actors.values()), errors


def normalise(
    adapter: "SourceAdapter",
    raw: Any,
    mappings: Sequence[FieldMapping],
    *,
    source: str | None = None,
    now: datetime | None = None,
) -> NormaliseResult:
    """
    Normalize every row of *raw* using *mappings*.

    Raises ``TypeError`` if the adapter cannot iterate *raw* at all.
    """

    run_at = now or datetime.now(timezone.utc)
    rows = list(adapter.extract_rows(raw))
    records, actors, errors = _normalise_rows(
        rows,
        mappings,
        source=source or adapter.source_type,
        source_type=adapter.source_type,
        now=run_at,
    )

    mapped_sources = {mapping.source_field for mapping in mappings}
    unmapped_fields = [
        name for name in adapter.extract_field_names(raw) if name not in mapped_sources
    ]

    logger.debug(
        "Normalised %s rows from %s: records=%s actors=%s errors=%s unmapped=%s",
        len(rows),
        adapter.source_type,
        len(records),
        len(actors),
        len(errors),
        len(unmapped_fields),
    )
    return NormaliseResult(
        records=records,
        stage_events=[],
        actors=actors,
        unmapped_fields=unmapped_fields,
        transform_errors=errors,
    )


def preview(
    adapter: "SourceAdapter",
    raw: Any,
    mappings: Sequence[FieldMapping],
    *,
    limit: int = DEFAULT_PREVIEW_LIMIT,
    now: datetime | None = None,
) -> PreviewResult:
    """
    Normalize only the first *limit* rows, with field stats over the sample.
    """

    run_at = now or datetime.now(timezone.utc)
    rows = list(adapter.extract_rows(raw))
    sample = rows[: max(limit, 0)]
    records, _, errors = _normalise_rows(
        sample,
        mappings,
        source=adapter.source_type,
        source_type=adapter.source_type,
        now=run_at,
    )
    field_stats = calculate_field_stats(sample, adapter.extract_field_names(raw))
    return PreviewResult(
        records=records,
        sample_size=len(sample),
        total_estimated=len(rows),
        field_stats=field_stats,
        transform_errors=errors,
    )
