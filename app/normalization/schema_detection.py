"""
app/normalization/schema_detection.py

Field type inference and target-field mapping suggestions.

Adapters supply rows and field names; everything here is shared so that
CSV, spreadsheet and CRM sources detect schemas identically.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Sequence

from app.domain.records import (
    REQUIRED_TARGET_FIELDS,
    DetectedField,
    DetectedSchema,
    FieldMapping,
    FieldStats,
    FieldType,
    SuggestedMapping,
)
from app.normalization.transforms import get_field_value, is_blank, parse_date

if TYPE_CHECKING:
    from app.adapters.base import SourceAdapter

DEFAULT_SAMPLE_SIZE = 100
MAX_SAMPLE_VALUES = 5
SUGGESTION_CONFIDENCE = 0.8

_BOOLEAN_STRINGS = {"true", "false"}


@dataclass(frozen=True)
class MappingPattern:
    regex: re.Pattern[str]
    target: str
    reason: str


# Ordered: the first pattern matching a field name wins.
MAPPING_PATTERNS: tuple[MappingPattern, ...] = (
    MappingPattern(re.compile(r"^(id|_id|key|uuid)$", re.IGNORECASE), "id", "Looks like an identifier"),
    MappingPattern(
        re.compile(r"(owner|assigned|rep|user|employee)", re.IGNORECASE),
        "ownerId",
        "Looks like an owner field",
    ),
    MappingPattern(
        re.compile(r"(amount|value|price|revenue|total)", re.IGNORECASE),
        "value",
        "Looks like a value field",
    ),
    MappingPattern(re.compile(r"(status|stage|state|phase)", re.IGNORECASE), "status", "Looks like a status field"),
    MappingPattern(
        re.compile(r"(created|date_added|opened)", re.IGNORECASE),
        "createdAt",
        "Looks like a creation date",
    ),
    MappingPattern(
        re.compile(r"(updated|modified|changed)", re.IGNORECASE),
        "updatedAt",
        "Looks like an update date",
    ),
    MappingPattern(
        re.compile(r"(closed|completed|finished|ended)", re.IGNORECASE),
        "closedAt",
        "Looks like a close date",
    ),
)


def _is_numeric_string(value: str) -> bool:
    stripped = value.strip()
    if not stripped:
        return False
    try:
        return math.isfinite(float(stripped))
    except ValueError:
        return False


def classify_value(value: Any) -> FieldType:
    """
    Classify one non-empty sample value.

    Numeric strings are numbers before they are dates, so ``"1000"`` is never
    mistaken for an epoch timestamp.
    """

    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, (int, float)):
        return FieldType.NUMBER
    if isinstance(value, date):
        return FieldType.DATE
    if isinstance(value, (list, tuple)):
        return FieldType.ARRAY
    if isinstance(value, Mapping):
        return FieldType.OBJECT
    if isinstance(value, str):
        if value.strip().lower() in _BOOLEAN_STRINGS:
            return FieldType.BOOLEAN
        if _is_numeric_string(value):
            return FieldType.NUMBER
        if parse_date(value) is not None:
            return FieldType.DATE
    return FieldType.STRING


def infer_type(values: Iterable[Any]) -> FieldType:
    """
    Infer a single field type from non-empty sample values.

    An empty sample is a string field; disagreeing samples are ``mixed``.
    """

    types = {classify_value(value) for value in values}
    if not types:
        return FieldType.STRING
    if len(types) == 1:
        return types.pop()
    return FieldType.MIXED


def collect_field_names(rows: Sequence[Any], *, sample_size: int = DEFAULT_SAMPLE_SIZE) -> list[str]:
    """
    Union of keys over the first *sample_size* rows, in first-seen order.
    """

    names: dict[str, None] = {}
    for row in rows[:sample_size]:
        if isinstance(row, Mapping):
            for key in row.keys():
                names.setdefault(str(key), None)
    return list(names)


def detect_fields(
    rows: Sequence[Any],
    field_names: Sequence[str],
    *,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> list[DetectedField]:
    """
    Detect type, nullability and sample values for each field.
    """

    sample = rows[:sample_size]
    detected: list[DetectedField] = []
    for name in field_names:
        values: list[Any] = []
        nullable = False
        for row in sample:
            value = get_field_value(row, name)
            if is_blank(value):
                nullable = True
            else:
                values.append(value)

        detected.append(
            DetectedField(
                name=name,
                type=infer_type(values),
                nullable=nullable,
                sample_values=values[:MAX_SAMPLE_VALUES],
            )
        )
    return detected


def calculate_field_stats(
    rows: Sequence[Any],
    field_names: Sequence[str],
    *,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> list[FieldStats]:
    sample = rows[:sample_size]
    stats: list[FieldStats] = []
    for name in field_names:
        values: list[Any] = []
        unique_values: set[str] = set()
        non_null_count = 0
        for row in sample:
            value = get_field_value(row, name)
            if is_blank(value):
                continue
            non_null_count += 1
            unique_values.add(str(value))
            if len(values) < MAX_SAMPLE_VALUES:
                values.append(value)

        stats.append(
            FieldStats(
                field=name,
                type=infer_type(values),
                non_null_count=non_null_count,
                unique_count=len(unique_values),
                sample_values=values,
            )
        )
    return stats


def suggest_mappings(fields: Sequence[DetectedField]) -> list[SuggestedMapping]:
    """
    Suggest a target field for every detected field whose name matches a pattern.
    """

    suggestions: list[SuggestedMapping] = []
    for detected in fields:
        for pattern in MAPPING_PATTERNS:
            if pattern.regex.search(detected.name):
                suggestions.append(
                    SuggestedMapping(
                        source_field=detected.name,
                        target_field=pattern.target,
                        confidence=SUGGESTION_CONFIDENCE,
                        reason=pattern.reason,
                    )
                )
                break
    return suggestions


def calculate_confidence(suggestions: Sequence[SuggestedMapping]) -> float:
    """
    Fraction of required target fields covered by at least one suggestion.
    """

    if not suggestions:
        return 0.0
    targets = {suggestion.target_field for suggestion in suggestions}
    covered = [field_name for field_name in REQUIRED_TARGET_FIELDS if field_name in targets]
    return len(covered) / len(REQUIRED_TARGET_FIELDS)


def detect_schema(adapter: "SourceAdapter", raw: Any) -> DetectedSchema:
    fields = adapter.detect_field_types(raw)
    suggestions = suggest_mappings(fields)
    return DetectedSchema(
        fields=fields,
        suggested_mappings=suggestions,
        confidence=calculate_confidence(suggestions),
    )


def suggested_field_mappings(schema: DetectedSchema) -> list[FieldMapping]:
    """
    Turn suggestions into mappings, keeping the first suggestion per target.
    """

    seen_targets: set[str] = set()
    mappings: list[FieldMapping] = []
    for suggestion in schema.suggested_mappings:
        if suggestion.target_field in seen_targets:
            continue
        seen_targets.add(suggestion.target_field)
        mappings.append(suggestion.to_field_mapping())
    return mappings
