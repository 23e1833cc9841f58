"""
metric_engine/filters.py

Period and field filters applied before aggregation, and dashboard record
filters.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Sequence

from app.domain.records import Record
from app.normalization.transforms import ensure_utc, get_field_value
from metric_engine.aggregations import is_numeric
from metric_engine.models import FilterOperator, MetricFilter, Period

_ORDERING_OPERATORS = {
    FilterOperator.GT: lambda left, right: left > right,
    FilterOperator.GTE: lambda left, right: left >= right,
    FilterOperator.LT: lambda left, right: left < right,
    FilterOperator.LTE: lambda left, right: left <= right,
}


def filter_by_period(records: Iterable[Record], period: Period) -> list[Record]:
    """
    Keep records whose ``created_at`` falls inside the inclusive period.
    """

    return [record for record in records if period.contains(record.created_at)]


def matches_filter(value: Any, metric_filter: MetricFilter) -> bool:
    """
    Evaluate one filter against a record's field value.

    Ordering operators are numeric only; anything else evaluates false.
    """

    operator = metric_filter.operator
    expected = metric_filter.value

    if operator == FilterOperator.EQ:
        return value == expected
    if operator == FilterOperator.NEQ:
        return value != expected
    if operator in _ORDERING_OPERATORS:
        if not is_numeric(value) or not is_numeric(expected):
            return False
        return _ORDERING_OPERATORS[operator](value, expected)
    if operator == FilterOperator.IN:
        return isinstance(expected, (list, tuple, set, frozenset)) and value in expected
    if operator == FilterOperator.CONTAINS:
        return isinstance(value, str) and str(expected).lower() in value.lower()
    raise ValueError(f"Unsupported filter operator: {operator!r}")


def apply_filters(records: Sequence[Record], filters: Sequence[MetricFilter]) -> list[Record]:
    """
    Keep records matching every filter.
    """

    if not filters:
        return list(records)
    return [
        record
        for record in records
        if all(matches_filter(get_field_value(record, item.field), item) for item in filters)
    ]


# ---------------------------------------------------------------------------
# Dashboard record filters
# ---------------------------------------------------------------------------

RECORD_DATE_FIELDS = ("created_at", "updated_at", "closed_at")


@dataclass(frozen=True)
class DateRange:
    field: str = "created_at"
    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.field not in RECORD_DATE_FIELDS:
            raise ValueError(f"Date range field must be one of {RECORD_DATE_FIELDS}, got {self.field!r}")
        if self.start is not None:
            object.__setattr__(self, "start", ensure_utc(self.start))
        if self.end is not None:
            object.__setattr__(self, "end", ensure_utc(self.end))


@dataclass(frozen=True)
class RecordFilter:
    """
    Dashboard selection; an unset or empty criterion matches every record.
    """

    date_range: DateRange | None = None
    owners: tuple[str, ...] = ()
    stages: tuple[str, ...] = ()
    min_value: float | None = None
    max_value: float | None = None


@dataclass(frozen=True)
class FilterOptions:
    owners: list[str]
    stages: list[str]
    min_value: float
    max_value: float


def _record_value(record: Record) -> float:
    return float(record.value) if is_numeric(record.value) else 0.0


def _in_date_range(record: Record, date_range: DateRange) -> bool:
    moment: datetime | None = getattr(record, date_range.field)
    if moment is None:
        return False
    if date_range.start is not None and moment < date_range.start:
        return False
    if date_range.end is not None and moment > date_range.end:
        return False
    return True


def matches_record_filter(record: Record, record_filter: RecordFilter) -> bool:
    """
    Records without the filtered date never match a date range; a missing
    value counts as ``0`` against value bounds.
    """

    if record_filter.date_range is not None and not _in_date_range(record, record_filter.date_range):
        return False
    if record_filter.owners and record.owner_id not in record_filter.owners:
        return False
    if record_filter.stages and record.status not in record_filter.stages:
        return False
    value = _record_value(record)
    if record_filter.min_value is not None and value < record_filter.min_value:
        return False
    if record_filter.max_value is not None and value > record_filter.max_value:
        return False
    return True


def apply_record_filters(records: Iterable[Record], record_filter: RecordFilter | None) -> list[Record]:
    if record_filter is None:
        return list(records)
    return [record for record in records if matches_record_filter(record, record_filter)]


def get_filter_options(records: Iterable[Record]) -> FilterOptions:
    """
    Sorted distinct owners and statuses, and the range of positive values.
    """

    owners: set[str] = set()
    stages: set[str] = set()
    values: list[float] = []
    for record in records:
        if record.owner_id:
            owners.add(record.owner_id)
        if record.status:
            stages.add(record.status)
        value = _record_value(record)
        if value > 0:
            values.append(value)

    return FilterOptions(
        owners=sorted(owners),
        stages=sorted(stages),
        min_value=min(values) if values else 0.0,
        max_value=max(values) if values else 0.0,
    )
