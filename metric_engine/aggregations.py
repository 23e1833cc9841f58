"""
metric_engine/aggregations.py

Aggregation functions over filtered record sets.

Absence of computable data is ``None``, never an exception: an empty record
set aggregates to ``None`` for everything except ``count`` (which is ``0``).
"""

from __future__ import annotations

import logging
import math
from statistics import median as _median
from typing import Any, Sequence

from app.domain.records import Record
from app.normalization.transforms import get_field_value
from metric_engine.models import AggregationType, FormulaType, MetricFormula

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 60 * 60 * 24


def is_numeric(value: Any) -> bool:
    """
    True for finite ints and floats; booleans are not numbers here.
    """

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def field_value(record: Record, formula: MetricFormula) -> Any:
    """
    Value a record contributes to a formula; only ``field`` formulas read data.
    """

    if formula.type == FormulaType.FIELD and formula.field:
        return get_field_value(record, formula.field)
    return None


def numeric_values(records: Sequence[Record], formula: MetricFormula) -> list[float]:
    values: list[float] = []
    for record in records:
        value = field_value(record, formula)
        if is_numeric(value):
            values.append(float(value))
    return values


def cycle_time_days(record: Record) -> float | None:
    """
    Days from creation to close, or ``None`` when not positive or not closed.
    """

    if record.closed_at is None or record.created_at is None:
        return None
    seconds = (record.closed_at - record.created_at).total_seconds()
    if seconds <= 0:
        return None
    return seconds / SECONDS_PER_DAY


def aggregate(
    records: Sequence[Record],
    aggregation: AggregationType,
    formula: MetricFormula,
) -> float | None:
    """
    Aggregate *records* according to *aggregation*.

    Parameters
    ----------
    records:
        Records already filtered by period and metric filters.
    aggregation:
        Aggregation to apply.
    formula:
        Supplies the field each record contributes.

    Returns
    -------
    float | None
        ``None`` when nothing can be computed. ``sum`` over records with no
        numeric values is ``0``; ``average`` divides that sum by the record
        count.
    """

    if not records:
        return 0 if aggregation == AggregationType.COUNT else None

    if aggregation == AggregationType.COUNT:
        return len(records)
    if aggregation == AggregationType.SUM:
        return sum(numeric_values(records, formula))
    if aggregation == AggregationType.AVERAGE:
        return sum(numeric_values(records, formula)) / len(records)
    if aggregation == AggregationType.MIN:
        values = numeric_values(records, formula)
        return min(values) if values else None
    if aggregation == AggregationType.MAX:
        values = numeric_values(records, formula)
        return max(values) if values else None
    if aggregation == AggregationType.MEDIAN:
        values = numeric_values(records, formula)
        return _median(values) if values else None
    if aggregation == AggregationType.CONVERSION_RATE:
        return conversion_rate(records, formula)
    if aggregation == AggregationType.CYCLE_TIME:
        durations = [days for days in (cycle_time_days(record) for record in records) if days is not None]
        return sum(durations) / len(durations) if durations else None
    raise ValueError(f"Unsupported aggregation: {aggregation!r}")


def conversion_rate(records: Sequence[Record], formula: MetricFormula) -> float | None:
    """
    Percentage of records with a close date.

    A ratio formula with both numerator and denominator has no defined
    semantics yet and yields ``None``.
    """

    if not records:
        return None
    if formula.is_ratio:
        logger.debug("conversion_rate ratio formulas are not computed; returning None")
        return None
    converted = sum(1 for record in records if record.closed_at is not None)
    return converted / len(records) * 100
