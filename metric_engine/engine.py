"""
metric_engine/engine.py

Metrics engine: period filter, metric filters, aggregation, comparison and
breakdown over a snapshot of records.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Sequence

from app.domain.records import Record, StageEvent
from app.normalization.transforms import get_field_value
from metric_engine.aggregations import aggregate
from metric_engine.filters import apply_filters, filter_by_period
from metric_engine.formatting import format_value
from metric_engine.models import (
    MetricBreakdown,
    MetricComparison,
    MetricDefinition,
    MetricValue,
    Period,
    Trend,
)

logger = logging.getLogger(__name__)

OTHER_GROUP = "Other"


def group_key(value: Any) -> str:
    if value is None:
        return OTHER_GROUP
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def calculate_comparison(current: float | None, previous: float | None) -> MetricComparison:
    """
    Compare a current value with the previous period's value.

    A missing or zero previous value yields no delta; the trend is then
    ``up`` only when the current value is positive.
    """

    if current is None:
        return MetricComparison(previous_value=previous, delta=None, delta_percent=None, trend=Trend.NEUTRAL)
    if previous is None or previous == 0:
        return MetricComparison(
            previous_value=None,
            delta=None,
            delta_percent=None,
            trend=Trend.UP if current > 0 else Trend.NEUTRAL,
        )

    delta = current - previous
    if delta > 0:
        trend = Trend.UP
    elif delta < 0:
        trend = Trend.DOWN
    else:
        trend = Trend.NEUTRAL
    return MetricComparison(
        previous_value=previous,
        delta=delta,
        delta_percent=delta / previous * 100,
        trend=trend,
    )


class MetricsEngine:
    """
    Computes metric values over an immutable snapshot of records.
    """

    def __init__(self, records: Sequence[Record], stage_events: Sequence[StageEvent] | None = None) -> None:
        self._records = tuple(records)
        self._stage_events = tuple(stage_events or ())

    @property
    def records(self) -> tuple[Record, ...]:
        return self._records

    def compute(
        self,
        definition: MetricDefinition,
        period: Period,
        previous_period: Period | None = None,
    ) -> MetricValue:
        filtered = self._select(definition, period)
        value = aggregate(filtered, definition.aggregation, definition.formula)

        comparison: MetricComparison | None = None
        if definition.comparison and previous_period is not None:
            previous_value = aggregate(
                self._select(definition, previous_period),
                definition.aggregation,
                definition.formula,
            )
            comparison = calculate_comparison(value, previous_value)

        breakdown: list[MetricBreakdown] | None = None
        if definition.group_by:
            breakdown = self.calculate_breakdown(filtered, definition)

        logger.debug(
            "Computed metric id=%s period=%s records=%s value=%s",
            definition.id,
            period.label,
            len(filtered),
            value,
        )
        return MetricValue(
            metric_id=definition.id,
            value=value,
            formatted_value=format_value(value, definition.format),
            period=period,
            comparison=comparison,
            breakdown=breakdown,
        )

    def compute_many(
        self,
        definitions: Sequence[MetricDefinition],
        period: Period,
        previous_period: Period | None = None,
    ) -> list[MetricValue]:
        return [self.compute(definition, period, previous_period) for definition in definitions]

    def calculate_breakdown(
        self,
        records: Sequence[Record],
        definition: MetricDefinition,
    ) -> list[MetricBreakdown]:
        """
        Partition *records* by the first group-by field and aggregate each group.

        Groups are ordered by value descending; equal values keep the order in
        which their groups were first seen.
        """

        group_field = definition.group_by[0]
        groups: dict[str, list[Record]] = {}
        for record in records:
            groups.setdefault(group_key(get_field_value(record, group_field)), []).append(record)

        total = aggregate(records, definition.aggregation, definition.formula) or 0
        breakdown: list[MetricBreakdown] = []
        for key, group_records in groups.items():
            value = aggregate(group_records, definition.aggregation, definition.formula) or 0
            breakdown.append(
                MetricBreakdown(
                    group_key=key,
                    group_label=key,
                    value=value,
                    formatted_value=format_value(value, definition.format),
                    percentage=value / total * 100 if total > 0 else 0,
                )
            )

        breakdown.sort(key=lambda item: item.value, reverse=True)
        return breakdown

    def _select(self, definition: MetricDefinition, period: Period) -> list[Record]:
        return apply_filters(filter_by_period(self._records, period), definition.filters)


def create_metrics_engine(
    records: Sequence[Record],
    stage_events: Sequence[StageEvent] | None = None,
) -> MetricsEngine:
    return MetricsEngine(records, stage_events)
