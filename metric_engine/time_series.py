"""
metric_engine/time_series.py

Time-bucketed views of a dataset for charting.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from app.domain.records import Record
from metric_engine.engine import MetricsEngine
from metric_engine.models import MetricDefinition, MetricValue, PeriodType
from metric_engine.owner_performance import is_closed_won
from metric_engine.periods import recent_periods

DATE_FIELDS = ("created_at", "updated_at", "closed_at")


@dataclass(frozen=True)
class TimeSeriesPoint:
    date: str
    count: int


@dataclass(frozen=True)
class StageTimeSeries:
    stage: str
    points: list[TimeSeriesPoint]


@dataclass(frozen=True)
class WinRatePoint:
    month: str
    total: int
    won: int
    win_rate: float


def compute_stage_distribution(
    records: Iterable[Record],
    date_field: str = "created_at",
) -> list[StageTimeSeries]:
    """
    Count records per status per calendar day (``YYYY-MM-DD``).

    Every stage series covers the same sorted set of days, with zero counts
    where a stage had no records on a day. Stages appear in first-seen order.
    """

    if date_field not in DATE_FIELDS:
        raise ValueError(f"date_field must be one of {DATE_FIELDS}, got {date_field!r}")

    counts: dict[str, dict[str, int]] = {}
    days: set[str] = set()
    for record in records:
        moment: datetime | None = getattr(record, date_field)
        if moment is None or not record.status:
            continue
        day = moment.date().isoformat()
        days.add(day)
        stage_counts = counts.setdefault(record.status, {})
        stage_counts[day] = stage_counts.get(day, 0) + 1

    sorted_days = sorted(days)
    return [
        StageTimeSeries(
            stage=stage,
            points=[TimeSeriesPoint(date=day, count=stage_counts.get(day, 0)) for day in sorted_days],
        )
        for stage, stage_counts in counts.items()
    ]


def compute_deal_velocity(records: Iterable[Record]) -> list[StageTimeSeries]:
    """
    New records per status per creation day.
    """

    return compute_stage_distribution(records, "created_at")


def compute_win_rate_trend(
    records: Iterable[Record],
    won_matcher: Callable[[str], bool] | None = None,
) -> list[WinRatePoint]:
    """
    Share of won records per creation month (``YYYY-MM``), oldest first.
    """

    matcher = won_matcher or is_closed_won
    tallies: dict[str, list[int]] = {}
    for record in records:
        if record.created_at is None:
            continue
        tally = tallies.setdefault(record.created_at.strftime("%Y-%m"), [0, 0])
        tally[0] += 1
        if record.status and matcher(record.status):
            tally[1] += 1

    return [
        WinRatePoint(month=month, total=total, won=won, win_rate=won / total * 100)
        for month, (total, won) in sorted(tallies.items())
    ]


def compute_metric_series(
    engine: MetricsEngine,
    definition: MetricDefinition,
    period_type: PeriodType,
    periods: int,
    reference: datetime | None = None,
) -> list[MetricValue]:
    """
    Metric values for the *periods* most recent periods, oldest first.

    Each value is compared with the period before it.
    """

    series = recent_periods(period_type, periods, reference)
    values: list[MetricValue] = []
    for index, period in enumerate(series):
        previous = series[index - 1] if index > 0 else None
        values.append(engine.compute(definition, period, previous))
    return values
