"""
metric_engine/stage_duration.py

Time spent in the pipeline per stage, and time to close for won deals.

All durations are whole days. Records with a non-positive duration are left
out of every statistic.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from app.domain.records import Record
from metric_engine.aggregations import SECONDS_PER_DAY, cycle_time_days
from metric_engine.owner_performance import is_closed_won

# Typical pipeline order; unknown stages sort after these, in first-seen order.
STAGE_ORDER: dict[str, int] = {
    "prospecting": 1,
    "qualification": 2,
    "proposal": 3,
    "negotiation": 4,
    "closed_won": 5,
    "closed won": 5,
}
UNKNOWN_STAGE_ORDER = 99

QUICK_STAGE_DAYS = 7
SLOW_STAGE_DAYS = 30


@dataclass(frozen=True)
class DurationSummary:
    average_days: int
    median_days: int
    min_days: int
    max_days: int
    sample_size: int


@dataclass(frozen=True)
class StageDuration:
    stage: str
    average_days: int
    median_days: int
    min_days: int
    max_days: int
    sample_size: int
    prediction: str


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def median_days(sorted_days: Sequence[int]) -> int:
    """
    Median of already sorted day counts, rounded half-up for even samples.
    """

    middle = len(sorted_days) // 2
    if len(sorted_days) % 2 == 0:
        return round_half_up((sorted_days[middle - 1] + sorted_days[middle]) / 2)
    return sorted_days[middle]


def summarise_days(days: Sequence[int]) -> DurationSummary | None:
    if not days:
        return None
    ordered = sorted(days)
    return DurationSummary(
        average_days=round_half_up(sum(ordered) / len(ordered)),
        median_days=median_days(ordered),
        min_days=ordered[0],
        max_days=ordered[-1],
        sample_size=len(ordered),
    )


def stage_prediction(stage: str, average_days: int) -> str:
    if average_days < QUICK_STAGE_DAYS:
        return f"Deals typically move through {stage} quickly ({average_days} days avg)"
    if average_days < SLOW_STAGE_DAYS:
        return f"Deals spend about {average_days} days in {stage} on average"
    return f"Deals tend to stay in {stage} for {average_days} days - consider reviewing"


def _days_in_pipeline(record: Record) -> int | None:
    if record.created_at is None or record.updated_at is None:
        return None
    days = round_half_up((record.updated_at - record.created_at).total_seconds() / SECONDS_PER_DAY)
    return days if days > 0 else None


def compute_stage_durations(records: Iterable[Record]) -> list[StageDuration]:
    """
    Days from creation to last update, grouped by current status.

    Assumes deals progress through stages sequentially, so the age of a deal
    at its last update approximates the time it took to reach its stage.
    Stages are sorted by the typical pipeline order in ``STAGE_ORDER``.
    """

    days_by_stage: dict[str, list[int]] = {}
    for record in records:
        if not record.status:
            continue
        days = _days_in_pipeline(record)
        if days is not None:
            days_by_stage.setdefault(record.status, []).append(days)

    durations: list[StageDuration] = []
    for stage, days in days_by_stage.items():
        summary = summarise_days(days)
        if summary is None:
            continue
        durations.append(
            StageDuration(
                stage=stage,
                average_days=summary.average_days,
                median_days=summary.median_days,
                min_days=summary.min_days,
                max_days=summary.max_days,
                sample_size=summary.sample_size,
                prediction=stage_prediction(stage, summary.average_days),
            )
        )

    durations.sort(key=lambda item: STAGE_ORDER.get(item.stage.lower(), UNKNOWN_STAGE_ORDER))
    return durations


def compute_time_to_close(
    records: Iterable[Record],
    won_matcher: Callable[[str], bool] | None = None,
) -> DurationSummary | None:
    """
    Creation-to-close statistics over won records; ``None`` without any.
    """

    matcher = won_matcher or is_closed_won
    days: list[int] = []
    for record in records:
        if not matcher(record.status):
            continue
        cycle = cycle_time_days(record)
        if cycle is not None and round_half_up(cycle) > 0:
            days.append(round_half_up(cycle))
    return summarise_days(days)
