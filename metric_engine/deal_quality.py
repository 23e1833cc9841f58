"""
metric_engine/deal_quality.py

Deal size analysis: value histogram, per-stage spread and high-value deals.

Only positive numeric values count as deal sizes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from statistics import median
from typing import Iterable, Sequence

from app.domain.records import Record
from metric_engine.aggregations import is_numeric

BUCKET_COUNT = 10
HIGH_VALUE_FLOOR = 50_000.0
HIGH_VALUE_TOP_SHARE = 0.1


@dataclass(frozen=True)
class DealSizeBucket:
    range: str
    lower: float
    upper: float
    count: int
    percentage: float


@dataclass(frozen=True)
class StageDealSize:
    stage: str
    min: float
    max: float
    median: float
    average: float
    q1: float
    q3: float
    count: int


@dataclass(frozen=True)
class HighValueDeal:
    id: str
    owner_id: str
    stage: str
    value: float


def deal_size(record: Record) -> float | None:
    if is_numeric(record.value) and record.value > 0:
        return float(record.value)
    return None


def _deal_sizes(records: Iterable[Record]) -> list[float]:
    return [size for size in (deal_size(record) for record in records) if size is not None]


def percentile(sorted_values: Sequence[float], percent: float) -> float:
    """
    Lower nearest-rank percentile of an already sorted sample; 0 when empty.
    """

    if not sorted_values:
        return 0.0
    return sorted_values[math.floor((len(sorted_values) - 1) * percent / 100)]


def format_amount(value: float) -> str:
    if value >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"${value / 1_000:.0f}k"
    return f"${value:.0f}"


def compute_deal_size_distribution(records: Iterable[Record]) -> list[DealSizeBucket]:
    """
    Split the value range into ``BUCKET_COUNT`` equal-width buckets.

    Buckets are half-open except the last, which includes the maximum.
    """

    values = sorted(_deal_sizes(records))
    if not values:
        return []

    low, high = values[0], values[-1]
    width = (high - low) / BUCKET_COUNT
    buckets: list[DealSizeBucket] = []
    for index in range(BUCKET_COUNT):
        last = index == BUCKET_COUNT - 1
        lower = low + index * width
        upper = high if last else low + (index + 1) * width
        if last:
            count = sum(1 for value in values if lower <= value <= upper)
        else:
            count = sum(1 for value in values if lower <= value < upper)
        buckets.append(
            DealSizeBucket(
                range=f"{format_amount(lower)} - {format_amount(upper)}",
                lower=lower,
                upper=upper,
                count=count,
                percentage=count / len(values) * 100,
            )
        )
    return buckets


def compute_deal_size_by_stage(records: Iterable[Record]) -> list[StageDealSize]:
    """
    Box-plot statistics of deal size per status, highest average first.
    """

    sizes_by_stage: dict[str, list[float]] = {}
    for record in records:
        size = deal_size(record)
        if size is not None and record.status:
            sizes_by_stage.setdefault(record.status, []).append(size)

    stats: list[StageDealSize] = []
    for stage, sizes in sizes_by_stage.items():
        ordered = sorted(sizes)
        stats.append(
            StageDealSize(
                stage=stage,
                min=ordered[0],
                max=ordered[-1],
                median=median(ordered),
                average=sum(ordered) / len(ordered),
                q1=percentile(ordered, 25),
                q3=percentile(ordered, 75),
                count=len(ordered),
            )
        )
    stats.sort(key=lambda item: item.average, reverse=True)
    return stats


def high_value_threshold(records: Iterable[Record]) -> float | None:
    """
    Default cut-off: the top-decile value or ``HIGH_VALUE_FLOOR``, whichever
    is higher. ``None`` when no record has a deal size.
    """

    values = sorted(_deal_sizes(records), reverse=True)
    if not values:
        return None
    return max(values[math.floor(len(values) * HIGH_VALUE_TOP_SHARE)], HIGH_VALUE_FLOOR)


def identify_high_value_deals(
    records: Sequence[Record],
    threshold: float | None = None,
) -> list[HighValueDeal]:
    """
    Records whose value reaches *threshold*, largest first.

    Without a positive *threshold* the default from ``high_value_threshold``
    applies.
    """

    cutoff = threshold if threshold else high_value_threshold(records)
    if cutoff is None:
        return []

    deals = [
        HighValueDeal(id=record.id, owner_id=record.owner_id, stage=record.status, value=float(record.value))
        for record in records
        if is_numeric(record.value) and record.value >= cutoff
    ]
    deals.sort(key=lambda item: item.value, reverse=True)
    return deals
