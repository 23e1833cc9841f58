"""
metric_engine/owner_performance.py

Per-owner deal performance: volume, wins, conversion, value and cycle time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from app.domain.records import Record
from metric_engine.aggregations import cycle_time_days, is_numeric


def is_closed_won(status: str) -> bool:
    lowered = status.lower()
    return "closed" in lowered and "won" in lowered


@dataclass(frozen=True)
class OwnerPerformance:
    owner_id: str
    total_records: int
    won_count: int
    conversion_rate: float
    total_value: float
    average_value: float
    average_cycle_time_days: int | None


@dataclass
class _OwnerTally:
    total_records: int = 0
    won_count: int = 0
    total_value: float = 0.0
    cycle_days: list[int] = field(default_factory=list)


def compute_owner_performance(
    records: Iterable[Record],
    won_matcher: Callable[[str], bool] | None = None,
) -> list[OwnerPerformance]:
    """
    Summarise records per owner, most wins first.

    Cycle times are counted for won records only, rounded to whole days, and
    only when positive.
    """

    matcher = won_matcher or is_closed_won
    tallies: dict[str, _OwnerTally] = {}

    for record in records:
        tally = tallies.setdefault(record.owner_id, _OwnerTally())
        tally.total_records += 1
        if is_numeric(record.value):
            tally.total_value += float(record.value)

        if not matcher(record.status):
            continue
        tally.won_count += 1
        days = cycle_time_days(record)
        if days is not None and round(days) > 0:
            tally.cycle_days.append(round(days))

    results = [
        OwnerPerformance(
            owner_id=owner_id,
            total_records=tally.total_records,
            won_count=tally.won_count,
            conversion_rate=tally.won_count / tally.total_records * 100,
            total_value=tally.total_value,
            average_value=tally.total_value / tally.total_records,
            average_cycle_time_days=(
                round(sum(tally.cycle_days) / len(tally.cycle_days)) if tally.cycle_days else None
            ),
        )
        for owner_id, tally in tallies.items()
    ]
    results.sort(key=lambda item: item.won_count, reverse=True)
    return results
