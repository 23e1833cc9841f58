"""
funnel_engine/models.py

Funnel stage configuration and computed funnel results.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FunnelStage:
    name: str
    order: int
    color: str | None = None


@dataclass(frozen=True)
class FunnelStageMetrics:
    """
    Cumulative metrics for one stage.

    ``count`` includes every record whose current status is at or beyond
    this stage. Times are in days.
    """

    stage: str
    order: int
    count: int
    percentage: float
    conversion_to_next: float | None
    drop_off: float | None
    average_time_in_stage: float | None


@dataclass(frozen=True)
class FunnelMetrics:
    stages: list[FunnelStageMetrics]
    overall_conversion: float
    total_records: int
    average_cycle_time: float | None


@dataclass(frozen=True)
class StageTransition:
    from_stage: str
    to_stage: str
    count: int
    percentage: float
    average_duration: float | None
