"""
funnel_engine/engine.py

Funnel engine over snapshot status data.

Stage membership is cumulative: a record whose current status is stage N is
counted at every stage with order <= N. Only time-in-stage and transitions
need real stage history (stage events).
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from app.domain.records import Record, StageEvent
from funnel_engine.models import FunnelMetrics, FunnelStage, FunnelStageMetrics, StageTransition
from metric_engine.aggregations import cycle_time_days
from metric_engine.models import Period

logger = logging.getLogger(__name__)

MILLISECONDS_PER_DAY = 1000 * 60 * 60 * 24


def _mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def _duration_days(event: StageEvent) -> float | None:
    duration = event.duration_in_previous_stage
    if duration is None or duration <= 0:
        return None
    return duration / MILLISECONDS_PER_DAY


class FunnelEngine:
    """
    Computes stage counts, conversions and transitions.

    Stages are copied and sorted by order; the caller's list is untouched.
    """

    def __init__(
        self,
        records: Sequence[Record],
        stage_events: Sequence[StageEvent],
        stages: Sequence[FunnelStage],
    ) -> None:
        self._records = tuple(records)
        self._stage_events = tuple(stage_events)
        self._stages = tuple(sorted(stages, key=lambda stage: stage.order))
        self._orders = {stage.name: stage.order for stage in self._stages}

    @property
    def stages(self) -> tuple[FunnelStage, ...]:
        return self._stages

    def compute(self, period: Period | None = None) -> FunnelMetrics:
        records = (
            [record for record in self._records if period.contains(record.created_at)]
            if period is not None
            else list(self._records)
        )
        total_records = len(records)
        counts = self._cumulative_counts(records)

        stage_metrics: list[FunnelStageMetrics] = []
        for index, stage in enumerate(self._stages):
            count = counts[stage.name]
            has_next = index + 1 < len(self._stages)
            next_count = counts[self._stages[index + 1].name] if has_next else 0
            measurable = has_next and count > 0

            stage_metrics.append(
                FunnelStageMetrics(
                    stage=stage.name,
                    order=stage.order,
                    count=count,
                    percentage=count / total_records * 100 if total_records > 0 else 0,
                    conversion_to_next=next_count / count * 100 if measurable else None,
                    drop_off=(count - next_count) / count * 100 if measurable else None,
                    average_time_in_stage=self._average_time_in_stage(stage.name),
                )
            )

        first_count = counts[self._stages[0].name] if self._stages else 0
        last_count = counts[self._stages[-1].name] if self._stages else 0
        overall = last_count / first_count * 100 if first_count > 0 else 0

        logger.debug(
            "Computed funnel stages=%s records=%s overall_conversion=%.2f",
            len(self._stages),
            total_records,
            overall,
        )
        return FunnelMetrics(
            stages=stage_metrics,
            overall_conversion=overall,
            total_records=total_records,
            average_cycle_time=_mean(
                [days for days in (cycle_time_days(record) for record in records) if days is not None]
            ),
        )

    def get_transitions(self, period: Period | None = None) -> list[StageTransition]:
        """
        Count stage-to-stage moves, most frequent first.

        Initial creation events (no ``from_stage``) are excluded from counts
        and from the percentage base.
        """

        events = [
            event
            for event in self._stage_events
            if event.from_stage and (period is None or period.contains(event.timestamp))
        ]
        counts: dict[tuple[str, str], int] = {}
        durations: dict[tuple[str, str], list[float]] = {}
        for event in events:
            key = (event.from_stage, event.to_stage)
            counts[key] = counts.get(key, 0) + 1
            days = _duration_days(event)
            if days is not None:
                durations.setdefault(key, []).append(days)

        total = len(events)
        transitions = [
            StageTransition(
                from_stage=from_stage,
                to_stage=to_stage,
                count=count,
                percentage=count / total * 100 if total > 0 else 0,
                average_duration=_mean(durations.get((from_stage, to_stage), [])),
            )
            for (from_stage, to_stage), count in counts.items()
        ]
        transitions.sort(key=lambda item: item.count, reverse=True)
        return transitions

    def get_conversion_rate(self, from_stage: str, to_stage: str) -> float:
        """
        Share of records that reached *from_stage* and also reached *to_stage*.
        """

        from_count = sum(1 for record in self._records if self.has_reached_stage(record, from_stage))
        to_count = sum(1 for record in self._records if self.has_reached_stage(record, to_stage))
        return to_count / from_count * 100 if from_count > 0 else 0

    def has_reached_stage(self, record: Record, stage_name: str) -> bool:
        target = self._orders.get(stage_name)
        current = self._orders.get(record.status)
        if target is None or current is None:
            return False
        return current >= target

    def _cumulative_counts(self, records: Iterable[Record]) -> dict[str, int]:
        counts = {stage.name: 0 for stage in self._stages}
        for record in records:
            current = self._orders.get(record.status)
            if current is None:
                continue
            for stage in self._stages:
                if current >= stage.order:
                    counts[stage.name] += 1
        return counts

    def _average_time_in_stage(self, stage_name: str) -> float | None:
        durations = [
            days
            for days in (_duration_days(event) for event in self._stage_events if event.from_stage == stage_name)
            if days is not None
        ]
        return _mean(durations)


def create_funnel_engine(
    records: Sequence[Record],
    stage_events: Sequence[StageEvent],
    stages: Sequence[FunnelStage],
) -> FunnelEngine:
    return FunnelEngine(records, stage_events, stages)


def infer_stages_from_records(records: Iterable[Record]) -> list[FunnelStage]:
    """
    One stage per distinct status, ordered by first appearance.
    """

    names: dict[str, None] = {}
    for record in records:
        names.setdefault(record.status, None)
    return [FunnelStage(name=name, order=index) for index, name in enumerate(names)]
