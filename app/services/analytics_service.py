"""
app/services/analytics_service.py

Runs metrics, funnel, deal and owner analytics over stored datasets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from statistics import median
from typing import Sequence

from app.domain.records import Record, StageEvent
from app.logging_utils import log_event
from app.services.dataset_store import get_dataset_store
from db.repositories.dataset_repository import DatasetStore
from db.repositories.errors import DatasetNotFoundError
from db.repositories.types import StoredDataset
from funnel_engine.engine import FunnelEngine, infer_stages_from_records
from funnel_engine.models import FunnelMetrics, FunnelStage, StageTransition
from metric_engine.aggregations import cycle_time_days
from metric_engine.deal_quality import (
    DealSizeBucket,
    HighValueDeal,
    StageDealSize,
    compute_deal_size_by_stage,
    compute_deal_size_distribution,
    identify_high_value_deals,
)
from metric_engine.engine import MetricsEngine
from metric_engine.filters import FilterOptions, RecordFilter, apply_record_filters, get_filter_options
from metric_engine.insights import Insight, generate_insights, get_top_insights
from metric_engine.models import MetricDefinition, MetricValue, Period, PeriodType
from metric_engine.owner_performance import OwnerPerformance, compute_owner_performance
from metric_engine.periods import create_custom_period, create_period, get_previous_period
from metric_engine.stage_duration import (
    DurationSummary,
    StageDuration,
    compute_stage_durations,
    compute_time_to_close,
)
from metric_engine.time_series import (
    StageTimeSeries,
    WinRatePoint,
    compute_deal_velocity,
    compute_metric_series,
    compute_stage_distribution,
    compute_win_rate_trend,
)

logger = logging.getLogger(__name__)


def resolve_period(
    period_type: PeriodType,
    *,
    reference: datetime | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> Period:
    """
    Build the requested period; custom periods need both *start* and *end*.
    """

    if period_type == PeriodType.CUSTOM:
        if start is None or end is None:
            raise ValueError("Custom periods require both start and end.")
        return create_custom_period(start, end)
    return create_period(period_type, reference)


@dataclass(frozen=True)
class DashboardSummary:
    dataset_id: str
    total_records: int
    funnel: FunnelMetrics
    stage_durations: list[StageDuration]
    time_to_close: DurationSummary | None
    deal_size_distribution: list[DealSizeBucket]
    deal_size_by_stage: list[StageDealSize]
    high_value_deals: list[HighValueDeal]
    deal_velocity: list[StageTimeSeries]
    win_rate_trend: list[WinRatePoint]
    owner_performance: list[OwnerPerformance]
    insights: list[Insight]


def _insights_for(records: Sequence[Record], stage_events: Sequence[StageEvent]) -> list[Insight]:
    funnel = FunnelEngine(records, stage_events, infer_stages_from_records(records)).compute()
    cycle_times = [days for days in (cycle_time_days(record) for record in records) if days is not None]
    return generate_insights(
        funnel_stages=funnel.stages,
        overall_conversion=funnel.overall_conversion if funnel.stages else None,
        total_pipeline=funnel.total_records,
        average_cycle_time=funnel.average_cycle_time,
        median_cycle_time=median(cycle_times) if cycle_times else None,
    )


class AnalyticsService:
    """
    Loads datasets from the store and runs the computation engines on them.

    Methods taking a ``RecordFilter`` narrow the dataset first; stage events
    follow the records that survive the filter.
    """

    def __init__(self, *, store: DatasetStore) -> None:
        self._store = store

    def get_dataset(self, dataset_id: str) -> StoredDataset:
        dataset = self._store.get(dataset_id)
        if dataset is None:
            raise DatasetNotFoundError(f"Dataset '{dataset_id}' was not found.")
        return dataset

    def _records(self, dataset_id: str, filters: RecordFilter | None = None) -> list[Record]:
        return apply_record_filters(self.get_dataset(dataset_id).records, filters)

    def _records_and_events(
        self,
        dataset_id: str,
        filters: RecordFilter | None = None,
    ) -> tuple[list[Record], list[StageEvent]]:
        dataset = self.get_dataset(dataset_id)
        records = apply_record_filters(dataset.records, filters)
        if filters is None:
            return records, list(dataset.stage_events)
        kept = {record.id for record in records}
        return records, [event for event in dataset.stage_events if event.record_id in kept]

    def compute_metrics(
        self,
        dataset_id: str,
        definitions: Sequence[MetricDefinition],
        period: Period,
        *,
        compare: bool = True,
    ) -> list[MetricValue]:
        """
        Compute every definition for *period*.

        With *compare*, each value is compared against the preceding period
        unless the period is all-time, which has none.
        """

        dataset = self.get_dataset(dataset_id)
        previous = get_previous_period(period) if compare and period.type != PeriodType.ALL else None
        engine = MetricsEngine(dataset.records, dataset.stage_events)
        values = engine.compute_many(definitions, period, previous)
        logger.info(
            "Computed metrics dataset_id=%s metrics=%s period=%s",
            dataset_id,
            len(values),
            period.label,
        )
        return values

    def metric_series(
        self,
        dataset_id: str,
        definition: MetricDefinition,
        period_type: PeriodType,
        periods: int,
        reference: datetime | None = None,
    ) -> list[MetricValue]:
        """
        One metric over the *periods* most recent periods, oldest first.
        """

        dataset = self.get_dataset(dataset_id)
        engine = MetricsEngine(dataset.records, dataset.stage_events)
        return compute_metric_series(engine, definition, period_type, periods, reference)

    def compute_funnel(
        self,
        dataset_id: str,
        stages: Sequence[FunnelStage] | None = None,
        period: Period | None = None,
    ) -> FunnelMetrics:
        dataset = self.get_dataset(dataset_id)
        funnel_stages = list(stages) if stages else infer_stages_from_records(dataset.records)
        engine = FunnelEngine(dataset.records, dataset.stage_events, funnel_stages)
        return engine.compute(period)

    def transitions(self, dataset_id: str, period: Period | None = None) -> list[StageTransition]:
        dataset = self.get_dataset(dataset_id)
        engine = FunnelEngine(dataset.records, dataset.stage_events, infer_stages_from_records(dataset.records))
        return engine.get_transitions(period)

    def owner_performance(self, dataset_id: str, filters: RecordFilter | None = None) -> list[OwnerPerformance]:
        return compute_owner_performance(self._records(dataset_id, filters))

    def stage_distribution(self, dataset_id: str, date_field: str = "created_at") -> list[StageTimeSeries]:
        return compute_stage_distribution(self.get_dataset(dataset_id).records, date_field)

    def stage_durations(self, dataset_id: str, filters: RecordFilter | None = None) -> list[StageDuration]:
        return compute_stage_durations(self._records(dataset_id, filters))

    def time_to_close(self, dataset_id: str, filters: RecordFilter | None = None) -> DurationSummary | None:
        return compute_time_to_close(self._records(dataset_id, filters))

    def deal_size_distribution(self, dataset_id: str, filters: RecordFilter | None = None) -> list[DealSizeBucket]:
        return compute_deal_size_distribution(self._records(dataset_id, filters))

    def deal_size_by_stage(self, dataset_id: str, filters: RecordFilter | None = None) -> list[StageDealSize]:
        return compute_deal_size_by_stage(self._records(dataset_id, filters))

    def high_value_deals(
        self,
        dataset_id: str,
        threshold: float | None = None,
        filters: RecordFilter | None = None,
    ) -> list[HighValueDeal]:
        return identify_high_value_deals(self._records(dataset_id, filters), threshold)

    def deal_velocity(self, dataset_id: str, filters: RecordFilter | None = None) -> list[StageTimeSeries]:
        return compute_deal_velocity(self._records(dataset_id, filters))

    def win_rate_trend(self, dataset_id: str, filters: RecordFilter | None = None) -> list[WinRatePoint]:
        return compute_win_rate_trend(self._records(dataset_id, filters))

    def filter_options(self, dataset_id: str) -> FilterOptions:
        return get_filter_options(self.get_dataset(dataset_id).records)

    def insights(
        self,
        dataset_id: str,
        filters: RecordFilter | None = None,
        limit: int | None = None,
    ) -> list[Insight]:
        """
        Rule-based insights over the inferred funnel, most urgent first.

        *limit* keeps only the top entries.
        """

        records, stage_events = self._records_and_events(dataset_id, filters)
        insights = _insights_for(records, stage_events)
        return get_top_insights(insights, limit) if limit is not None else insights

    def dashboard(
        self,
        dataset_id: str,
        filters: RecordFilter | None = None,
        *,
        high_value_threshold: float | None = None,
        insight_limit: int | None = None,
    ) -> DashboardSummary:
        """
        Every deal view over one filtered selection of the dataset.
        """

        records, stage_events = self._records_and_events(dataset_id, filters)
        funnel = FunnelEngine(records, stage_events, infer_stages_from_records(records)).compute()
        insights = _insights_for(records, stage_events)
        if insight_limit is not None:
            insights = get_top_insights(insights, insight_limit)

        summary = DashboardSummary(
            dataset_id=dataset_id,
            total_records=len(records),
            funnel=funnel,
            stage_durations=compute_stage_durations(records),
            time_to_close=compute_time_to_close(records),
            deal_size_distribution=compute_deal_size_distribution(records),
            deal_size_by_stage=compute_deal_size_by_stage(records),
            high_value_deals=identify_high_value_deals(records, high_value_threshold),
            deal_velocity=compute_deal_velocity(records),
            win_rate_trend=compute_win_rate_trend(records),
            owner_performance=compute_owner_performance(records),
            insights=insights,
        )
        log_event(
            logger,
            logging.INFO,
            "dashboard_computed",
            dataset_id=dataset_id,
            records=summary.total_records,
            insights=len(insights),
        )
        return summary


@lru_cache(maxsize=1)
def get_analytics_service() -> AnalyticsService:
    """
    Build and cache the analytics service over the shared dataset store.
    """

    return AnalyticsService(store=get_dataset_store())
