"""
app/schemas/analytics.py

Request and response schemas for dataset analytics endpoints.

Metric definitions are accepted in their camelCase JSON form and parsed by
``MetricDefinition.from_dict``. Dashboard filters mirror ``RecordFilter``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from metric_engine.insights import InsightImpact, InsightPriority, InsightType
from metric_engine.models import PeriodType, Trend


class PeriodSelection(BaseModel):
    """
    Calendar period around *reference*, or an explicit custom window.
    """

    period_type: PeriodType = PeriodType.MONTH
    reference: datetime | None = None
    start: datetime | None = None
    end: datetime | None = None


class MetricsRequest(PeriodSelection):
    metrics: list[dict[str, Any]] = Field(..., min_length=1)
    compare: bool = True


class FunnelStagePayload(BaseModel):
    name: str = Field(..., min_length=1)
    order: int
    color: str | None = None


class FunnelRequest(BaseModel):
    """
    Funnel configuration; stages are inferred from statuses when omitted.
    """

    stages: list[FunnelStagePayload] | None = None
    period: PeriodSelection | None = None


class PeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: PeriodType
    start: datetime
    end: datetime
    label: str


class MetricComparisonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    previous_value: float | None
    delta: float | None
    delta_percent: float | None
    trend: Trend


class MetricBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_key: str
    group_label: str
    value: float
    formatted_value: str
    percentage: float


class MetricValueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    metric_id: str
    value: float | None
    formatted_value: str
    period: PeriodResponse
    comparison: MetricComparisonResponse | None = None
    breakdown: list[MetricBreakdownResponse] | None = None


class MetricsResponse(BaseModel):
    dataset_id: str
    metrics: list[MetricValueResponse]


class FunnelStageMetricsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stage: str
    order: int
    count: int = Field(..., ge=0)
    percentage: float
    conversion_to_next: float | None
    drop_off: float | None
    average_time_in_stage: float | None


class FunnelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stages: list[FunnelStageMetricsResponse]
    overall_conversion: float
    total_records: int = Field(..., ge=0)
    average_cycle_time: float | None


class StageTransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_stage: str
    to_stage: str
    count: int = Field(..., ge=1)
    percentage: float
    average_duration: float | None


class OwnerPerformanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    owner_id: str
    total_records: int
    won_count: int
    conversion_rate: float
    total_value: float
    average_value: float
    average_cycle_time_days: int | None


class TimeSeriesPointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    count: int


class StageTimeSeriesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stage: str
    points: list[TimeSeriesPointResponse]


class MetricSeriesRequest(BaseModel):
    """
    One metric over the most recent *periods* periods ending at *reference*.
    """

    metric: dict[str, Any]
    period_type: PeriodType = PeriodType.MONTH
    periods: int = Field(6, ge=1, le=60)
    reference: datetime | None = None


class MetricSeriesResponse(BaseModel):
    dataset_id: str
    metric_id: str
    values: list[MetricValueResponse]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class DateRangePayload(BaseModel):
    field: Literal["created_at", "updated_at", "closed_at"] = "created_at"
    start: datetime | None = None
    end: datetime | None = None


class RecordFilterPayload(BaseModel):
    date_range: DateRangePayload | None = None
    owners: list[str] = Field(default_factory=list)
    stages: list[str] = Field(default_factory=list)
    min_value: float | None = None
    max_value: float | None = None


class DashboardRequest(BaseModel):
    filters: RecordFilterPayload | None = None
    high_value_threshold: float | None = Field(None, gt=0)
    insight_limit: int | None = Field(None, ge=0)


class FilterOptionsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    owners: list[str]
    stages: list[str]
    min_value: float
    max_value: float


class DurationSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    average_days: int
    median_days: int
    min_days: int
    max_days: int
    sample_size: int


class StageDurationResponse(DurationSummaryResponse):
    stage: str
    prediction: str


class DealSizeBucketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    range: str
    lower: float
    upper: float
    count: int
    percentage: float


class StageDealSizeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stage: str
    min: float
    max: float
    median: float
    average: float
    q1: float
    q3: float
    count: int


class HighValueDealResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    stage: str
    value: float


class WinRatePointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month: str
    total: int
    won: int
    win_rate: float


class InsightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: InsightType
    priority: InsightPriority
    title: str
    description: str
    value: str
    confidence: int
    recommendation: str | None = None
    impact: InsightImpact | None = None


class DashboardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    dataset_id: str
    total_records: int
    funnel: FunnelResponse
    stage_durations: list[StageDurationResponse]
    time_to_close: DurationSummaryResponse | None
    deal_size_distribution: list[DealSizeBucketResponse]
    deal_size_by_stage: list[StageDealSizeResponse]
    high_value_deals: list[HighValueDealResponse]
    deal_velocity: list[StageTimeSeriesResponse]
    win_rate_trend: list[WinRatePointResponse]
    owner_performance: list[OwnerPerformanceResponse]
    insights: list[InsightResponse]
