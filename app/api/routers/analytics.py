"""
app/api/routers/analytics.py

Metrics, funnel, deal and owner analytics over stored datasets.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.config import get_metrics_settings
from app.schemas.analytics import (
    DashboardRequest,
    DashboardResponse,
    FilterOptionsResponse,
    FunnelRequest,
    FunnelResponse,
    InsightResponse,
    MetricSeriesRequest,
    MetricSeriesResponse,
    MetricsRequest,
    MetricsResponse,
    MetricValueResponse,
    OwnerPerformanceResponse,
    PeriodSelection,
    RecordFilterPayload,
    StageTimeSeriesResponse,
    StageTransitionResponse,
)
from app.services.analytics_service import AnalyticsService, get_analytics_service, resolve_period
from db.repositories.errors import DatasetNotFoundError
from funnel_engine.models import FunnelStage
from metric_engine.filters import DateRange, RecordFilter
from metric_engine.models import MetricDefinition, Period

router = APIRouter(tags=["analytics"])


def _not_found(exc: DatasetNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _metric_definition(payload: dict) -> MetricDefinition:
    fmt = payload.get("format") or {}
    if "currency" not in fmt:
        fmt = {**fmt, "currency": get_metrics_settings().default_currency}
    return MetricDefinition.from_dict({**payload, "format": fmt})


def _invalid_metric(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid metric definition: {exc}",
    )


def _record_filter(payload: RecordFilterPayload | None) -> RecordFilter | None:
    if payload is None:
        return None
    date_range = (
        DateRange(field=payload.date_range.field, start=payload.date_range.start, end=payload.date_range.end)
        if payload.date_range is not None
        else None
    )
    return RecordFilter(
        date_range=date_range,
        owners=tuple(payload.owners),
        stages=tuple(payload.stages),
        min_value=payload.min_value,
        max_value=payload.max_value,
    )


def _period(selection: PeriodSelection) -> Period:
    try:
        return resolve_period(
            selection.period_type,
            reference=selection.reference,
            start=selection.start,
            end=selection.end,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.post("/datasets/{dataset_id}/metrics", response_model=MetricsResponse)
def compute_metrics(
    dataset_id: str,
    request: MetricsRequest,
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> MetricsResponse:
    """
    Compute metric definitions over one dataset for the selected period.
    """

    try:
        definitions = [_metric_definition(payload) for payload in request.metrics]
    except (KeyError, TypeError, ValueError) as exc:
        raise _invalid_metric(exc) from exc

    period = _period(request)
    try:
        values = analytics_service.compute_metrics(dataset_id, definitions, period, compare=request.compare)
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc

    return MetricsResponse(
        dataset_id=dataset_id,
        metrics=[MetricValueResponse.model_validate(value) for value in values],
    )


@router.post("/datasets/{dataset_id}/funnel", response_model=FunnelResponse)
def compute_funnel(
    dataset_id: str,
    request: FunnelRequest,
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> FunnelResponse:
    stages = (
        [FunnelStage(name=stage.name, order=stage.order, color=stage.color) for stage in request.stages]
        if request.stages
        else None
    )
    period = _period(request.period) if request.period is not None else None
    try:
        funnel = analytics_service.compute_funnel(dataset_id, stages, period)
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc

    return FunnelResponse.model_validate(funnel)


@router.get("/datasets/{dataset_id}/transitions", response_model=list[StageTransitionResponse])
def get_transitions(
    dataset_id: str,
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> list[StageTransitionResponse]:
    try:
        transitions = analytics_service.transitions(dataset_id)
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc

    return [StageTransitionResponse.model_validate(item) for item in transitions]


@router.get("/datasets/{dataset_id}/owners", response_model=list[OwnerPerformanceResponse])
def get_owner_performance(
    dataset_id: str,
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> list[OwnerPerformanceResponse]:
    try:
        owners = analytics_service.owner_performance(dataset_id)
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc

    return [OwnerPerformanceResponse.model_validate(item) for item in owners]


@router.get("/datasets/{dataset_id}/stage-distribution", response_model=list[StageTimeSeriesResponse])
def get_stage_distribution(
    dataset_id: str,
    date_field: str = Query(default="created_at", description="created_at, updated_at or closed_at"),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> list[StageTimeSeriesResponse]:
    try:
        series = analytics_service.stage_distribution(dataset_id, date_field)
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return [StageTimeSeriesResponse.model_validate(item) for item in series]


@router.post("/datasets/{dataset_id}/metric-series", response_model=MetricSeriesResponse)
def compute_metric_series(
    dataset_id: str,
    request: MetricSeriesRequest,
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> MetricSeriesResponse:
    """
    One metric over consecutive recent periods, each compared with the one
    before it.
    """

    try:
        definition = _metric_definition(request.metric)
    except (KeyError, TypeError, ValueError) as exc:
        raise _invalid_metric(exc) from exc

    try:
        values = analytics_service.metric_series(
            dataset_id,
            definition,
            request.period_type,
            request.periods,
            request.reference,
        )
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return MetricSeriesResponse(
        dataset_id=dataset_id,
        metric_id=definition.id,
        values=[MetricValueResponse.model_validate(value) for value in values],
    )


@router.get("/datasets/{dataset_id}/filter-options", response_model=FilterOptionsResponse)
def get_filter_options(
    dataset_id: str,
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> FilterOptionsResponse:
    try:
        options = analytics_service.filter_options(dataset_id)
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc

    return FilterOptionsResponse.model_validate(options)


@router.get("/datasets/{dataset_id}/insights", response_model=list[InsightResponse])
def get_insights(
    dataset_id: str,
    limit: int | None = Query(default=None, ge=0),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> list[InsightResponse]:
    try:
        insights = analytics_service.insights(dataset_id, limit=limit)
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc

    return [InsightResponse.model_validate(item) for item in insights]


@router.post("/datasets/{dataset_id}/dashboard", response_model=DashboardResponse)
def compute_dashboard(
    dataset_id: str,
    request: DashboardRequest,
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> DashboardResponse:
    """
    Funnel, deal, owner and insight views over one filtered selection.
    """

    try:
        summary = analytics_service.dashboard(
            dataset_id,
            _record_filter(request.filters),
            high_value_threshold=request.high_value_threshold,
            insight_limit=request.insight_limit,
        )
    except DatasetNotFoundError as exc:
        raise _not_found(exc) from exc

    return DashboardResponse.model_validate(summary)
