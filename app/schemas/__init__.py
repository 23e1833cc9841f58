"""
app/schemas package marker.
"""

from app.schemas.analytics import (
    FunnelRequest,
    FunnelResponse,
    FunnelStagePayload,
    MetricsRequest,
    MetricsResponse,
    MetricValueResponse,
    OwnerPerformanceResponse,
    PeriodSelection,
    StageTimeSeriesResponse,
    StageTransitionResponse,
)
from app.schemas.ingestion import (
    DetectedSchemaResponse,
    FieldMappingPayload,
    IngestionSummaryResponse,
    ValidationResultResponse,
)

__all__ = [
    "DetectedSchemaResponse",
    "FieldMappingPayload",
    "FunnelRequest",
    "FunnelResponse",
    "FunnelStagePayload",
    "IngestionSummaryResponse",
    "MetricsRequest",
    "MetricsResponse",
    "MetricValueResponse",
    "OwnerPerformanceResponse",
    "PeriodSelection",
    "StageTimeSeriesResponse",
    "StageTransitionResponse",
    "ValidationResultResponse",
]
