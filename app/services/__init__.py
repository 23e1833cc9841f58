"""
app/services package marker.
"""

from app.services.analytics_service import AnalyticsService, get_analytics_service, resolve_period
from app.services.dataset_store import build_storage_backend, get_dataset_store
from app.services.ingestion_service import (
    IngestionError,
    IngestionService,
    SourceReadError,
    get_ingestion_service,
)

__all__ = [
    "AnalyticsService",
    "get_analytics_service",
    "resolve_period",
    "build_storage_backend",
    "get_dataset_store",
    "IngestionError",
    "IngestionService",
    "SourceReadError",
    "get_ingestion_service",
]
