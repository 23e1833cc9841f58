"""
app/api/routers package marker.
"""

from app.api.routers.analytics import router as analytics_router
from app.api.routers.ingestion import router as ingestion_router

__all__ = [
    "analytics_router",
    "ingestion_router",
]
