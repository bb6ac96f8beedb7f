"""
Health check and status endpoints
"""
from fastapi import APIRouter, Depends
from datetime import datetime, timezone
from adpulse.config import Settings
from adpulse.dependencies import get_app_settings, get_metrics_cache, get_refresh_service
from adpulse.services.persistent_cache import PersistentMetricsCache
from adpulse.services.refresh_service import MetricsRefreshService
from adpulse import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status(
    settings: Settings = Depends(get_app_settings),
    cache: PersistentMetricsCache = Depends(get_metrics_cache),
    service: MetricsRefreshService = Depends(get_refresh_service),
):
    """Get system status"""
    from adpulse.scheduler import get_scheduled_jobs

    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "cache": {
            "path": cache.path,
            "time_since_update": cache.time_since_last_update(),
            "should_refresh": cache.should_refresh(),
        },
        "connectors": [c.get_status() for c in service.connectors.values()],
        "scheduled_jobs": get_scheduled_jobs(),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
