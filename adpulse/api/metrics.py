"""
Cached metrics endpoint

Serves the latest persisted snapshot to dashboards.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from adpulse.dependencies import get_metrics_cache
from adpulse.services.persistent_cache import PersistentMetricsCache, format_elapsed
from adpulse.utils.logger import log

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


@router.get("/cached")
def get_cached_metrics(cache: PersistentMetricsCache = Depends(get_metrics_cache)):
    """
    Latest snapshot written by the refresh job.

    Returns per-source blocks, the write timestamp, a human-readable age
    ("2 hours ago") and any per-source refresh errors. 404 when nothing
    has been cached yet.
    """
    try:
        cached = cache.read()

        if cached is None:
            return JSONResponse(
                status_code=404,
                content={
                    "success": False,
                    "error": "No cached data available",
                    "message": "Please wait for the first data refresh or trigger a manual refresh",
                },
            )

        payload = cached.to_json_dict()
        return {
            "success": True,
            "data": {
                "google": payload.get("google"),
                "meta": payload.get("meta"),
                "calendly": payload.get("calendly"),
                "stripe": payload.get("stripe"),
            },
            "timestamp": payload["timestamp"],
            "timeSinceUpdate": format_elapsed(cache.age_of(cached)),
            "errors": payload.get("errors"),
        }

    except Exception as e:
        log.error(f"Error reading cached metrics: {str(e)}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
