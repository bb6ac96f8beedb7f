"""
Per-source live metrics endpoints

Each endpoint fetches one source through its connector and keeps the
result in the in-memory TTL cache, keyed by workspace. A fresh cache entry
is served directly unless ?refresh=true; when the connector fails, a
still-valid cache entry is served instead of an error.
"""
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from adpulse.connectors.base import BaseConnector, default_window
from adpulse.dependencies import (
    get_app_settings, get_refresh_service, get_source_cache, get_workspace_id
)
from adpulse.config import Settings
from adpulse.models.metrics import DateRange, RevenueMetrics
from adpulse.services.refresh_service import MetricsRefreshService
from adpulse.utils.cache import TTLCache, generate_cache_key
from adpulse.utils.logger import log

router = APIRouter(prefix="/api", tags=["sources"])


def _cached_response(cache: TTLCache, key: str, value: BaseModel, error: Optional[str] = None) -> dict:
    cached_at = cache.timestamp(key)
    response = {
        "success": True,
        "data": value.to_json_dict(),
        "cached": True,
        "cachedAt": cached_at.isoformat() if cached_at else None,
    }
    if error:
        response["error"] = error
    return response


async def serve_source(
    source: str,
    label: str,
    service: MetricsRefreshService,
    cache: TTLCache,
    settings: Settings,
    workspace_id: str,
    refresh: bool,
    empty_result: Optional[Callable[[], BaseModel]] = None,
):
    connector: Optional[BaseConnector] = service.connectors.get(source)
    key = generate_cache_key(f"{source}-metrics", {"workspace": workspace_id})

    if not refresh:
        hit = cache.get(key)
        if hit is not None:
            return _cached_response(cache, key, hit)

    if connector is None:
        return JSONResponse(status_code=404, content={"success": False, "error": f"Unknown source: {source}"})

    start_date, end_date = default_window(settings.metrics_window_days)
    result = await connector.sync(start_date, end_date)

    if result["success"]:
        cache.set(key, result["data"])
        return {"success": True, "data": result["data"].to_json_dict(), "cached": False}

    error = result.get("error") or "Unknown error"
    fallback = cache.get(key)
    if fallback is not None:
        log.warning(f"Serving cached {label} for workspace {workspace_id}: {error}")
        return _cached_response(cache, key, fallback, error=f"Using cached data due to API error: {error}")

    if empty_result is not None:
        log.warning(f"No cached {label} available, returning empty metrics")
        return {
            "success": True,
            "data": empty_result().to_json_dict(),
            "cached": False,
            "message": f"No {label} available. {error}",
        }

    return JSONResponse(
        status_code=500,
        content={"success": False, "error": f"Failed to fetch {label}: {error}"},
    )


@router.get("/google-ads/metrics")
async def google_ads_metrics(
    refresh: bool = Query(False, description="Bypass the in-memory cache"),
    workspace_id: str = Depends(get_workspace_id),
    service: MetricsRefreshService = Depends(get_refresh_service),
    cache: TTLCache = Depends(get_source_cache),
    settings: Settings = Depends(get_app_settings),
):
    """Google Ads impressions, clicks, CTR and spend for the last 30 days"""
    return await serve_source("google", "Google Ads metrics", service, cache, settings, workspace_id, refresh)


@router.get("/meta-ads/metrics")
async def meta_ads_metrics(
    refresh: bool = Query(False, description="Bypass the in-memory cache"),
    workspace_id: str = Depends(get_workspace_id),
    service: MetricsRefreshService = Depends(get_refresh_service),
    cache: TTLCache = Depends(get_source_cache),
    settings: Settings = Depends(get_app_settings),
):
    """Meta campaigns and totals for the last 30 days"""
    return await serve_source("meta", "Meta Ads metrics", service, cache, settings, workspace_id, refresh)


@router.get("/calendly/events")
async def calendly_metrics(
    refresh: bool = Query(False, description="Bypass the in-memory cache"),
    workspace_id: str = Depends(get_workspace_id),
    service: MetricsRefreshService = Depends(get_refresh_service),
    cache: TTLCache = Depends(get_source_cache),
    settings: Settings = Depends(get_app_settings),
):
    """Booked, completed and no-show meetings for the last 30 days"""
    return await serve_source("calendly", "Calendly metrics", service, cache, settings, workspace_id, refresh)


@router.get("/stripe/revenue")
async def stripe_revenue(
    refresh: bool = Query(False, description="Bypass the in-memory cache"),
    workspace_id: str = Depends(get_workspace_id),
    service: MetricsRefreshService = Depends(get_refresh_service),
    cache: TTLCache = Depends(get_source_cache),
    settings: Settings = Depends(get_app_settings),
):
    """
    Stripe revenue for the last 30 days.

    Dashboards render $0 rather than an error when Stripe is unavailable.
    """
    def empty_revenue() -> RevenueMetrics:
        start, end = default_window(settings.metrics_window_days)
        return RevenueMetrics(date_range=DateRange(start=start.isoformat(), end=end.isoformat()))

    return await serve_source(
        "stripe", "Stripe revenue data", service, cache, settings, workspace_id, refresh,
        empty_result=empty_revenue,
    )
