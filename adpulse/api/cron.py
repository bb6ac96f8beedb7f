"""
Refresh trigger endpoint

Called by an external scheduler (or manually) to recompute the cached
metrics snapshot. Requires a shared secret and is rate limited.
"""
import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from adpulse.config import Settings
from adpulse.dependencies import get_app_settings, get_rate_limiter, get_refresh_service
from adpulse.services.refresh_service import MetricsRefreshService
from adpulse.utils.logger import log
from adpulse.utils.rate_limit import SlidingWindowRateLimiter

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _matches(provided: Optional[str], expected: Optional[str]) -> bool:
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def is_authorized(request: Request, settings: Settings) -> bool:
    """Bearer CRON_SECRET (scheduler) or x-api-key API_SECRET_KEY (manual)."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer ") and _matches(auth_header[7:], settings.cron_secret):
        return True

    return _matches(request.headers.get("x-api-key"), settings.api_secret_key)


@router.api_route("/refresh-metrics", methods=["GET", "POST"])
async def refresh_metrics(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    service: MetricsRefreshService = Depends(get_refresh_service),
):
    """Recompute every source and overwrite the cached snapshot."""
    if not is_authorized(request, settings):
        return JSONResponse(
            status_code=401,
            content={
                "success": False,
                "error": "Unauthorized",
                "message": "Valid CRON_SECRET or API_SECRET_KEY required",
            },
        )

    identifier = request.headers.get("x-forwarded-for") or "cron-job"
    if not limiter.check(identifier):
        log.warning(f"Refresh rate limit exceeded for {identifier}")
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "error": "Rate limit exceeded",
                "message": "Too many requests. Please try again later.",
            },
        )

    try:
        return await service.refresh()
    except Exception as e:
        log.error(f"Unexpected error during metrics refresh: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
