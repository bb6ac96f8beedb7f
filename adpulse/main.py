"""
AdPulse marketing metrics service
Main FastAPI application
"""
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.middleware.gzip import GZipMiddleware

from adpulse import __version__
from adpulse.config import Settings, get_settings
from adpulse.utils.logger import log

from adpulse.api import alerts, cron, health, metrics, sources
from adpulse.middleware.security_middleware import SecurityMiddleware
from adpulse.services.alert_settings import AlertSettingsStore
from adpulse.services.persistent_cache import PersistentMetricsCache
from adpulse.services.refresh_service import MetricsRefreshService
from adpulse.utils.cache import TTLCache
from adpulse.utils.rate_limit import SlidingWindowRateLimiter


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and its process-wide collaborators."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(f"Starting {settings.app_name} v{__version__}")
        log.info(f"Environment: {settings.environment}")
        log.info(f"Metrics cache: {app.state.metrics_cache.path}")

        if settings.enable_scheduler:
            from adpulse.scheduler import start_scheduler
            try:
                start_scheduler(app.state.refresh_service, settings.scheduler_check_minutes)
            except Exception as e:
                log.error(f"Scheduler startup error: {str(e)}")

        yield

        if settings.enable_scheduler:
            from adpulse.scheduler import stop_scheduler
            stop_scheduler()
        log.info("Shutting down application")

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="""
        Marketing metrics dashboard backend

        - Serves a persistent snapshot of Google Ads, Meta Ads, Calendly and Stripe metrics
        - Recomputes the snapshot on a rate-limited, secret-protected trigger
        - Serves each source live with a 15 minute in-memory cache
        - Detects ad metric anomalies and notifies by email or Slack
        """,
        lifespan=lifespan,
    )

    metrics_cache = PersistentMetricsCache(
        settings.cache_dir, timedelta(hours=settings.refresh_interval_hours)
    )
    alert_settings = AlertSettingsStore(settings.cache_dir, settings.base_url)

    app.state.settings = settings
    app.state.metrics_cache = metrics_cache
    app.state.source_cache = TTLCache(ttl_seconds=settings.source_cache_ttl_minutes * 60)
    app.state.alert_settings = alert_settings
    app.state.refresh_service = MetricsRefreshService(
        metrics_cache, settings, alert_settings=alert_settings
    )
    app.state.refresh_rate_limiter = SlidingWindowRateLimiter(
        max_requests=settings.refresh_rate_limit,
        window_seconds=settings.refresh_rate_window_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Basic Auth gate, X-Robots-Tag, Cache-Control
    app.add_middleware(SecurityMiddleware)

    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.include_router(health.router, tags=["health"])
    app.include_router(metrics.router)
    app.include_router(cron.router)
    app.include_router(sources.router)
    app.include_router(alerts.router)

    @app.get("/robots.txt", response_class=PlainTextResponse)
    async def robots_txt():
        """Block all crawlers"""
        return "User-agent: *\nDisallow: /\n"

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "app": settings.app_name,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "status": "/status",
            "endpoints": {
                "cached_metrics": "GET /api/metrics/cached",
                "refresh_metrics": "GET|POST /api/cron/refresh-metrics",
                "google_ads": "GET /api/google-ads/metrics",
                "meta_ads": "GET /api/meta-ads/metrics",
                "calendly": "GET /api/calendly/events",
                "stripe": "GET /api/stripe/revenue",
                "alert_settings": "GET|POST /api/settings/alerts",
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "adpulse.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
