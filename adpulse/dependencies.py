"""
FastAPI dependencies

Process-wide collaborators are built once in create_app() and kept on
app.state; handlers receive them through these functions.
"""
from fastapi import Header, Request

from adpulse.config import Settings
from adpulse.services.alert_settings import AlertSettingsStore
from adpulse.services.persistent_cache import PersistentMetricsCache
from adpulse.services.refresh_service import MetricsRefreshService
from adpulse.utils.cache import TTLCache
from adpulse.utils.rate_limit import SlidingWindowRateLimiter


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metrics_cache(request: Request) -> PersistentMetricsCache:
    return request.app.state.metrics_cache


def get_source_cache(request: Request) -> TTLCache:
    return request.app.state.source_cache


def get_refresh_service(request: Request) -> MetricsRefreshService:
    return request.app.state.refresh_service


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.refresh_rate_limiter


def get_alert_settings_store(request: Request) -> AlertSettingsStore:
    return request.app.state.alert_settings


def get_workspace_id(x_workspace_id: str = Header("default")) -> str:
    """Workspace scope for per-source cache keys (X-Workspace-Id header)."""
    return x_workspace_id.strip() or "default"
