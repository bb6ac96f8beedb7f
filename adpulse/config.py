"""
Configuration management for AdPulse
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "AdPulse Marketing Metrics"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    base_url: str = "http://localhost:8000"

    # Metrics cache
    cache_dir: str = ".cache"
    refresh_interval_hours: float = 6.0  # Snapshot considered stale after this
    source_cache_ttl_minutes: float = 15.0  # Per-source live endpoint cache
    metrics_window_days: int = 30

    # Refresh trigger auth (shared secrets)
    cron_secret: Optional[str] = None
    api_secret_key: Optional[str] = None
    refresh_rate_limit: int = 5
    refresh_rate_window_seconds: int = 3600

    # Scheduler
    enable_scheduler: bool = True
    scheduler_check_minutes: int = 60

    # Google Ads
    google_ads_client_id: Optional[str] = None
    google_ads_client_secret: Optional[str] = None
    google_ads_developer_token: Optional[str] = None
    google_ads_refresh_token: Optional[str] = None
    google_ads_customer_id: Optional[str] = None
    google_ads_login_customer_id: Optional[str] = None

    # Meta Ads
    meta_access_token: Optional[str] = None
    meta_ad_account_id: Optional[str] = None
    meta_graph_api_version: str = "v18.0"

    # Calendly
    calendly_access_token: Optional[str] = None
    calendly_user_uri: Optional[str] = None

    # Stripe
    stripe_secret_key: Optional[str] = None

    # Alerts
    alert_email_from: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None

    # Dashboard Basic Auth (gate for the whole app)
    dash_user: str = ""
    dash_pass: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
