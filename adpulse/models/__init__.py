"""Data models for AdPulse"""

from adpulse.models.metrics import (
    DateRange,
    GoogleAdsMetrics,
    MetaCampaignMetrics,
    MetaAdsMetrics,
    MetaAdsSnapshot,
    CalendlyMetrics,
    RevenueMetrics,
    SourceErrors,
    CachedMetrics,
)

from adpulse.models.alerts import (
    AlertThreshold,
    AlertSettings,
    NotificationChannels,
    Anomaly,
    HistoricalMetrics,
    DEFAULT_ALERT_THRESHOLDS,
)

__all__ = [
    "DateRange",
    "GoogleAdsMetrics",
    "MetaCampaignMetrics",
    "MetaAdsMetrics",
    "MetaAdsSnapshot",
    "CalendlyMetrics",
    "RevenueMetrics",
    "SourceErrors",
    "CachedMetrics",
    "AlertThreshold",
    "AlertSettings",
    "NotificationChannels",
    "Anomaly",
    "HistoricalMetrics",
    "DEFAULT_ALERT_THRESHOLDS",
]
