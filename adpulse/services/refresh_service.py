"""
Metrics Refresh Service

Recomputes the cached metrics snapshot from every source connector and
persists it. Invoked by the refresh endpoint and by the scheduler.
"""
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from adpulse.config import Settings, get_settings
from adpulse.connectors import (
    BaseConnector,
    CalendlyConnector,
    GoogleAdsConnector,
    MetaAdsConnector,
    StripeRevenueConnector,
)
from adpulse.connectors.base import default_window
from adpulse.models.metrics import CachedMetrics, SourceErrors
from adpulse.services.alert_service import AlertService
from adpulse.services.alert_settings import AlertSettingsStore
from adpulse.services.anomaly_detector import AnomalyDetector, MetricsHistory
from adpulse.services.persistent_cache import PersistentMetricsCache
from adpulse.utils.logger import log

# Snapshot field -> fallback error when a connector fails without a message
SOURCE_LABELS = {
    "google": "Google Ads metrics",
    "meta": "Meta Ads metrics",
    "calendly": "Calendly metrics",
    "stripe": "Stripe revenue metrics",
}


def build_default_connectors(settings: Settings) -> Dict[str, BaseConnector]:
    return {
        "google": GoogleAdsConnector(settings),
        "meta": MetaAdsConnector(settings),
        "calendly": CalendlyConnector(settings),
        "stripe": StripeRevenueConnector(settings),
    }


class MetricsRefreshService:
    """
    Runs a full refresh:
    1. Sync each connector over the reporting window
    2. Derive revenue ROAS/profit from combined ad spend
    3. Overwrite the cached snapshot
    4. Record ad metrics history and check for anomalies
    5. Notify on anomalies when a channel is enabled
    """

    def __init__(
        self,
        cache: PersistentMetricsCache,
        settings: Optional[Settings] = None,
        connectors: Optional[Dict[str, BaseConnector]] = None,
        history: Optional[MetricsHistory] = None,
        alert_settings: Optional[AlertSettingsStore] = None,
        detector: Optional[AnomalyDetector] = None,
        alert_service: Optional[AlertService] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.settings = settings or get_settings()
        self.cache = cache
        self.connectors = connectors if connectors is not None else build_default_connectors(self.settings)
        self.history = history or MetricsHistory(self.settings.cache_dir)
        self.alert_settings = alert_settings or AlertSettingsStore(self.settings.cache_dir, self.settings.base_url)
        self.detector = detector or AnomalyDetector()
        self.alert_service = alert_service or AlertService(self.settings)
        self._clock = clock

    async def collect(self, start_date: date, end_date: date) -> tuple[Dict[str, Any], Dict[str, str]]:
        """Sync every connector; returns (data by source, error message by source)."""
        data: Dict[str, Any] = {}
        errors: Dict[str, str] = {}

        for source, connector in self.connectors.items():
            log.info(f"Fetching {SOURCE_LABELS.get(source, source)}...")
            result = await connector.sync(start_date, end_date)
            if result["success"] and result.get("data") is not None:
                data[source] = result["data"]
            else:
                errors[source] = result.get("error") or f"Failed to fetch {SOURCE_LABELS.get(source, source)}"
                log.error(f"{source} refresh error: {errors[source]}")

        return data, errors

    async def refresh(self) -> Dict[str, Any]:
        log.info("Starting metrics refresh...")
        start_date, end_date = default_window(self.settings.metrics_window_days, today=self._clock().date())

        data, errors = await self.collect(start_date, end_date)

        google = data.get("google")
        meta = data.get("meta")
        stripe = data.get("stripe")

        if stripe is not None:
            ad_spend = (google.spend if google else 0.0) + (meta.totals.spend if meta else 0.0)
            stripe = stripe.with_ad_spend(ad_spend)

        source_errors = SourceErrors(**errors)
        snapshot = CachedMetrics(
            google=google,
            meta=meta,
            calendly=data.get("calendly"),
            stripe=stripe,
            timestamp=self._clock(),
            success=bool(data),
            errors=None if source_errors.is_empty() else source_errors,
        )

        saved = self.cache.write(snapshot)
        if not saved:
            log.error("Failed to save cached metrics")

        anomalies = []
        if google or meta:
            anomalies = await self._check_anomalies(snapshot)

        log.info("Metrics refresh completed")

        return {
            "success": snapshot.success,
            "timestamp": snapshot.timestamp.isoformat(),
            "data": {
                source: "fetched" if source in data else "failed"
                for source in self.connectors
            },
            "errors": errors or None,
            "cached": saved,
            "anomalies": len(anomalies),
        }

    async def _check_anomalies(self, snapshot: CachedMetrics) -> List:
        self.history.append(snapshot.google, snapshot.meta, snapshot.timestamp.isoformat())
        previous = self.history.previous()

        settings = self.alert_settings.read()
        anomalies = self.detector.detect(snapshot.google, snapshot.meta, previous, settings)
        if not anomalies:
            log.info("No anomalies detected")
            return anomalies

        log.info(f"Detected {len(anomalies)} anomalies")

        channels = settings.notification_channels
        recipients = channels.email.recipients if channels.email.enabled else []
        webhook_url = channels.slack.webhook_url if channels.slack.enabled else ""

        if recipients or webhook_url:
            await self.alert_service.send_anomaly_notifications(
                anomalies,
                recipients,
                webhook_url,
                settings.dashboard_url or self.settings.base_url,
            )

        return anomalies
