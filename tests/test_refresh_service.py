"""
Metrics refresh tests.

Fake connectors stand in for the source APIs so a refresh can be run end
to end against a temporary cache directory.
"""
import asyncio
from datetime import date, datetime, timedelta, timezone

from adpulse.config import Settings
from adpulse.connectors.base import BaseConnector
from adpulse.models.alerts import NotificationChannels, SlackChannel
from adpulse.models.metrics import DateRange, GoogleAdsMetrics, RevenueMetrics
from adpulse.services.alert_settings import AlertSettingsStore
from adpulse.services.anomaly_detector import MetricsHistory
from adpulse.services.persistent_cache import PersistentMetricsCache
from adpulse.services.refresh_service import MetricsRefreshService

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
RANGE = DateRange(start="2024-04-01", end="2024-05-01")


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


class FakeConnector(BaseConnector):
    def __init__(self, name, result=None, error=None):
        super().__init__(name)
        self.result = result
        self.error = error
        self.windows = []

    def is_configured(self) -> bool:
        return True

    async def fetch_data(self, start_date: date, end_date: date):
        self.windows.append((start_date, end_date))
        if self.error:
            raise ValueError(self.error)
        return self.result


class RecordingAlertService:
    def __init__(self):
        self.calls = []

    async def send_anomaly_notifications(self, anomalies, email_recipients, slack_webhook_url, dashboard_url):
        self.calls.append((anomalies, email_recipients, slack_webhook_url, dashboard_url))
        return {}


def _google(spend=100.0, clicks=100):
    return GoogleAdsMetrics(impressions=5000, clicks=clicks, ctr=3.0, spend=spend, date_range=RANGE)


def _service(tmp_path, connectors, alert_service=None, clock=lambda: NOW):
    settings = Settings(cache_dir=str(tmp_path), base_url="https://dash.example.com")
    cache = PersistentMetricsCache(str(tmp_path), clock=clock)
    return MetricsRefreshService(
        cache,
        settings,
        connectors=connectors,
        history=MetricsHistory(str(tmp_path)),
        alert_settings=AlertSettingsStore(str(tmp_path), settings.base_url),
        alert_service=alert_service or RecordingAlertService(),
        clock=clock,
    )


def test_refresh_writes_snapshot_with_per_source_errors(tmp_path):
    revenue = RevenueMetrics(total_revenue=1000.0, total_conversions=4, date_range=RANGE)
    service = _service(tmp_path, {
        "google": FakeConnector("Google Ads", result=_google(spend=400.0)),
        "meta": FakeConnector("Meta Ads", error="Invalid OAuth access token"),
        "stripe": FakeConnector("Stripe", result=revenue),
    })

    result = _run(service.refresh())

    assert result["success"] is True
    assert result["cached"] is True
    assert result["data"] == {"google": "fetched", "meta": "failed", "stripe": "fetched"}
    assert result["errors"] == {"meta": "Invalid OAuth access token"}

    snapshot = service.cache.read()
    assert snapshot.google.spend == 400.0
    assert snapshot.meta is None
    assert snapshot.errors.meta == "Invalid OAuth access token"
    assert snapshot.stripe.roas == 2.5
    assert snapshot.stripe.profit == 600.0
    assert snapshot.timestamp == NOW


def test_refresh_uses_thirty_day_window(tmp_path):
    connector = FakeConnector("Google Ads", result=_google())
    _run(_service(tmp_path, {"google": connector}).refresh())

    assert connector.windows == [(date(2024, 4, 1), date(2024, 5, 1))]


def test_refresh_with_every_source_failing(tmp_path):
    service = _service(tmp_path, {
        "google": FakeConnector("Google Ads", error="developer token not approved"),
        "calendly": FakeConnector("Calendly", error="Unauthenticated"),
    })

    result = _run(service.refresh())

    assert result["success"] is False
    snapshot = service.cache.read()
    assert snapshot.success is False
    assert snapshot.errors.google == "developer token not approved"
    assert snapshot.errors.calendly == "Unauthenticated"
    assert service.cache.should_refresh() is False


def test_refresh_marks_snapshot_fresh(tmp_path):
    clock_now = [NOW]
    service = _service(tmp_path, {"google": FakeConnector("Google Ads", result=_google())},
                       clock=lambda: clock_now[0])

    assert service.cache.should_refresh() is True
    _run(service.refresh())
    assert service.cache.should_refresh() is False

    clock_now[0] = NOW + timedelta(hours=6)
    assert service.cache.should_refresh() is True


def test_second_refresh_detects_anomaly_and_notifies_slack(tmp_path):
    connector = FakeConnector("Google Ads", result=_google(spend=100.0, clicks=100))
    alerts = RecordingAlertService()
    service = _service(tmp_path, {"google": connector}, alert_service=alerts)
    service.alert_settings.update_notification_channels(NotificationChannels(
        slack=SlackChannel(enabled=True, webhook_url="https://hooks.slack.com/services/T/B/X"),
    ))

    first = _run(service.refresh())
    assert first["anomalies"] == 0

    connector.result = _google(spend=250.0, clicks=102)
    second = _run(service.refresh())

    assert second["anomalies"] == 1
    assert len(alerts.calls) == 1
    anomalies, recipients, webhook, dashboard_url = alerts.calls[0]
    assert anomalies[0].type == "spend_increase"
    assert recipients == []
    assert webhook.endswith("/X")
    assert dashboard_url == "https://dash.example.com"


def test_anomalies_without_enabled_channels_are_not_sent(tmp_path):
    connector = FakeConnector("Google Ads", result=_google(spend=100.0))
    alerts = RecordingAlertService()
    service = _service(tmp_path, {"google": connector}, alert_service=alerts)

    _run(service.refresh())
    connector.result = _google(spend=300.0, clicks=100)
    result = _run(service.refresh())

    assert result["anomalies"] == 1
    assert alerts.calls == []
