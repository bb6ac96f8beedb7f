"""Alert formatting and delivery guard tests (no network)."""
import asyncio

from adpulse.config import Settings
from adpulse.models.alerts import Anomaly
from adpulse.services.alert_service import AlertService, format_change, format_value


def _anomaly(**overrides) -> Anomaly:
    fields = dict(
        id="google-spend-1714564800000",
        type="spend_increase",
        severity="high",
        title="Google Ads: Spend Increase Without Proportional Clicks",
        description="Ad spend increased by 100.0% but clicks only increased by 2.0%.",
        current_value=250.0,
        previous_value=125.0,
        change=100.0,
        detected_at="2024-05-01T12:00:00+00:00",
        platform="google",
    )
    fields.update(overrides)
    return Anomaly(**fields)


def test_format_value_by_alert_type():
    assert format_value(1234.5, "spend_increase") == "$1,234.50"
    assert format_value(1.456, "ctr_drop") == "1.46%"
    assert format_value(1200, "conversion_drop") == "1,200"


def test_format_change_sign():
    assert format_change(12.34) == "+12.3%"
    assert format_change(-8.0) == "-8.0%"
    assert format_change(0) == "0.0%"


def test_slack_payload_contains_values_and_dashboard_link():
    service = AlertService(Settings())
    payload = service._create_slack_payload(_anomaly(), "https://dash.example.com")

    attachment = payload["attachments"][0]
    assert attachment["color"] == "#DC2626"
    field_text = " ".join(f["text"] for f in attachment["blocks"][2]["fields"])
    assert "$125.00" in field_text
    assert "$250.00" in field_text
    assert "+100.0%" in field_text
    assert attachment["blocks"][3]["elements"][0]["url"] == "https://dash.example.com"


def test_email_skipped_when_smtp_not_configured():
    service = AlertService(Settings(smtp_host=None, smtp_user=None, smtp_password=None))
    result = asyncio.run(service.send_email_alert(_anomaly(), ["ops@example.com"], "https://dash"))

    assert result.success is False
    assert result.final_error == "Email not configured"


def test_notifications_skip_disabled_channels():
    service = AlertService(Settings(smtp_host=None, smtp_user=None, smtp_password=None))
    summary = asyncio.run(service.send_anomaly_notifications([_anomaly()], [], "", "https://dash"))

    assert summary == {"email": {"sent": 0, "failed": 0}, "slack": {"sent": 0, "failed": 0}}
