"""
Alert models: thresholds, notification channels and detected anomalies
"""
from typing import List, Literal, Optional

from pydantic import Field

from adpulse.models.metrics import CamelModel, GoogleAdsMetrics, MetaAdsSnapshot

AlertType = Literal["spend_increase", "ctr_drop", "conversion_drop", "cost_per_conv_increase"]
Severity = Literal["low", "medium", "high"]
Platform = Literal["google", "meta", "both"]


class AlertThreshold(CamelModel):
    id: str
    name: str
    type: AlertType
    enabled: bool = True
    threshold: float  # percent change, or absolute CTR for ctr_drop
    description: str = ""


class EmailChannel(CamelModel):
    enabled: bool = False
    recipients: List[str] = []


class SlackChannel(CamelModel):
    enabled: bool = False
    webhook_url: str = ""


class NotificationChannels(CamelModel):
    email: EmailChannel = Field(default_factory=EmailChannel)
    slack: SlackChannel = Field(default_factory=SlackChannel)


class AlertSettings(CamelModel):
    thresholds: List[AlertThreshold]
    notification_channels: NotificationChannels = Field(default_factory=NotificationChannels)
    dashboard_url: str = ""

    def enabled_threshold(self, alert_type: str) -> Optional[AlertThreshold]:
        return next((t for t in self.thresholds if t.enabled and t.type == alert_type), None)


class Anomaly(CamelModel):
    id: str
    type: AlertType
    severity: Severity
    title: str
    description: str
    current_value: float
    previous_value: float
    change: float  # percent
    detected_at: str
    platform: Platform


class HistoricalMetrics(CamelModel):
    google: Optional[GoogleAdsMetrics] = None
    meta: Optional[MetaAdsSnapshot] = None
    timestamp: str


DEFAULT_ALERT_THRESHOLDS: List[AlertThreshold] = [
    AlertThreshold(
        id="spend-increase",
        name="Spend Increase Alert",
        type="spend_increase",
        threshold=30,
        description="Alert when ad spend increases by more than 30% without proportional conversion increase",
    ),
    AlertThreshold(
        id="ctr-drop",
        name="CTR Drop Alert",
        type="ctr_drop",
        threshold=2.0,
        description="Alert when click-through rate falls below 2.0%",
    ),
    AlertThreshold(
        id="conversion-drop",
        name="Conversion Drop Alert",
        type="conversion_drop",
        threshold=20,
        description="Alert when conversions drop by more than 20%",
    ),
    AlertThreshold(
        id="cost-per-conv-increase",
        name="Cost Per Conversion Increase",
        type="cost_per_conv_increase",
        threshold=25,
        description="Alert when cost per conversation increases by more than 25%",
    ),
]
