"""
Anomaly Detection

Compares each fresh ad-metrics snapshot against the one taken roughly a day
earlier and flags spend, CTR and conversion moves that cross the
configured thresholds.

History is a rolling JSON list (newest last). At the default 6-hour refresh
cadence, 28 entries cover a week and the entry 4 refreshes back is ~24h old.
"""
import os
from datetime import datetime, timezone
from typing import Callable, List, Optional

from adpulse.models.alerts import AlertSettings, Anomaly, HistoricalMetrics
from adpulse.models.metrics import GoogleAdsMetrics, MetaAdsSnapshot
from adpulse.utils.json_store import read_json, write_json_atomic
from adpulse.utils.logger import log

HISTORY_FILENAME = "metrics-history.json"
MAX_HISTORY_RECORDS = 28
COMPARISON_OFFSET = 5  # current entry + 4 earlier refreshes


def calculate_change(current: float, previous: float) -> float:
    """Percent change; from a zero baseline any increase counts as +100%."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return ((current - previous) / previous) * 100


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MetricsHistory:
    """Rolling on-disk history of ad metrics used as the anomaly baseline."""

    def __init__(self, cache_dir: str, max_records: int = MAX_HISTORY_RECORDS):
        self.path = os.path.join(cache_dir, HISTORY_FILENAME)
        self.max_records = max_records

    def read(self) -> List[HistoricalMetrics]:
        if not os.path.exists(self.path):
            return []
        try:
            return [HistoricalMetrics.model_validate(item) for item in read_json(self.path)]
        except (ValueError, TypeError, OSError) as e:
            log.error(f"Error reading metrics history: {e}")
            return []

    def append(
        self,
        google: Optional[GoogleAdsMetrics],
        meta: Optional[MetaAdsSnapshot],
        timestamp: Optional[str] = None,
    ) -> None:
        history = self.read()
        history.append(HistoricalMetrics(google=google, meta=meta, timestamp=timestamp or _now_iso()))
        history = history[-self.max_records:]

        try:
            write_json_atomic(self.path, [entry.to_json_dict() for entry in history])
        except (OSError, TypeError, ValueError) as e:
            log.error(f"Error storing metrics history: {e}")

    def previous(self) -> Optional[HistoricalMetrics]:
        """Baseline snapshot (~24h back), or None with fewer than two entries."""
        history = self.read()
        if len(history) < 2:
            return None
        return history[max(0, len(history) - COMPARISON_OFFSET)]


class AnomalyDetector:
    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._clock = clock

    def detect(
        self,
        current_google: Optional[GoogleAdsMetrics],
        current_meta: Optional[MetaAdsSnapshot],
        previous: Optional[HistoricalMetrics],
        settings: AlertSettings,
    ) -> List[Anomaly]:
        if previous is None:
            log.info("Not enough historical data for anomaly detection")
            return []

        anomalies: List[Anomaly] = []
        if current_google and previous.google:
            anomalies.extend(self._check_google(current_google, previous.google, settings))
        if current_meta and previous.meta:
            anomalies.extend(self._check_meta(current_meta, previous.meta, settings))
        return anomalies

    def _make(self, key: str, **fields) -> Anomaly:
        now = self._clock()
        return Anomaly(id=f"{key}-{int(now.timestamp() * 1000)}", detected_at=now.isoformat(), **fields)

    def _check_google(
        self,
        current: GoogleAdsMetrics,
        previous: GoogleAdsMetrics,
        settings: AlertSettings,
    ) -> List[Anomaly]:
        anomalies = []

        spend_threshold = settings.enabled_threshold("spend_increase")
        if spend_threshold:
            spend_change = calculate_change(current.spend, previous.spend)
            clicks_change = calculate_change(current.clicks, previous.clicks)
            # Spend up, clicks not keeping pace
            if spend_change > spend_threshold.threshold and clicks_change < spend_change * 0.5:
                anomalies.append(self._make(
                    "google-spend",
                    type="spend_increase",
                    severity="high" if spend_change > 50 else "medium",
                    title="Google Ads: Spend Increase Without Proportional Clicks",
                    description=(
                        f"Ad spend increased by {spend_change:.1f}% but clicks only increased by "
                        f"{clicks_change:.1f}%. This may indicate decreased campaign efficiency."
                    ),
                    current_value=current.spend,
                    previous_value=previous.spend,
                    change=spend_change,
                    platform="google",
                ))

        ctr_threshold = settings.enabled_threshold("ctr_drop")
        if ctr_threshold and current.ctr < ctr_threshold.threshold:
            anomalies.append(self._make(
                "google-ctr",
                type="ctr_drop",
                severity="high" if current.ctr < ctr_threshold.threshold * 0.5 else "medium",
                title="Google Ads: Low Click-Through Rate",
                description=(
                    f"CTR is {current.ctr:.2f}%, below the threshold of {ctr_threshold.threshold}%. "
                    "Consider reviewing ad copy and targeting."
                ),
                current_value=current.ctr,
                previous_value=previous.ctr,
                change=calculate_change(current.ctr, previous.ctr),
                platform="google",
            ))

        return anomalies

    def _check_meta(
        self,
        current: MetaAdsSnapshot,
        previous: MetaAdsSnapshot,
        settings: AlertSettings,
    ) -> List[Anomaly]:
        anomalies = []
        cur, prev = current.totals, previous.totals
        conv_change = calculate_change(cur.whatsapp_conversations, prev.whatsapp_conversations)

        spend_threshold = settings.enabled_threshold("spend_increase")
        if spend_threshold:
            spend_change = calculate_change(cur.spend, prev.spend)
            if spend_change > spend_threshold.threshold and conv_change < spend_change * 0.5:
                anomalies.append(self._make(
                    "meta-spend",
                    type="spend_increase",
                    severity="high" if spend_change > 50 else "medium",
                    title="Meta Ads: Spend Increase Without Proportional Conversions",
                    description=(
                        f"Ad spend increased by {spend_change:.1f}% but conversations only increased by "
                        f"{conv_change:.1f}%. Campaign performance may be declining."
                    ),
                    current_value=cur.spend,
                    previous_value=prev.spend,
                    change=spend_change,
                    platform="meta",
                ))

        cost_threshold = settings.enabled_threshold("cost_per_conv_increase")
        if cost_threshold:
            cost_change = calculate_change(cur.avg_cost_per_conversation, prev.avg_cost_per_conversation)
            if cost_change > cost_threshold.threshold:
                anomalies.append(self._make(
                    "meta-cost",
                    type="cost_per_conv_increase",
                    severity="high" if cost_change > 40 else "medium",
                    title="Meta Ads: Cost Per Conversation Increased",
                    description=(
                        f"Average cost per conversation increased by {cost_change:.1f}% from "
                        f"${prev.avg_cost_per_conversation:.2f} to ${cur.avg_cost_per_conversation:.2f}."
                    ),
                    current_value=cur.avg_cost_per_conversation,
                    previous_value=prev.avg_cost_per_conversation,
                    change=cost_change,
                    platform="meta",
                ))

        drop_threshold = settings.enabled_threshold("conversion_drop")
        if drop_threshold and conv_change < -drop_threshold.threshold:
            anomalies.append(self._make(
                "meta-conv-drop",
                type="conversion_drop",
                severity="high" if conv_change < -30 else "medium",
                title="Meta Ads: Conversion Drop Detected",
                description=(
                    f"WhatsApp conversations dropped by {abs(conv_change):.1f}% from "
                    f"{prev.whatsapp_conversations:g} to {cur.whatsapp_conversations:g}."
                ),
                current_value=cur.whatsapp_conversations,
                previous_value=prev.whatsapp_conversations,
                change=conv_change,
                platform="meta",
            ))

        return anomalies
