"""
Meta Ads Connector

Pulls campaign insights (reach, impressions, spend, WhatsApp conversations,
leads) from the Meta Graph API and rolls them up into account totals.
"""
import json
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from adpulse.config import Settings, get_settings
from adpulse.connectors.base import BaseConnector
from adpulse.models.metrics import (
    DateRange, MetaAdsMetrics, MetaAdsSnapshot, MetaCampaignMetrics
)
from adpulse.utils.logger import log

CONVERSATION_ACTIONS = {
    "onsite_conversion.messaging_conversation_started_7d",
    "messaging_conversation_started_7d",
}
LEAD_ACTIONS = {"lead", "onsite_conversion.lead"}

INSIGHT_FIELDS = "campaign_id,campaign_name,reach,impressions,spend,actions,date_start,date_stop"


def _ratio(numerator: float, denominator: float) -> float:
    return round(numerator / denominator, 2) if denominator > 0 else 0.0


def build_campaign_metrics(campaign: Dict[str, Any]) -> Optional[MetaCampaignMetrics]:
    """Convert one Graph API campaign (with nested insights) to metrics; None if it has no insights."""
    insights = (campaign.get("insights") or {}).get("data") or []
    if not insights:
        return None
    insight = insights[0]

    reach = float(insight.get("reach") or 0)
    impressions = float(insight.get("impressions") or 0)
    spend = float(insight.get("spend") or 0)

    conversations = 0.0
    leads = 0.0
    for action in insight.get("actions") or []:
        action_type = action.get("action_type")
        value = float(action.get("value") or 0)
        if action_type in CONVERSATION_ACTIONS:
            conversations += value
        if action_type in LEAD_ACTIONS:
            leads += value

    return MetaCampaignMetrics(
        campaign_id=campaign["id"],
        campaign_name=campaign.get("name", ""),
        reach=reach,
        impressions=impressions,
        whatsapp_conversations=conversations,
        spend=spend,
        avg_cost_per_conversation=_ratio(spend, conversations),
        leads=leads if leads > 0 else None,
        avg_cost_per_lead=_ratio(spend, leads) if leads > 0 else None,
        status=campaign.get("status", "UNKNOWN"),
        objective=campaign.get("objective"),
    )


def summarize_campaigns(
    campaigns: List[MetaCampaignMetrics],
    start_date: date,
    end_date: date,
) -> MetaAdsSnapshot:
    """Roll per-campaign metrics up into account totals."""
    reach = sum(c.reach for c in campaigns)
    spend = sum(c.spend for c in campaigns)
    conversations = sum(c.whatsapp_conversations for c in campaigns)
    leads = sum(c.leads or 0 for c in campaigns)

    totals = MetaAdsMetrics(
        reach=reach,
        whatsapp_conversations=conversations,
        spend=round(spend, 2),
        avg_cost_per_conversation=_ratio(spend, conversations),
        leads=leads if leads > 0 else None,
        avg_cost_per_lead=_ratio(spend, leads) if leads > 0 else None,
        date_range=DateRange(start=start_date.isoformat(), end=end_date.isoformat()),
    )
    return MetaAdsSnapshot(campaigns=campaigns, totals=totals)


class MetaAdsConnector(BaseConnector):
    """Meta Graph API connector"""

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__("meta_ads")
        self.settings = settings or get_settings()
        self.base_url = f"https://graph.facebook.com/{self.settings.meta_graph_api_version}"

    def is_configured(self) -> bool:
        return bool(self.settings.meta_access_token and self.settings.meta_ad_account_id)

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = requests.get(url, params=params, timeout=30)
        if response.status_code != 200:
            try:
                message = response.json().get("error", {}).get("message")
            except ValueError:
                message = None
            raise Exception(f"Meta API error ({response.status_code}): {message or response.reason}")
        return response.json()

    async def fetch_data(self, start_date: date, end_date: date) -> MetaAdsSnapshot:
        time_range = json.dumps({"since": start_date.isoformat(), "until": end_date.isoformat()})
        params = {
            "fields": (
                "id,name,status,objective,"
                f"insights.time_range({time_range}){{{INSIGHT_FIELDS}}}"
            ),
            "limit": 100,
            "access_token": self.settings.meta_access_token,
        }

        url = f"{self.base_url}/{self.settings.meta_ad_account_id}/campaigns"
        raw_campaigns: List[Dict[str, Any]] = []
        while url:
            page = self._get(url, params)
            raw_campaigns.extend(page.get("data", []))
            # The "next" link already carries every query parameter
            url = (page.get("paging") or {}).get("next")
            params = None

        log.info(f"Meta returned {len(raw_campaigns)} campaigns")

        campaigns = []
        for raw in raw_campaigns:
            metrics = build_campaign_metrics(raw)
            if metrics is None:
                log.debug(f"No insights for Meta campaign: {raw.get('name')}")
                continue
            campaigns.append(metrics)

        return summarize_campaigns(campaigns, start_date, end_date)
