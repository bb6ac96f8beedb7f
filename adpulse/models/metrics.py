"""
Metric snapshot models

Shapes of the per-source metric blocks and of the persisted CachedMetrics
snapshot. Field names serialize as camelCase so the cache file and API
payloads keep the shape dashboards already read.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models that serialize with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DateRange(CamelModel):
    start: str  # YYYY-MM-DD
    end: str


class GoogleAdsMetrics(CamelModel):
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0  # percent
    spend: float = 0.0
    date_range: DateRange


class MetaCampaignMetrics(CamelModel):
    campaign_id: str
    campaign_name: str
    reach: float = 0
    impressions: float = 0
    whatsapp_conversations: float = 0
    spend: float = 0.0
    avg_cost_per_conversation: float = 0.0
    leads: Optional[float] = None
    avg_cost_per_lead: Optional[float] = None
    status: str = "UNKNOWN"
    objective: Optional[str] = None


class MetaAdsMetrics(CamelModel):
    reach: float = 0
    whatsapp_conversations: float = 0
    spend: float = 0.0
    avg_cost_per_conversation: float = 0.0
    leads: Optional[float] = None
    avg_cost_per_lead: Optional[float] = None
    date_range: DateRange


class MetaAdsSnapshot(CamelModel):
    campaigns: List[MetaCampaignMetrics] = []
    totals: MetaAdsMetrics


class CalendlyMetrics(CamelModel):
    total_booked: int = 0
    completed: int = 0
    no_shows: int = 0
    conversion_rate: float = 0.0  # percent
    date_range: DateRange
    last_updated: Optional[str] = None


class RevenueMetrics(CamelModel):
    total_revenue: float = 0.0
    total_conversions: int = 0
    average_order_value: float = 0.0
    roas: float = 0.0
    profit: float = 0.0
    date_range: DateRange
    last_updated: Optional[str] = None

    def with_ad_spend(self, ad_spend: float) -> "RevenueMetrics":
        """Copy with ROAS and profit computed against combined ad spend."""
        roas = round(self.total_revenue / ad_spend, 2) if ad_spend > 0 else 0.0
        profit = round(self.total_revenue - ad_spend, 2) if ad_spend > 0 else 0.0
        return self.model_copy(update={"roas": roas, "profit": profit})


class SourceErrors(CamelModel):
    google: Optional[str] = None
    meta: Optional[str] = None
    calendly: Optional[str] = None
    stripe: Optional[str] = None

    def is_empty(self) -> bool:
        return not any([self.google, self.meta, self.calendly, self.stripe])


class CachedMetrics(CamelModel):
    """Singleton snapshot persisted by PersistentMetricsCache."""

    google: Optional[GoogleAdsMetrics] = None
    meta: Optional[MetaAdsSnapshot] = None
    calendly: Optional[CalendlyMetrics] = None
    stripe: Optional[RevenueMetrics] = None
    timestamp: datetime
    success: bool
    errors: Optional[SourceErrors] = None
