"""
Google Ads Connector

Pulls account-level impressions, clicks, CTR and spend for the reporting
window from the Google Ads API.
"""
from datetime import date
from typing import Iterable, Optional

from google.ads.googleads.client import GoogleAdsClient

from adpulse.config import Settings, get_settings
from adpulse.connectors.base import BaseConnector
from adpulse.models.metrics import DateRange, GoogleAdsMetrics
from adpulse.utils.logger import log

CAMPAIGN_METRICS_QUERY = """
    SELECT
      metrics.impressions,
      metrics.clicks,
      metrics.ctr,
      metrics.cost_micros
    FROM campaign
    WHERE segments.date BETWEEN '{start}' AND '{end}'
"""


def aggregate_campaign_rows(rows: Iterable, start_date: date, end_date: date) -> GoogleAdsMetrics:
    """
    Sum campaign rows into account totals.

    CTR is the mean of the per-row ratios scaled to a percentage; cost is
    converted from micros to currency units.
    """
    impressions = 0
    clicks = 0
    cost_micros = 0
    ctr_total = 0.0
    row_count = 0

    for row in rows:
        metrics = row.metrics
        impressions += int(metrics.impressions or 0)
        clicks += int(metrics.clicks or 0)
        cost_micros += int(metrics.cost_micros or 0)
        ctr_total += float(metrics.ctr or 0)
        row_count += 1

    avg_ctr = (ctr_total / row_count) * 100 if row_count else 0.0

    return GoogleAdsMetrics(
        impressions=impressions,
        clicks=clicks,
        ctr=round(avg_ctr, 2),
        spend=round(cost_micros / 1_000_000, 2),
        date_range=DateRange(start=start_date.isoformat(), end=end_date.isoformat()),
    )


class GoogleAdsConnector(BaseConnector):
    """Google Ads API connector (account totals over the window)"""

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__("google_ads")
        self.settings = settings or get_settings()
        self.client = None

    def is_configured(self) -> bool:
        s = self.settings
        return all([
            s.google_ads_client_id,
            s.google_ads_client_secret,
            s.google_ads_developer_token,
            s.google_ads_refresh_token,
            s.google_ads_customer_id,
        ])

    @property
    def customer_id(self) -> str:
        return (self.settings.google_ads_customer_id or "").replace("-", "")

    def _get_client(self) -> GoogleAdsClient:
        if self.client is None:
            credentials = {
                "developer_token": self.settings.google_ads_developer_token,
                "client_id": self.settings.google_ads_client_id,
                "client_secret": self.settings.google_ads_client_secret,
                "refresh_token": self.settings.google_ads_refresh_token,
                "use_proto_plus": True,
            }
            if self.settings.google_ads_login_customer_id:
                credentials["login_customer_id"] = self.settings.google_ads_login_customer_id.replace("-", "")
            self.client = GoogleAdsClient.load_from_dict(credentials)
        return self.client

    async def fetch_data(self, start_date: date, end_date: date) -> GoogleAdsMetrics:
        ga_service = self._get_client().get_service("GoogleAdsService")
        query = CAMPAIGN_METRICS_QUERY.format(start=start_date.isoformat(), end=end_date.isoformat())

        rows = []
        stream = ga_service.search_stream(customer_id=self.customer_id, query=query)
        for batch in stream:
            rows.extend(batch.results)

        log.info(f"Google Ads returned {len(rows)} campaign rows")
        return aggregate_campaign_rows(rows, start_date, end_date)
