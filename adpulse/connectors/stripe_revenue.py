"""
Stripe Revenue Connector

Sums successful, unrefunded charges over the reporting window.
"""
from datetime import date, datetime, time as dt_time, timezone
from typing import Any, Dict, List, Optional

import requests

from adpulse.config import Settings, get_settings
from adpulse.connectors.base import BaseConnector
from adpulse.models.metrics import DateRange, RevenueMetrics
from adpulse.utils.logger import log

STRIPE_API_BASE = "https://api.stripe.com/v1"


def is_countable_charge(charge: Dict[str, Any]) -> bool:
    return charge.get("status") == "succeeded" and bool(charge.get("paid")) and not charge.get("refunded")


def calculate_revenue_metrics(
    charges: List[Dict[str, Any]],
    start_date: date,
    end_date: date,
) -> RevenueMetrics:
    """Revenue from captured amounts (cents). ROAS and profit stay 0 until ad spend is known."""
    total_conversions = len(charges)
    total_revenue = sum(charge.get("amount_captured", 0) for charge in charges) / 100
    average_order_value = total_revenue / total_conversions if total_conversions else 0.0

    return RevenueMetrics(
        total_revenue=round(total_revenue, 2),
        total_conversions=total_conversions,
        average_order_value=round(average_order_value, 2),
        date_range=DateRange(start=start_date.isoformat(), end=end_date.isoformat()),
        last_updated=datetime.now(timezone.utc).isoformat(),
    )


class StripeRevenueConnector(BaseConnector):
    """Stripe charges connector"""

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__("stripe")
        self.settings = settings or get_settings()

    def is_configured(self) -> bool:
        return bool(self.settings.stripe_secret_key)

    def _fetch_charges(self, start_ts: int, end_ts: int) -> List[Dict[str, Any]]:
        charges: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {
            "limit": 100,
            "created[gte]": start_ts,
            "created[lte]": end_ts,
        }

        while True:
            response = requests.get(
                f"{STRIPE_API_BASE}/charges",
                headers={"Authorization": f"Bearer {self.settings.stripe_secret_key}"},
                params=params,
                timeout=30,
            )
            if response.status_code != 200:
                raise Exception(f"Stripe API error ({response.status_code}): {response.text}")

            page = response.json()
            data = page.get("data", [])
            charges.extend(c for c in data if is_countable_charge(c))

            if not page.get("has_more") or not data:
                break
            params["starting_after"] = data[-1]["id"]

        return charges

    async def fetch_data(self, start_date: date, end_date: date) -> RevenueMetrics:
        start_ts = int(datetime.combine(start_date, dt_time.min, tzinfo=timezone.utc).timestamp())
        end_ts = int(datetime.combine(end_date, dt_time(23, 59, 59), tzinfo=timezone.utc).timestamp())

        charges = self._fetch_charges(start_ts, end_ts)
        log.info(f"Fetched {len(charges)} Stripe charges")

        return calculate_revenue_metrics(charges, start_date, end_date)
