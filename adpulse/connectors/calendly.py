"""
Calendly Connector

Counts booked, completed and no-show meetings over the reporting window.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from adpulse.config import Settings, get_settings
from adpulse.connectors.base import BaseConnector
from adpulse.models.metrics import CalendlyMetrics, DateRange
from adpulse.utils.logger import log

CALENDLY_API_BASE = "https://api.calendly.com"


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def calculate_calendly_metrics(
    events: List[Dict[str, Any]],
    invitees: List[Dict[str, Any]],
    start_date: date,
    end_date: date,
    now: Optional[datetime] = None,
) -> CalendlyMetrics:
    """
    A meeting counts as completed when it is in the past, still active, and
    its invitee was neither a no-show nor canceled.
    """
    now = now or datetime.now(timezone.utc)
    invitee_by_event = {}
    for invitee in invitees:
        invitee_by_event.setdefault(invitee.get("event"), invitee)

    total_booked = len(events)
    no_shows = sum(1 for inv in invitees if inv.get("no_show"))

    completed = 0
    for event in events:
        invitee = invitee_by_event.get(event.get("uri")) or {}
        if (
            _parse_time(event["start_time"]) < now
            and event.get("status") == "active"
            and not invitee.get("no_show")
            and not invitee.get("canceled")
        ):
            completed += 1

    conversion_rate = (completed / total_booked) * 100 if total_booked else 0.0

    return CalendlyMetrics(
        total_booked=total_booked,
        completed=completed,
        no_shows=no_shows,
        conversion_rate=round(conversion_rate, 2),
        date_range=DateRange(start=start_date.isoformat(), end=end_date.isoformat()),
        last_updated=now.isoformat(),
    )


class CalendlyConnector(BaseConnector):
    """Calendly v2 API connector"""

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__("calendly")
        self.settings = settings or get_settings()

    def is_configured(self) -> bool:
        return bool(self.settings.calendly_access_token and self.settings.calendly_user_uri)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.calendly_access_token}",
            "Content-Type": "application/json",
        }

    def _fetch_events(self, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        events: List[Dict[str, Any]] = []
        params = {
            "user": self.settings.calendly_user_uri,
            "min_start_time": f"{start_date.isoformat()}T00:00:00.000Z",
            "max_start_time": f"{end_date.isoformat()}T23:59:59.999Z",
            "count": 100,
            "status": "active",
        }

        while True:
            response = requests.get(
                f"{CALENDLY_API_BASE}/scheduled_events",
                headers=self.headers,
                params=params,
                timeout=30,
            )
            if response.status_code != 200:
                raise Exception(f"Calendly API error ({response.status_code}): {response.text}")

            data = response.json()
            events.extend(data.get("collection", []))

            next_token = (data.get("pagination") or {}).get("next_page_token")
            if not next_token:
                break
            params["page_token"] = next_token

        return events

    def _fetch_invitees(self, events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        invitees: List[Dict[str, Any]] = []
        for event in events:
            event_uuid = event["uri"].rstrip("/").split("/")[-1]
            try:
                response = requests.get(
                    f"{CALENDLY_API_BASE}/scheduled_events/{event_uuid}/invitees",
                    headers=self.headers,
                    params={"count": 100},
                    timeout=30,
                )
            except requests.RequestException as e:
                log.warning(f"Failed to fetch invitees for event {event['uri']}: {e}")
                continue

            if response.status_code == 200:
                invitees.extend(response.json().get("collection", []))
            else:
                log.warning(f"Calendly invitees for {event['uri']} returned {response.status_code}")
        return invitees

    async def fetch_data(self, start_date: date, end_date: date) -> CalendlyMetrics:
        events = self._fetch_events(start_date, end_date)
        log.info(f"Fetched {len(events)} Calendly events")

        invitees = self._fetch_invitees(events)
        log.info(f"Fetched {len(invitees)} Calendly invitees")

        return calculate_calendly_metrics(events, invitees, start_date, end_date)
