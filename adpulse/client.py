"""
Dashboard client

Polls the cached metrics endpoint on a fixed interval, the way the
dashboard page does: overlapping requests inside a short window share one
result, failed polls are retried a few times, and the last good snapshot
stays visible while a new one is loading.
"""
import argparse
import sys
import time
from typing import Any, Callable, Dict, Optional

import requests

from adpulse.utils.logger import log

CACHED_METRICS_PATH = "/api/metrics/cached"
REFRESH_PATH = "/api/cron/refresh-metrics"


class DashboardClientError(Exception):
    """Raised when the refresh trigger rejects or fails a request"""
    pass


class DashboardClient:
    def __init__(
        self,
        base_url: str,
        poll_interval: float = 120.0,
        dedupe_interval: float = 2.0,
        error_retry_count: int = 3,
        error_retry_interval: float = 5.0,
        cron_secret: Optional[str] = None,
        api_key: Optional[str] = None,
        workspace_id: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.dedupe_interval = dedupe_interval
        self.error_retry_count = error_retry_count
        self.error_retry_interval = error_retry_interval
        self.cron_secret = cron_secret
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        if workspace_id:
            self.session.headers["X-Workspace-Id"] = workspace_id

        self._clock = clock
        self._sleep = sleep
        self._last_fetch: Optional[float] = None

        self.data: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None
        self.is_loading = False

    @property
    def time_since_update(self) -> Optional[str]:
        return self.data.get("timeSinceUpdate") if self.data else None

    def _get_cached(self) -> Dict[str, Any]:
        response = self.session.get(f"{self.base_url}{CACHED_METRICS_PATH}", timeout=self.timeout)
        body = response.json()
        if response.status_code != 200 or not body.get("success"):
            raise DashboardClientError(body.get("error") or f"HTTP {response.status_code}")
        return body

    def fetch(self, force: bool = False) -> Optional[Dict[str, Any]]:
        """
        Load the cached snapshot.

        Calls within dedupe_interval of the previous fetch return the last
        result without a request unless force is set. On failure the
        previous data is kept and `error` is set.
        """
        now = self._clock()
        if not force and self._last_fetch is not None and now - self._last_fetch < self.dedupe_interval:
            return self.data

        self._last_fetch = now
        self.is_loading = True
        try:
            for attempt in range(self.error_retry_count + 1):
                try:
                    self.data = self._get_cached()
                    self.error = None
                    return self.data
                except (requests.RequestException, ValueError, DashboardClientError) as e:
                    self.error = str(e)
                    if attempt < self.error_retry_count:
                        log.warning(
                            f"Metrics poll failed (attempt {attempt + 1}/{self.error_retry_count + 1}): {e}. "
                            f"Retrying in {self.error_retry_interval}s..."
                        )
                        self._sleep(self.error_retry_interval)

            log.error(f"Metrics poll failed after {self.error_retry_count + 1} attempts: {self.error}")
            return self.data
        finally:
            self.is_loading = False

    def refresh(self) -> Optional[Dict[str, Any]]:
        """Manual refresh: re-read the cached snapshot now."""
        return self.fetch(force=True)

    def trigger_refresh(self) -> Dict[str, Any]:
        """Ask the server to recompute the snapshot, then re-read it."""
        headers = {}
        if self.cron_secret:
            headers["Authorization"] = f"Bearer {self.cron_secret}"
        elif self.api_key:
            headers["x-api-key"] = self.api_key
        else:
            raise DashboardClientError("A cron secret or API key is required to trigger a refresh")

        response = self.session.post(f"{self.base_url}{REFRESH_PATH}", headers=headers, timeout=self.timeout)
        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code != 200:
            raise DashboardClientError(body.get("error") or f"HTTP {response.status_code}")

        self.refresh()
        return body

    def watch(self, on_update: Optional[Callable[["DashboardClient"], None]] = None, iterations: Optional[int] = None):
        """Poll every poll_interval seconds; runs forever when iterations is None."""
        count = 0
        while iterations is None or count < iterations:
            self.fetch()
            if on_update:
                on_update(self)
            count += 1
            if iterations is None or count < iterations:
                self._sleep(self.poll_interval)


def _print_summary(client: DashboardClient):
    if client.data is None:
        print(f"No data: {client.error or 'unknown error'}")
        return

    data = client.data.get("data") or {}
    print(f"Updated {client.time_since_update}")

    google = data.get("google")
    if google:
        print(f"  Google Ads: {google['impressions']} impressions, {google['clicks']} clicks, "
              f"CTR {google['ctr']}%, spend ${google['spend']}")

    meta = (data.get("meta") or {}).get("totals")
    if meta:
        print(f"  Meta Ads: {meta['reach']} reach, {meta['whatsappConversations']} conversations, "
              f"spend ${meta['spend']}")

    calendly = data.get("calendly")
    if calendly:
        print(f"  Calendly: {calendly['totalBooked']} booked, {calendly['completed']} completed, "
              f"{calendly['noShows']} no-shows")

    stripe = data.get("stripe")
    if stripe:
        print(f"  Stripe: revenue ${stripe['totalRevenue']}, ROAS {stripe['roas']}")

    for source, message in (client.data.get("errors") or {}).items():
        print(f"  ! {source}: {message}")

    if client.error:
        print(f"  (showing previous data, last poll failed: {client.error})")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="adpulse-watch", description="Watch cached AdPulse metrics")
    parser.add_argument("--url", default="http://localhost:8000", help="Server base URL")
    parser.add_argument("--interval", type=float, default=120.0, help="Poll interval in seconds")
    parser.add_argument("--once", action="store_true", help="Fetch once and exit")
    parser.add_argument("--trigger", action="store_true", help="Trigger a server-side refresh first")
    parser.add_argument("--cron-secret", default=None, help="CRON_SECRET for --trigger")
    parser.add_argument("--api-key", default=None, help="API_SECRET_KEY for --trigger")
    parser.add_argument("--workspace", default=None, help="Workspace id header")
    args = parser.parse_args(argv)

    client = DashboardClient(
        args.url,
        poll_interval=args.interval,
        cron_secret=args.cron_secret,
        api_key=args.api_key,
        workspace_id=args.workspace,
    )

    if args.trigger:
        try:
            result = client.trigger_refresh()
            print(f"Refresh triggered: {result.get('data')}")
        except (DashboardClientError, requests.RequestException) as e:
            print(f"✗ Refresh trigger failed: {e}")
            return 1

    try:
        client.watch(on_update=_print_summary, iterations=1 if args.once else None)
    except KeyboardInterrupt:
        pass

    return 0 if client.data is not None else 1


if __name__ == "__main__":
    sys.exit(main())
