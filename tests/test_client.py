"""Dashboard client tests against a scripted HTTP session."""
import pytest
import requests

from adpulse.client import DashboardClient, DashboardClientError, main

SNAPSHOT = {
    "success": True,
    "data": {"google": {"impressions": 10, "clicks": 2, "ctr": 20.0, "spend": 5.0},
             "meta": None, "calendly": None, "stripe": None},
    "timestamp": "2024-05-01T12:00:00Z",
    "timeSinceUpdate": "2 hours ago",
    "errors": None,
}


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class ScriptedSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.headers = {}
        self.requests = []

    def _next(self, method, url, headers=None):
        self.requests.append((method, url, headers or {}))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, timeout=None):
        return self._next("GET", url)

    def post(self, url, headers=None, timeout=None):
        return self._next("POST", url, headers)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _client(session, clock=None, **kwargs):
    clock = clock or FakeClock()
    return DashboardClient(
        "http://dash.local/", session=session, clock=clock, sleep=clock.sleep, **kwargs
    )


def test_fetch_loads_snapshot():
    session = ScriptedSession(FakeResponse(200, SNAPSHOT))
    client = _client(session)

    assert client.fetch() == SNAPSHOT
    assert client.error is None
    assert client.is_loading is False
    assert client.time_since_update == "2 hours ago"
    assert session.requests[0][1] == "http://dash.local/api/metrics/cached"


def test_requests_inside_dedupe_window_are_shared():
    clock = FakeClock()
    session = ScriptedSession(FakeResponse(200, SNAPSHOT), FakeResponse(200, SNAPSHOT))
    client = _client(session, clock)

    client.fetch()
    clock.now += 1.5
    client.fetch()
    assert len(session.requests) == 1

    clock.now += 1.0
    client.fetch()
    assert len(session.requests) == 2


def test_manual_refresh_bypasses_dedupe():
    session = ScriptedSession(FakeResponse(200, SNAPSHOT), FakeResponse(200, SNAPSHOT))
    client = _client(session)

    client.fetch()
    client.refresh()
    assert len(session.requests) == 2


def test_failed_poll_retries_then_keeps_previous_data():
    clock = FakeClock()
    session = ScriptedSession(
        FakeResponse(200, SNAPSHOT),
        requests.ConnectionError("connection refused"),
        FakeResponse(500, {"success": False, "error": "boom"}),
        FakeResponse(502, ValueError("not json")),
        requests.Timeout("read timed out"),
    )
    client = _client(session, clock)
    client.fetch()

    clock.now += 120
    result = client.fetch()

    assert result == SNAPSHOT
    assert client.data == SNAPSHOT
    assert "timed out" in client.error
    assert clock.sleeps == [5.0, 5.0, 5.0]
    assert len(session.requests) == 5


def test_retry_recovers():
    session = ScriptedSession(
        FakeResponse(404, {"success": False, "error": "No cached data available"}),
        FakeResponse(200, SNAPSHOT),
    )
    client = _client(session)

    assert client.fetch() == SNAPSHOT
    assert client.error is None


def test_trigger_refresh_sends_bearer_secret_and_rereads():
    session = ScriptedSession(
        FakeResponse(200, {"success": True, "data": {"google": "fetched"}}),
        FakeResponse(200, SNAPSHOT),
    )
    client = _client(session, cron_secret="s3cret")

    body = client.trigger_refresh()

    method, url, headers = session.requests[0]
    assert (method, url) == ("POST", "http://dash.local/api/cron/refresh-metrics")
    assert headers == {"Authorization": "Bearer s3cret"}
    assert body["data"] == {"google": "fetched"}
    assert client.data == SNAPSHOT


def test_trigger_refresh_with_api_key():
    session = ScriptedSession(FakeResponse(200, {"success": True}), FakeResponse(200, SNAPSHOT))
    _client(session, api_key="k").trigger_refresh()
    assert session.requests[0][2] == {"x-api-key": "k"}


def test_trigger_refresh_errors():
    with pytest.raises(DashboardClientError):
        _client(ScriptedSession()).trigger_refresh()

    session = ScriptedSession(FakeResponse(429, {"success": False, "error": "Rate limit exceeded"}))
    with pytest.raises(DashboardClientError, match="Rate limit exceeded"):
        _client(session, cron_secret="s").trigger_refresh()


def test_watch_polls_on_interval():
    clock = FakeClock()
    session = ScriptedSession(*[FakeResponse(200, SNAPSHOT) for _ in range(3)])
    client = _client(session, clock, poll_interval=120)
    seen = []

    client.watch(on_update=lambda c: seen.append(c.data), iterations=3)

    assert len(seen) == 3
    assert clock.sleeps == [120, 120]


def test_workspace_header_is_set():
    session = ScriptedSession()
    _client(session, workspace_id="acme")
    assert session.headers["X-Workspace-Id"] == "acme"


def test_cli_once(monkeypatch, capsys):
    session = ScriptedSession(FakeResponse(200, SNAPSHOT))
    monkeypatch.setattr(requests, "Session", lambda: session)

    assert main(["--url", "http://dash.local", "--once"]) == 0
    out = capsys.readouterr().out
    assert "Updated 2 hours ago" in out
    assert "Google Ads: 10 impressions" in out
