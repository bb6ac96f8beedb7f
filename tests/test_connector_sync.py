"""
Connector sync tests.

Exercises the retry wrapper around fetch_data: missing credentials,
transient failures that recover, and errors that must fail fast.
"""
import asyncio
from datetime import date

from adpulse.connectors.base import BaseConnector
from adpulse.connectors.stripe_revenue import StripeRevenueConnector
from adpulse.config import Settings
from adpulse.utils.retry import calculate_backoff, is_retryable_error

START = date(2024, 4, 1)
END = date(2024, 5, 1)


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


class FlakyConnector(BaseConnector):
    """Raises the queued errors in order, then returns its result."""

    RETRY_BASE_DELAY = 0.0
    RETRY_MAX_DELAY = 0.0

    def __init__(self, errors=(), configured=True):
        super().__init__("flaky")
        self.errors = list(errors)
        self.configured = configured
        self.fetches = 0

    def is_configured(self) -> bool:
        return self.configured

    async def fetch_data(self, start_date: date, end_date: date):
        self.fetches += 1
        if self.errors:
            raise self.errors.pop(0)
        return {"clicks": 42}


def test_unconfigured_connector_reports_failed_sync():
    connector = FlakyConnector(configured=False)

    result = _run(connector.sync(START, END))

    assert result["success"] is False
    assert "not configured" in result["error"]
    assert connector.fetches == 0
    assert connector.error_count == 0


def test_real_connector_without_credentials_does_not_raise():
    result = _run(StripeRevenueConnector(Settings(stripe_secret_key=None)).sync(START, END))

    assert result["success"] is False
    assert result["source"] == "stripe"
    assert "not configured" in result["error"]


def test_transient_errors_are_retried_until_success():
    connector = FlakyConnector(errors=[
        ConnectionError("connection reset by peer"),
        Exception("Meta API error (503): Service temporarily unavailable"),
    ])

    result = _run(connector.sync(START, END))

    assert result["success"] is True
    assert result["data"] == {"clicks": 42}
    assert result["retry_stats"]["retries"] == 2
    assert len(result["retry_stats"]["errors"]) == 2
    assert connector.fetches == 3
    assert connector.retry_count == 2


def test_auth_error_is_not_retried():
    connector = FlakyConnector(errors=[Exception("Stripe API error (401): Invalid API Key provided")])

    result = _run(connector.sync(START, END))

    assert result["success"] is False
    assert "(401)" in result["error"]
    assert result["retry_stats"]["retries"] == 0
    assert connector.fetches == 1
    assert connector.error_count == 1


def test_gives_up_after_max_attempts():
    connector = FlakyConnector(errors=[TimeoutError("read timed out")] * 5)

    result = _run(connector.sync(START, END))

    assert result["success"] is False
    assert connector.fetches == FlakyConnector.RETRY_MAX_ATTEMPTS
    assert result["retry_stats"]["retries"] == FlakyConnector.RETRY_MAX_ATTEMPTS - 1


def test_is_retryable_error_classification():
    assert is_retryable_error(ConnectionError("boom"))
    assert is_retryable_error(TimeoutError())
    assert is_retryable_error(Exception("Calendly API error (429): Too Many Requests"))
    assert is_retryable_error(Exception("Google Ads HTTP 502 bad gateway"))
    assert is_retryable_error(Exception("rate limit reached for ad account"))

    assert not is_retryable_error(Exception("Stripe API error (401): Invalid API Key"))
    assert not is_retryable_error(Exception("Meta API error (400): Invalid parameter"))
    assert not is_retryable_error(ValueError("developer token not approved"))


def test_backoff_grows_and_is_capped():
    assert calculate_backoff(1, base_delay=2.0, jitter=False) == 2.0
    assert calculate_backoff(3, base_delay=2.0, jitter=False) == 8.0
    assert calculate_backoff(10, base_delay=2.0, max_delay=60.0, jitter=False) == 60.0

    jittered = calculate_backoff(2, base_delay=2.0)
    assert 4.0 <= jittered <= 5.0
