"""
Persistent metrics cache tests.

Covers the snapshot round trip, cache-miss behaviour for missing and
corrupt files, staleness and the "time since update" buckets.
"""
from datetime import datetime, timedelta, timezone

from adpulse.models.metrics import CachedMetrics, DateRange, GoogleAdsMetrics, SourceErrors
from adpulse.services.persistent_cache import PersistentMetricsCache, format_elapsed


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _snapshot(timestamp=T0) -> CachedMetrics:
    return CachedMetrics(
        google=GoogleAdsMetrics(
            impressions=12000,
            clicks=340,
            ctr=2.83,
            spend=512.4,
            date_range=DateRange(start="2024-04-01", end="2024-05-01"),
        ),
        timestamp=timestamp,
        success=True,
        errors=SourceErrors(meta="Meta access token expired"),
    )


def test_write_then_read_returns_same_snapshot(tmp_path):
    cache = PersistentMetricsCache(str(tmp_path))
    snapshot = _snapshot()

    assert cache.write(snapshot) is True
    assert cache.read() == snapshot


def test_snapshot_file_uses_camel_case_keys(tmp_path):
    cache = PersistentMetricsCache(str(tmp_path))
    cache.write(_snapshot())

    raw = (tmp_path / "metrics.json").read_text()
    assert '"dateRange"' in raw
    assert '"date_range"' not in raw


def test_write_replaces_previous_snapshot(tmp_path):
    cache = PersistentMetricsCache(str(tmp_path))
    cache.write(_snapshot())

    replacement = CachedMetrics(timestamp=T0 + timedelta(hours=6), success=False)
    cache.write(replacement)

    stored = cache.read()
    assert stored.google is None
    assert stored.errors is None
    assert stored.success is False


def test_read_missing_file_is_cache_miss(tmp_path):
    cache = PersistentMetricsCache(str(tmp_path / "never-created"))
    assert cache.read() is None


def test_read_corrupt_file_is_cache_miss(tmp_path):
    (tmp_path / "metrics.json").write_text("{not json")
    cache = PersistentMetricsCache(str(tmp_path))
    assert cache.read() is None


def test_read_wrong_shape_is_cache_miss(tmp_path):
    (tmp_path / "metrics.json").write_text("[1, 2, 3]")
    cache = PersistentMetricsCache(str(tmp_path))
    assert cache.read() is None


def test_write_creates_cache_directory(tmp_path):
    cache = PersistentMetricsCache(str(tmp_path / "nested" / "cache"))
    assert cache.write(_snapshot()) is True
    assert (tmp_path / "nested" / "cache" / "metrics.json").exists()


def test_write_failure_returns_false(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    cache = PersistentMetricsCache(str(blocker))

    assert cache.write(_snapshot()) is False


def test_should_refresh_lifecycle(tmp_path):
    clock = FakeClock(T0)
    cache = PersistentMetricsCache(str(tmp_path), clock=clock)

    assert cache.should_refresh() is True

    cache.write(_snapshot(timestamp=T0))
    assert cache.should_refresh() is False

    clock.advance(hours=5, minutes=59)
    assert cache.should_refresh() is False

    clock.advance(minutes=1)
    assert cache.should_refresh() is True


def test_time_since_last_update_buckets(tmp_path):
    clock = FakeClock(T0)
    cache = PersistentMetricsCache(str(tmp_path), clock=clock)
    assert cache.time_since_last_update() is None

    cache.write(_snapshot(timestamp=T0))

    clock.now = T0 + timedelta(minutes=45)
    assert cache.time_since_last_update() == "45 minutes ago"

    clock.now = T0 + timedelta(minutes=90)
    assert cache.time_since_last_update() == "1 hour ago"

    clock.now = T0 + timedelta(hours=50)
    assert cache.time_since_last_update() == "2 days ago"


def test_format_elapsed_singular_and_zero():
    assert format_elapsed(timedelta(seconds=20)) == "0 minutes ago"
    assert format_elapsed(timedelta(minutes=1)) == "1 minute ago"
    assert format_elapsed(timedelta(hours=23, minutes=59)) == "23 hours ago"
    assert format_elapsed(timedelta(hours=24)) == "1 day ago"


def test_naive_timestamp_treated_as_utc(tmp_path):
    (tmp_path / "metrics.json").write_text(
        '{"timestamp": "2024-05-01T12:00:00", "success": true}'
    )
    clock = FakeClock(T0 + timedelta(hours=2))
    cache = PersistentMetricsCache(str(tmp_path), clock=clock)

    assert cache.time_since_last_update() == "2 hours ago"
