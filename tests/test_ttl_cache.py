"""In-memory TTL cache and rate limiter tests."""
from adpulse.utils.cache import TTLCache, generate_cache_key
from adpulse.utils.rate_limit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_set_then_get_returns_value():
    cache = TTLCache(ttl_seconds=900, clock=FakeClock())
    cache.set("google-ads-metrics:workspace:default", {"clicks": 10})
    assert cache.get("google-ads-metrics:workspace:default") == {"clicks": 10}


def test_entry_expires_and_is_removed_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=15 * 60, clock=clock)
    cache.set("k", "v")

    clock.now += 14 * 60
    assert cache.get("k") == "v"

    clock.now += 2 * 60
    assert cache.get("k") is None
    assert "k" not in cache
    assert len(cache) == 0


def test_timestamp_reports_write_time():
    clock = FakeClock(1_700_000_000.0)
    cache = TTLCache(clock=clock)
    cache.set("k", 1)

    assert cache.timestamp("k").timestamp() == 1_700_000_000.0
    assert cache.timestamp("missing") is None


def test_set_overwrites_and_restarts_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("k", 1)
    clock.now += 50
    cache.set("k", 2)
    clock.now += 50

    assert cache.get("k") == 2


def test_clear():
    cache = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert len(cache) == 0


def test_generate_cache_key_is_order_independent():
    a = generate_cache_key("meta-metrics", {"workspace": "acme", "days": 30})
    b = generate_cache_key("meta-metrics", {"days": 30, "workspace": "acme"})
    assert a == b == "meta-metrics:days:30|workspace:acme"


def test_rate_limiter_blocks_after_limit_per_identifier():
    limiter = SlidingWindowRateLimiter(max_requests=5, window_seconds=3600, clock=FakeClock())

    assert all(limiter.check("cron-job") for _ in range(5))
    assert limiter.check("cron-job") is False
    assert limiter.check("10.0.0.7") is True


def test_rate_limiter_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=3600, clock=clock)

    limiter.check("a")
    clock.now += 1800
    limiter.check("a")
    assert limiter.check("a") is False

    clock.now += 1801
    assert limiter.check("a") is True
    assert limiter.check("a") is False


def test_rate_limiter_reset():
    limiter = SlidingWindowRateLimiter(max_requests=1, clock=FakeClock())
    limiter.check("a")
    limiter.reset()
    assert limiter.check("a") is True
