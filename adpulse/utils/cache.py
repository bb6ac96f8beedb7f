"""Simple in-memory TTL cache for per-source metric lookups.

Usage:
    cache = TTLCache(ttl_seconds=900)

    cached = cache.get("google-ads-metrics:default")
    if cached is None:
        data = await connector.fetch_data(start, end)
        cache.set("google-ads-metrics:default", data)

One instance is built per process (see adpulse.main.create_app) and handed
to route handlers through adpulse.dependencies, never imported as a global.
"""
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional


DEFAULT_TTL_SECONDS = 15 * 60


class TTLCache:
    """Thread-safe key/value cache; entries expire lazily when read."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._store: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> Optional[Any]:
        """Return the value if younger than the TTL, else drop it and return None."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            written_at, value = entry
            if self._clock() - written_at >= self._ttl:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._store[key] = (self._clock(), value)

    def timestamp(self, key: str) -> Optional[datetime]:
        """Write time of the entry, whether or not it has expired yet."""
        with self._lock:
            entry = self._store.get(key)
        if entry is None:
            return None
        return datetime.fromtimestamp(entry[0], tz=timezone.utc)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


def generate_cache_key(prefix: str, params: dict) -> str:
    """Stable key from a prefix and params, e.g. ``meta-ads:workspace:acme``."""
    parts = "|".join(f"{k}:{params[k]}" for k in sorted(params))
    return f"{prefix}:{parts}"
