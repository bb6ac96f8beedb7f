"""
Persistent metrics cache

Keeps the latest aggregated CachedMetrics snapshot in a single JSON file
under the cache directory. One snapshot per deployment; every refresh
replaces it wholesale.

Failure semantics:
- read() returns None for a missing file and for a file that cannot be
  parsed or validated. Both are cache misses to callers; corruption is
  logged as a warning so it is visible in the error trail.
- write() returns False on any I/O error instead of raising.
"""
import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from adpulse.models.metrics import CachedMetrics
from adpulse.utils.json_store import read_json, write_json_atomic
from adpulse.utils.logger import log

CACHE_FILENAME = "metrics.json"
DEFAULT_REFRESH_INTERVAL = timedelta(hours=6)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_elapsed(elapsed: timedelta) -> str:
    """Human-readable bucket: minutes under an hour, hours under a day, else days."""
    minutes = max(0, int(elapsed.total_seconds() // 60))
    if minutes < 60:
        return f"{minutes} minute{'' if minutes == 1 else 's'} ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'' if hours == 1 else 's'} ago"

    days = hours // 24
    return f"{days} day{'' if days == 1 else 's'} ago"


class PersistentMetricsCache:
    """File-backed store for the CachedMetrics snapshot."""

    def __init__(
        self,
        cache_dir: str,
        refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.cache_dir = cache_dir
        self.path = os.path.join(cache_dir, CACHE_FILENAME)
        self.refresh_interval = refresh_interval
        self._clock = clock
        self._write_lock = threading.Lock()

    def read(self) -> Optional[CachedMetrics]:
        """Return the persisted snapshot, or None on a cache miss."""
        if not os.path.exists(self.path):
            return None

        try:
            return CachedMetrics.model_validate(read_json(self.path))
        except FileNotFoundError:
            return None
        except (ValueError, OSError) as e:
            log.warning(f"Cached metrics at {self.path} are unreadable, treating as empty: {e}")
            return None

    def write(self, metrics: CachedMetrics) -> bool:
        """Replace the snapshot. Returns False if it could not be saved."""
        try:
            with self._write_lock:
                write_json_atomic(self.path, metrics.to_json_dict())
            log.info(f"Cached metrics written to {self.path}")
            return True
        except (OSError, TypeError, ValueError) as e:
            log.error(f"Error writing cached metrics to {self.path}: {e}")
            return False

    def age_of(self, cached: CachedMetrics) -> timedelta:
        """Elapsed time since an already loaded snapshot was written."""
        last_update = cached.timestamp
        if last_update.tzinfo is None:
            last_update = last_update.replace(tzinfo=timezone.utc)
        return self._clock() - last_update

    def elapsed_since_update(self) -> Optional[timedelta]:
        cached = self.read()
        if cached is None:
            return None
        return self.age_of(cached)

    def time_since_last_update(self) -> Optional[str]:
        """E.g. "45 minutes ago"; None when nothing is cached."""
        elapsed = self.elapsed_since_update()
        if elapsed is None:
            return None
        return format_elapsed(elapsed)

    def should_refresh(self) -> bool:
        """True when nothing is cached or the snapshot is at least refresh_interval old."""
        elapsed = self.elapsed_since_update()
        if elapsed is None:
            return True
        return elapsed >= self.refresh_interval
