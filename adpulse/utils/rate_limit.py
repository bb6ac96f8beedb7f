"""In-memory sliding-window rate limiter for the refresh trigger."""
import threading
import time
from typing import Callable


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per ``window_seconds`` per identifier."""

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str) -> bool:
        """Record a request and return False if it is over the limit."""
        now = self._clock()
        with self._lock:
            recent = [t for t in self._hits.get(identifier, []) if now - t < self.window_seconds]
            if len(recent) >= self.max_requests:
                self._hits[identifier] = recent
                return False
            recent.append(now)
            self._hits[identifier] = recent
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
