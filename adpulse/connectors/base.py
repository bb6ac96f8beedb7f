"""
Base connector class for all metric sources
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
from datetime import date, datetime, timedelta, timezone
from adpulse.utils.logger import log
from adpulse.utils.retry import is_retryable_error, calculate_backoff
import asyncio
import time


class ConnectorNotConfigured(Exception):
    """Raised when a connector is missing the credentials it needs."""


def default_window(days: int = 30, today: Optional[date] = None) -> Tuple[date, date]:
    """Trailing window ending today, e.g. the last 30 days."""
    end = today or datetime.now(timezone.utc).date()
    return end - timedelta(days=days), end


class BaseConnector(ABC):
    """Base class for all metric source connectors"""

    # Retry configuration (can be overridden by subclasses)
    RETRY_MAX_ATTEMPTS = 3
    RETRY_BASE_DELAY = 2.0  # seconds
    RETRY_MAX_DELAY = 60.0  # seconds

    def __init__(self, name: str):
        self.name = name
        self.last_sync = None
        self.sync_count = 0
        self.error_count = 0
        self.retry_count = 0  # Total retries across all syncs

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether all required credentials are present"""
        pass

    @abstractmethod
    async def fetch_data(self, start_date: date, end_date: date) -> Any:
        """Fetch metrics for the date range"""
        pass

    async def validate_connection(self) -> bool:
        """Validate connection is working; sources without a cheap probe just check config"""
        return self.is_configured()

    async def sync(self, start_date: date, end_date: date) -> Dict[str, Any]:
        """
        Fetch metrics with error handling, retry logic, and logging

        Returns:
            Dict with keys: success, source, data/error, sync_time, duration, retry_stats
        """
        log.info(f"Starting sync for {self.name} from {start_date} to {end_date}")
        start_time = time.time()
        # retries = number of extra attempts due to transient failures (0 = all succeeded first try)
        retry_stats = {"retries": 0, "total_delay_seconds": 0, "errors": []}

        try:
            if not self.is_configured():
                raise ConnectorNotConfigured(f"{self.name} credentials are not configured")

            connection_valid = await self._retry_operation(
                self.validate_connection,
                operation_name="validate_connection",
                retry_stats=retry_stats
            )

            if not connection_valid:
                raise ConnectionError(f"Connection validation failed for {self.name}")

            data = await self._retry_operation(
                lambda: self.fetch_data(start_date, end_date),
                operation_name="fetch_data",
                retry_stats=retry_stats
            )

            self.last_sync = datetime.now(timezone.utc)
            self.sync_count += 1

            elapsed = time.time() - start_time

            if retry_stats["retries"] > 0:
                log.info(
                    f"Sync completed for {self.name} in {elapsed:.2f}s "
                    f"(after {retry_stats['retries']} retries, {retry_stats['total_delay_seconds']:.1f}s delay)"
                )
            else:
                log.info(f"Sync completed for {self.name} in {elapsed:.2f}s")

            return {
                "success": True,
                "source": self.name,
                "data": data,
                "sync_time": self.last_sync,
                "duration": elapsed,
                "retry_stats": retry_stats
            }

        except ConnectorNotConfigured as e:
            log.warning(str(e))
            return {
                "success": False,
                "source": self.name,
                "error": str(e),
                "sync_time": datetime.now(timezone.utc),
                "duration": time.time() - start_time,
                "retry_stats": retry_stats
            }

        except Exception as e:
            self.error_count += 1
            elapsed = time.time() - start_time
            log.error(f"Sync failed for {self.name} after {retry_stats['retries']} retries: {str(e)}")

            return {
                "success": False,
                "source": self.name,
                "error": str(e),
                "sync_time": datetime.now(timezone.utc),
                "duration": elapsed,
                "retry_stats": retry_stats
            }

    async def _retry_operation(
        self,
        operation,
        operation_name: str = "operation",
        retry_stats: Optional[Dict] = None
    ) -> Any:
        """
        Execute an operation with retry logic.

        Args:
            operation: Callable returning a value or coroutine
            operation_name: Name for logging
            retry_stats: Dict to track retry statistics (mutated in place)
        """
        last_error = None

        for attempt in range(1, self.RETRY_MAX_ATTEMPTS + 1):
            try:
                result = operation()

                if asyncio.iscoroutine(result):
                    result = await result

                if attempt > 1:
                    self.retry_count += (attempt - 1)

                return result

            except Exception as e:
                last_error = e

                if attempt >= self.RETRY_MAX_ATTEMPTS or not is_retryable_error(e):
                    if retry_stats is not None:
                        retry_stats["errors"].append(f"{type(e).__name__}: {str(e)}")
                    raise

                delay = calculate_backoff(
                    attempt,
                    base_delay=self.RETRY_BASE_DELAY,
                    max_delay=self.RETRY_MAX_DELAY
                )

                if retry_stats is not None:
                    retry_stats["retries"] += 1
                    retry_stats["total_delay_seconds"] += delay
                    retry_stats["errors"].append(f"{type(e).__name__}: {str(e)}")

                log.warning(
                    f"{self.name} {operation_name} attempt {attempt} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )

                await asyncio.sleep(delay)

        raise last_error if last_error else RuntimeError("Retry exhausted")

    def get_status(self) -> Dict[str, Any]:
        """Get connector status"""
        return {
            "name": self.name,
            "configured": self.is_configured(),
            "last_sync": self.last_sync,
            "sync_count": self.sync_count,
            "error_count": self.error_count,
            "retry_count": self.retry_count,
            "error_rate": self.error_count / max(self.sync_count, 1),
        }
