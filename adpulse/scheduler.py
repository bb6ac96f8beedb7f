"""
Scheduler for automated metric refreshes

Uses APScheduler to check the cached snapshot periodically and refresh it
once it is older than the refresh interval.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import asyncio
from datetime import datetime, timezone
from typing import Optional

from adpulse.services.refresh_service import MetricsRefreshService
from adpulse.utils.logger import log

scheduler = AsyncIOScheduler()

REFRESH_JOB_ID = "refresh_metrics"


async def refresh_if_stale(service: MetricsRefreshService) -> Optional[dict]:
    """Run a refresh when the cache is missing or stale; returns the refresh summary or None."""
    try:
        if not service.cache.should_refresh():
            log.info(f"Cached metrics are fresh ({service.cache.time_since_last_update()}), skipping refresh")
            return None

        result = await service.refresh()
        log.info(f"Scheduled refresh finished: {result['data']}")
        return result

    except Exception as e:
        log.error(f"Scheduled metrics refresh error: {str(e)}")
        return None


def setup_scheduler(service: MetricsRefreshService, check_minutes: int = 60):
    """Register the staleness check; first run fires immediately on start."""
    scheduler.add_job(
        refresh_if_stale,
        trigger=IntervalTrigger(minutes=check_minutes),
        args=[service],
        id=REFRESH_JOB_ID,
        name="Refresh cached metrics when stale",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )
    log.info(f"Scheduled metrics staleness check every {check_minutes} minutes")


def start_scheduler(service: MetricsRefreshService, check_minutes: int = 60):
    """Start the scheduler"""
    setup_scheduler(service, check_minutes)
    if not scheduler.running:
        scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        log.info("Scheduler stopped")


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs

    Returns:
        List of job info dicts
    """
    jobs = []

    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)

        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })

    return jobs


# CLI for manual refreshes

if __name__ == "__main__":
    import sys

    from adpulse.config import get_settings
    from adpulse.services.persistent_cache import PersistentMetricsCache
    from datetime import timedelta

    if len(sys.argv) < 2 or sys.argv[1] not in ("refresh", "check", "status"):
        print("Usage: python -m adpulse.scheduler <command>")
        print("\nCommands:")
        print("  refresh   Refresh cached metrics now")
        print("  check     Refresh only if the cache is stale")
        print("  status    Show cache age")
        sys.exit(1)

    settings = get_settings()
    cache = PersistentMetricsCache(settings.cache_dir, timedelta(hours=settings.refresh_interval_hours))
    command = sys.argv[1]

    if command == "status":
        age = cache.time_since_last_update()
        print(f"Cache file: {cache.path}")
        print(f"Last update: {age or 'never'}")
        print(f"Needs refresh: {cache.should_refresh()}")
        sys.exit(0)

    service = MetricsRefreshService(cache, settings)
    if command == "refresh":
        result = asyncio.run(service.refresh())
    else:
        result = asyncio.run(refresh_if_stale(service))

    if result is None:
        print("Cache is fresh, nothing to do")
    elif result["success"]:
        print(f"✓ Refreshed: {result['data']}")
    else:
        print(f"✗ Refresh failed: {result['errors']}")
        sys.exit(1)
