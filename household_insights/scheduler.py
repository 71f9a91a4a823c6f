"""
Scheduler for cache housekeeping

Uses APScheduler to sweep expired entries out of both cache tiers.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from household_insights.config import get_settings
from household_insights.utils.cache import get_cache
from household_insights.utils.logger import log

settings = get_settings()
scheduler = AsyncIOScheduler()


async def cleanup_expired_cache():
    """Remove expired durable cache rows and stale memory entries"""
    try:
        removed = get_cache().cleanup_expired()
        log.info(f"Cache cleanup completed: {removed} expired entries removed")
    except Exception as e:
        log.error(f"Cache cleanup error: {str(e)}")


def setup_scheduler():
    """
    Configure scheduled jobs

    - Cache cleanup: every durable_cache_cleanup_interval_minutes (default hourly)
    """
    scheduler.add_job(
        cleanup_expired_cache,
        trigger=IntervalTrigger(minutes=settings.durable_cache_cleanup_interval_minutes),
        id='cache_cleanup',
        name='Expired Cache Cleanup',
        replace_existing=True,
        max_instances=1
    )


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    scheduler.shutdown()
    log.info("Scheduler stopped")
