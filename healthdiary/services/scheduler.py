"""
Scheduler Service - Daily Kp-index cache refresh using APScheduler.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import pytz

from healthdiary.config import get_settings
from healthdiary.db.database import SessionLocal
from healthdiary.engine.kp_index import KpIndexReconciler
from healthdiary.integrations import NOAAIntegration

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def refresh_kp_index(session_factory=SessionLocal, feed=None):
    """
    Job body: pull the trailing observed window and the forecast window into the cache.

    Errors are logged so a bad run never kills the scheduler.
    """
    db = session_factory()
    try:
        reconciler = KpIndexReconciler(db, feed or NOAAIntegration())
        return await reconciler.refresh()
    except Exception as e:
        db.rollback()
        logger.error(f"Kp refresh failed: {e}")
        return None
    finally:
        db.close()


def start_scheduler():
    """Initialize and start the scheduler."""
    settings = get_settings()
    if not settings.kp_refresh_enabled:
        logger.info("Kp refresh disabled - scheduler not started")
        return

    try:
        tz = pytz.timezone(settings.scheduler_timezone)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone {settings.scheduler_timezone}, using UTC")
        tz = pytz.utc

    scheduler.configure(timezone=tz)
    scheduler.add_job(
        refresh_kp_index,
        CronTrigger(hour=settings.kp_refresh_hour, minute=0, timezone=tz),
        id="kp_index_refresh",
        replace_existing=True
    )
    scheduler.start()
    logger.info(f"Kp refresh scheduled daily at {settings.kp_refresh_hour:02d}:00 {tz}")


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Kp refresh scheduler stopped")
