"""
APScheduler setup for periodic housekeeping.
Runs in-process without a broker.
"""

import asyncio
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def stale_attempt_job():
    """Abandon CBT attempts left in progress past their time limit"""
    try:
        from ..services.cbt_service import cbt_service

        logger.info(f"[{datetime.now()}] 🔄 Checking for stale exam attempts...")
        abandoned = asyncio.run(cbt_service.abandon_stale_attempts())

        if abandoned:
            logger.info(f"✅ Abandoned {abandoned} stale attempt(s)")
        else:
            logger.info("ℹ️  No stale attempts")

    except Exception as e:
        logger.error(f"❌ Stale attempt job failed: {str(e)}", exc_info=True)


def verification_cleanup_job():
    """Remove expired email verification codes"""
    try:
        from ..services.registration_service import registration_service

        removed = asyncio.run(registration_service.cleanup_expired_verifications())
        if removed:
            logger.info(f"✅ Removed {removed} expired verification code(s)")

    except Exception as e:
        logger.error(f"❌ Verification cleanup job failed: {str(e)}", exc_info=True)


def start_scheduler():
    """Start the background scheduler"""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    try:
        from .config import settings

        interval_minutes = settings.SCHEDULER_INTERVAL_MINUTES

        scheduler.add_job(
            stale_attempt_job,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id='stale_attempt_check',
            name='Stale Exam Attempt Check',
            replace_existing=True,
            misfire_grace_time=10
        )

        scheduler.add_job(
            verification_cleanup_job,
            trigger=IntervalTrigger(hours=1),
            id='verification_cleanup',
            name='Expired Verification Cleanup',
            replace_existing=True,
            misfire_grace_time=10
        )

        scheduler.start()
        logger.info("✅ Scheduler started successfully")
        logger.info(f"   - Stale attempt check: every {interval_minutes} minute(s)")
        logger.info("   - Verification cleanup: hourly")

    except Exception as e:
        logger.error(f"❌ Failed to start scheduler: {str(e)}", exc_info=True)


def stop_scheduler():
    """Stop the background scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("✅ Scheduler stopped")
