"""Job scheduler"""

import logging

from telegram.ext import Application

from sleep_bot.tasks.lock_cleanup import register_lock_cleanup
from sleep_bot.tasks.pending_promotion import register_pending_promotion
from sleep_bot.tasks.weekly_summary_job import register_weekly_summary_job

logger = logging.getLogger(__name__)


async def register_jobs(app: Application):
    """
    Register every scheduled job

    Args:
        app: Bot application
    """
    # Promote pending gns past the grace period
    register_pending_promotion(app)

    # Weekly summary (checked every minute)
    register_weekly_summary_job(app)

    # Drop idle per-user locks (every 5 minutes)
    register_lock_cleanup(app)

    logger.info("All scheduled jobs registered")
