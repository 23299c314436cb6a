"""Idle lock cleanup task"""

import logging
from datetime import timedelta

from telegram.ext import Application

from sleep_bot.core.locks import get_user_locks

logger = logging.getLogger(__name__)

MAX_IDLE = timedelta(hours=1)


def register_lock_cleanup(app: Application):
    """
    Register the idle lock cleanup

    Args:
        app: Bot application
    """
    locks = get_user_locks()

    async def cleanup_callback(context):
        """Cleanup callback"""
        try:
            dropped = await locks.clear_idle(MAX_IDLE)
            if dropped:
                logger.debug(f"Dropped {dropped} idle user lock(s)")

        except Exception as e:
            logger.error(f"Lock cleanup error: {e}")

    # every 5 minutes
    app.job_queue.run_repeating(
        cleanup_callback,
        interval=300,
        first=30,
    )

    logger.info("Lock cleanup registered")
