"""Pending gn sweep"""

import logging
from datetime import timedelta

from telegram.ext import Application

from sleep_bot.config.settings import get_settings
from sleep_bot.services.sleep_tracker import SleepTracker

logger = logging.getLogger(__name__)


def register_pending_promotion(app: Application):
    """
    Register the pending gn sweep

    Args:
        app: Bot application
    """
    settings = get_settings()
    tracker = SleepTracker(grace=timedelta(minutes=settings.pending_grace_minutes))

    async def sweep_callback(context):
        """Sweep callback"""
        try:
            results = await tracker.process_pending_promotions()
            if results:
                logger.info(f"Promoted {len(results)} pending gn(s)")

        except Exception as e:
            logger.error(f"Pending sweep error: {e}", exc_info=True)

    app.job_queue.run_repeating(
        sweep_callback,
        interval=settings.pending_sweep_interval,
        first=15,
    )

    logger.info("Pending sweep registered")
