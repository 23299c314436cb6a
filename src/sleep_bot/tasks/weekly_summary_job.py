"""Weekly summary job"""

import logging

from telegram.ext import Application

from sleep_bot.config.settings import get_settings
from sleep_bot.core.timezone import get_timezone, utc_now
from sleep_bot.repositories.store import SleepStore
from sleep_bot.services.weekly_summary import format_weekly_summary, generate_weekly_summary

logger = logging.getLogger(__name__)


def register_weekly_summary_job(app: Application):
    """
    Register the weekly summary job

    Checks every minute; posts once on the configured weekday and hour.

    Args:
        app: Bot application
    """
    settings = get_settings()
    if not settings.weekly_summary_enabled:
        logger.info("Weekly summary disabled")
        return

    store = SleepStore()
    zone = get_timezone()

    async def summary_callback(context):
        """Summary callback"""
        try:
            now = utc_now()
            local = now.astimezone(zone)
            if local.weekday() != settings.weekly_summary_weekday or local.hour != settings.weekly_summary_hour:
                return

            if await store.summary_state.get_last_summary_date() == local.date():
                return

            summary = await generate_weekly_summary(store, now, zone)
            await context.bot.send_message(
                chat_id=settings.sleep_chat_id,
                text=format_weekly_summary(summary, zone),
                parse_mode="Markdown",
            )
            await store.summary_state.set_last_summary_date(local.date())
            logger.info(f"Weekly summary posted for {local.date().isoformat()}")

        except Exception as e:
            logger.error(f"Weekly summary error: {e}", exc_info=True)

    app.job_queue.run_repeating(
        summary_callback,
        interval=60,
        first=30,
    )

    logger.info("Weekly summary job registered")
