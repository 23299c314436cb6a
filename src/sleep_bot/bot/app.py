"""Bot application instance"""

import logging

from telegram.ext import Application

from sleep_bot.bot.handlers.start import start_handler
from sleep_bot.bot.handlers.help import help_handler
from sleep_bot.bot.handlers.checkin import gm_handler, gn_handler, rate_handler, text_message_handler
from sleep_bot.bot.handlers.reset import reset_handler, undo_handler
from sleep_bot.bot.handlers.export import export_handler
from sleep_bot.bot.handlers.summary import summary_handler
from sleep_bot.config.settings import get_settings
from sleep_bot.core.database import check_and_init_database, close_pool
from sleep_bot.tasks.scheduler import register_jobs

logger = logging.getLogger(__name__)


def create_app() -> Application:
    """Create the bot application"""
    settings = get_settings()

    app = Application.builder().token(settings.bot_token).build()

    # Commands
    app.add_handler(start_handler)
    app.add_handler(help_handler)
    app.add_handler(gn_handler)
    app.add_handler(gm_handler)
    app.add_handler(rate_handler)
    app.add_handler(reset_handler)
    app.add_handler(undo_handler)
    app.add_handler(export_handler)
    app.add_handler(summary_handler)
    # Plain text check-ins and "!" commands (last, catches the rest)
    app.add_handler(text_message_handler)

    app.add_error_handler(error_handler)

    async def post_init(application: Application) -> None:
        # Create tables on first start
        await check_and_init_database()
        await register_jobs(application)
        logger.info(f"Listening in chat {settings.sleep_chat_id}")

    async def post_shutdown(application: Application) -> None:
        await close_pool()

    app.post_init = post_init
    app.post_shutdown = post_shutdown

    logger.info("Bot application created")

    return app


async def error_handler(update: object, context) -> None:
    """Error handler"""
    logger.error(f"Exception while handling an update: {context.error}", exc_info=context.error)
