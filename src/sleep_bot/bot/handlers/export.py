"""Export handler: DMs the CSV of all closed sessions"""

import logging

from telegram import Update
from telegram.error import Forbidden, TelegramError
from telegram.ext import CommandHandler, ContextTypes

from sleep_bot.bot.decorators import require_sleep_chat
from sleep_bot.bot.handlers._helpers import safe_reply, safe_react
from sleep_bot.config.constants import REACTION_EXPORT
from sleep_bot.repositories.store import SleepStore
from sleep_bot.services.export import EXPORT_FILENAME, export_sessions

logger = logging.getLogger(__name__)


@require_sleep_chat
async def export_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Send the requester a private CSV export"""
    message = update.effective_message
    user = update.effective_user

    count, payload = await export_sessions(SleepStore())
    if count == 0:
        await safe_reply(message, "No completed sessions to export yet.")
        return

    try:
        await context.bot.send_document(
            chat_id=user.id,
            document=payload,
            filename=EXPORT_FILENAME,
            caption=f"Here's the full export ({count} sessions).",
        )
    except Forbidden as e:
        logger.info(f"Cannot DM user {user.id}: {e}")
        await safe_reply(
            message,
            "I couldn't DM you the file. Start a private chat with me (send /start), then try again.",
        )
        return
    except TelegramError as e:
        logger.error(f"Export delivery to {user.id} failed: {e}", exc_info=True)
        await safe_reply(message, "Sending the export failed, please try again later.")
        return

    await safe_reply(message, "📩 I DMed you the full CSV export.")
    await safe_react(message, REACTION_EXPORT)


export_handler = CommandHandler("export", export_command)
