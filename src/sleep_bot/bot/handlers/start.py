"""Start command handler"""

import logging

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes
from telegram.helpers import escape_markdown

from sleep_bot.bot.handlers._helpers import display_name, safe_reply

logger = logging.getLogger(__name__)


async def start_command(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
):
    """Handle /start"""
    if not update.effective_user or not update.effective_message:
        return

    user = update.effective_user
    logger.info(f"User {display_name(user)} (ID: {user.id}) started the bot")

    welcome_text = (
        f"👋 Hi {escape_markdown(user.first_name)}!\n\n"
        "🌙 Post `gn` in the sleep chat when you go to bed\n"
        "☀️ Post `gm` when you wake up\n"
        "⚡ Rate your energy with `!1`–`!10`\n\n"
        "Send /help for the details."
    )

    await safe_reply(update.effective_message, welcome_text)


start_handler = CommandHandler("start", start_command)
