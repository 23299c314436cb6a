"""Summary handler: the weekly summary on demand"""

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes

from sleep_bot.bot.decorators import require_sleep_chat
from sleep_bot.bot.handlers._helpers import safe_reply
from sleep_bot.core.timezone import get_timezone, utc_now
from sleep_bot.repositories.store import SleepStore
from sleep_bot.services.weekly_summary import format_weekly_summary, generate_weekly_summary


@require_sleep_chat
async def summary_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Post the summary of the last seven days"""
    zone = get_timezone()
    summary = await generate_weekly_summary(SleepStore(), utc_now(), zone)
    await safe_reply(update.effective_message, format_weekly_summary(summary, zone))


summary_handler = CommandHandler("summary", summary_command)
