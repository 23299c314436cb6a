"""Reset and undo handlers (``!reset``, ``!undo`` and their slash forms)"""

import logging

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes

from sleep_bot.bot.decorators import require_admin, require_sleep_chat
from sleep_bot.bot.handlers._helpers import command_args, display_name, safe_reply, safe_react
from sleep_bot.config.constants import REACTION_RESET, REACTION_UNDO
from sleep_bot.services.undo_manager import ResetOutcome, UndoManager, UndoOutcome
from sleep_bot.utils.formatter import format_reset_reply, format_undo_reply

logger = logging.getLogger(__name__)


@require_sleep_chat
async def reset_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """``reset last`` (anyone) or ``reset all`` (admin)"""
    args = command_args(update)
    arg = args[0] if args else ""

    if arg == "all":
        await reset_all(update, context)
        return
    if arg != "last":
        await safe_reply(update.effective_message, "Usage: `!reset last` (anyone) or `!reset all` (admin only).")
        return

    message = update.effective_message
    user = update.effective_user
    result = await UndoManager().reset_last(user.id, display_name(user))
    if result.outcome == ResetOutcome.NOTHING_TO_RESET:
        await safe_reply(message, "No data to reset yet.")
        return

    logger.info(f"User {user.id} reset: {result.checkin.raw_text}")
    await safe_reply(message, format_reset_reply(result.checkin.raw_text))
    await safe_react(message, REACTION_RESET)


@require_admin
async def reset_all(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Wipe every table"""
    message = update.effective_message
    await UndoManager().wipe_all(update.effective_user.id)
    await safe_reply(message, "♻️ Reset complete: wiped ALL data.")
    await safe_react(message, REACTION_RESET)


@require_sleep_chat
async def undo_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Undo the newest reset"""
    message = update.effective_message
    user = update.effective_user

    result = await UndoManager().pop_and_apply(user.id)
    if result.outcome == UndoOutcome.NOTHING_TO_UNDO:
        await safe_reply(message, "No reset operation to undo.")
        return

    logger.info(f"User {user.id} undid: {result.entry.checkin_raw_text}")
    await safe_reply(message, format_undo_reply(result.entry.checkin_raw_text, result.has_more))
    await safe_react(message, REACTION_UNDO)


reset_handler = CommandHandler("reset", reset_command)
undo_handler = CommandHandler("undo", undo_command)
