"""Check-in handlers (plain text and /gn, /gm, /rate)"""

import logging

from telegram import Message, Update
from telegram.ext import CommandHandler, ContextTypes, MessageHandler, filters

from sleep_bot.bot.decorators import require_sleep_chat
from sleep_bot.bot.handlers._helpers import display_name, safe_reply, safe_react
from sleep_bot.bot.handlers.export import export_command
from sleep_bot.bot.handlers.reset import reset_command, undo_command
from sleep_bot.bot.handlers.summary import summary_command
from sleep_bot.config.constants import (
    REACTION_GOODMORNING,
    REACTION_GOODNIGHT,
    REACTION_NO_TARGET,
    REACTION_RATING,
)
from sleep_bot.services.command_parser import MessageKind
from sleep_bot.services.sleep_tracker import CheckinOutcome, CheckinResult, RatingPrompt, SleepTracker
from sleep_bot.utils import formatter
from sleep_bot.utils.validator import validate_rating

logger = logging.getLogger(__name__)

_REACTIONS = {
    CheckinOutcome.SESSION_OPENED: REACTION_GOODNIGHT,
    CheckinOutcome.PENDING_PROMOTED: REACTION_GOODNIGHT,
    CheckinOutcome.SESSION_CLOSED: REACTION_GOODMORNING,
    CheckinOutcome.RATING_RECORDED: REACTION_RATING,
    CheckinOutcome.NO_RATING_TARGET: REACTION_NO_TARGET,
}

_PROMPTS = {
    RatingPrompt.EVENING: formatter.PROMPT_EVENING_RATING,
    RatingPrompt.MORNING: formatter.PROMPT_MORNING_RATING,
    RatingPrompt.BOTH: formatter.PROMPT_BOTH_RATINGS,
    RatingPrompt.MORNING_AFTER_EVENING: formatter.PROMPT_MORNING_AFTER_EVENING,
}

# "!" commands typed as plain text in the sleep chat
TEXT_COMMANDS = {
    "!reset": reset_command,
    "!undo": undo_command,
    "!export": export_command,
    "!summary": summary_command,
}


def checkin_reply(result: CheckinResult, kind: MessageKind) -> str | None:
    """
    Reply text for a check-in result

    Returns:
        Markdown text, or None when a reaction is enough
    """
    outcome = result.outcome
    if outcome == CheckinOutcome.PENDING_RECORDED:
        return formatter.TWO_GOODNIGHTS
    if outcome == CheckinOutcome.DUPLICATE_GOODMORNING:
        return formatter.TWO_GOODMORNINGS
    if outcome == CheckinOutcome.NO_OPEN_SESSION:
        return formatter.NO_OPEN_SESSION
    if outcome == CheckinOutcome.TIME_PARSE_ERROR:
        return formatter.BAD_BEDTIME if kind == MessageKind.GN else formatter.BAD_WAKE_TIME
    if outcome == CheckinOutcome.SESSION_CLOSED and result.prompt == RatingPrompt.EVENING:
        return formatter.REMIND_EVENING_RATING
    return _PROMPTS.get(result.prompt)


async def _respond(message: Message, result: CheckinResult, kind: MessageKind) -> None:
    reply = checkin_reply(result, kind)
    if reply:
        await safe_reply(message, reply)
    reaction = _REACTIONS.get(result.outcome)
    if reaction:
        await safe_react(message, reaction)


async def _track(update: Update, raw_text: str) -> None:
    """Parse and record one check-in"""
    message = update.effective_message
    user = update.effective_user

    username = display_name(user)
    result = await SleepTracker().handle_message(user.id, username, raw_text)
    if result.outcome == CheckinOutcome.IGNORED:
        return

    logger.debug(f"Check-in from {username} ({user.id}): {result.kind.value} -> {result.outcome.value}")
    await _respond(message, result, result.kind)


@require_sleep_chat
async def text_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Plain text in the sleep chat: ``!`` commands and check-ins"""
    text = update.effective_message.text or ""
    words = text.split()
    if words and words[0].lower() in TEXT_COMMANDS:
        await TEXT_COMMANDS[words[0].lower()](update, context)
        return
    await _track(update, text)


@require_sleep_chat
async def gn_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/gn [(time)] ["note"] [!rating]"""
    await _track(update, " ".join(["gn", *context.args]))


@require_sleep_chat
async def gm_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/gm [(time)] ["note"] [!rating]"""
    await _track(update, " ".join(["gm", *context.args]))


@require_sleep_chat
async def rate_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/rate <1-10>"""
    rating = validate_rating(context.args[0]) if context.args else None
    if rating is None:
        await safe_reply(update.effective_message, "Usage: `/rate <1-10>`")
        return
    await _track(update, f"!{rating}")


text_message_handler = MessageHandler(filters.TEXT & ~filters.COMMAND, text_message)
gn_handler = CommandHandler("gn", gn_command)
gm_handler = CommandHandler("gm", gm_command)
rate_handler = CommandHandler("rate", rate_command)
