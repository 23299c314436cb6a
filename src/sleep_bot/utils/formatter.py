"""Reply texts and formatting helpers"""

from telegram.helpers import escape_markdown

# ==================== Prompts ====================
PROMPT_EVENING_RATING = "Quick check-in: reply with `!1`–`!10` for how energetic you felt today (10 = great)."
PROMPT_MORNING_RATING = "Quick check-in: reply with `!1`–`!10` for how energetic you feel right now (10 = great)."
PROMPT_BOTH_RATINGS = (
    "You still owe *two* energy ratings for this sleep: first send `!1`–`!10` for how energetic "
    "you felt yesterday, then send another `!1`–`!10` for how you feel right now."
)
PROMPT_MORNING_AFTER_EVENING = "Got it for last night. Now send another `!1`–`!10` for how you feel right now this morning."
REMIND_EVENING_RATING = "Reminder: you still owe an evening energy rating for last night. Reply with `!1`–`!10`."

TWO_GOODNIGHTS = (
    "I saw two `gn` in a row. Please send a `gm (time)` first to complete your previous `gn`, "
    "then send your current goodnight message again."
)
TWO_GOODMORNINGS = (
    "I saw two `gm` in a row. Please send a `gn (time)` first to start the clock at when you went to bed, "
    "then send your current good morning message again."
)
NO_OPEN_SESSION = "I don't see an open session (no prior `gn`). Send `gn` first."
BAD_BEDTIME = "I couldn't parse that time. Try `(11pm)`, `(9:00 am)`, or `(21:15)`."
BAD_WAKE_TIME = "I couldn't parse that time. Try `(9am)`, `(9:00 am)`, or `(21:15)`."


def format_duration(minutes: int) -> str:
    """
    Format a sleep duration

    Args:
        minutes: Duration in minutes

    Returns:
        ``7h`` or ``7h 30m``
    """
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def format_reset_reply(raw_text: str | None) -> str:
    """Reply for a reset check-in"""
    return f"♻️ Reset your last entry: `{_inline_code(raw_text)}`"


def format_undo_reply(raw_text: str | None, has_more: bool) -> str:
    """Reply for an undone reset"""
    more = " (more undos available)" if has_more else ""
    return f"✅ Re-added: `{_inline_code(raw_text)}`{more}"


def _inline_code(text: str | None) -> str:
    # Legacy Markdown has no escape inside code spans
    return (text or "unknown").replace("`", "'")


def mention(user_id: int, username: str) -> str:
    """Markdown mention of a user"""
    return f"[{escape_markdown(username)}](tg://user?id={user_id})"
