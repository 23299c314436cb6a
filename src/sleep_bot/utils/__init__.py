"""Utility functions"""

from sleep_bot.utils.formatter import format_duration, format_reset_reply, format_undo_reply, mention
from sleep_bot.utils.validator import clean_input, validate_rating

__all__ = [
    "format_duration",
    "format_reset_reply",
    "format_undo_reply",
    "mention",
    "clean_input",
    "validate_rating",
]
