"""Business services"""

from sleep_bot.services.command_parser import MessageKind, ParsedMessage, parse_message
from sleep_bot.services.export import build_csv, export_sessions
from sleep_bot.services.sleep_tracker import CheckinOutcome, CheckinResult, RatingPrompt, SleepTracker
from sleep_bot.services.time_resolver import minutes_between, resolve_bedtime, resolve_wake
from sleep_bot.services.undo_manager import ResetOutcome, UndoManager, UndoOutcome
from sleep_bot.services.weekly_summary import (
    WeeklySummary,
    calculate_weekly_summary,
    format_weekly_summary,
    generate_weekly_summary,
)

__all__ = [
    "MessageKind",
    "ParsedMessage",
    "parse_message",
    "resolve_bedtime",
    "resolve_wake",
    "minutes_between",
    "SleepTracker",
    "CheckinOutcome",
    "CheckinResult",
    "RatingPrompt",
    "UndoManager",
    "ResetOutcome",
    "UndoOutcome",
    "WeeklySummary",
    "calculate_weekly_summary",
    "format_weekly_summary",
    "generate_weekly_summary",
    "build_csv",
    "export_sessions",
]
