"""Data access layer"""

from sleep_bot.repositories.base import BaseRepository
from sleep_bot.repositories.checkin_repository import CheckinRepository
from sleep_bot.repositories.pending_goodnight_repository import PendingGoodnightRepository
from sleep_bot.repositories.sleep_session_repository import SleepSessionRepository
from sleep_bot.repositories.store import SleepStore
from sleep_bot.repositories.summary_state_repository import SummaryStateRepository
from sleep_bot.repositories.undo_repository import UndoRepository

__all__ = [
    "BaseRepository",
    "CheckinRepository",
    "SleepSessionRepository",
    "PendingGoodnightRepository",
    "UndoRepository",
    "SummaryStateRepository",
    "SleepStore",
]
