"""Data models"""

from sleep_bot.models.checkin import Checkin
from sleep_bot.models.pending_goodnight import PendingGoodnight
from sleep_bot.models.sleep_session import SleepSession
from sleep_bot.models.undo_entry import (
    EveningRatingSnapshot,
    GoodmorningSnapshot,
    GoodnightSnapshot,
    MorningRatingSnapshot,
    UndoEntry,
    UndoSnapshot,
)

__all__ = [
    "Checkin",
    "SleepSession",
    "PendingGoodnight",
    "UndoEntry",
    "UndoSnapshot",
    "GoodnightSnapshot",
    "GoodmorningSnapshot",
    "EveningRatingSnapshot",
    "MorningRatingSnapshot",
]
