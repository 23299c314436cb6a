"""Session store: the repositories behind one transaction boundary"""

import logging
from contextlib import AbstractAsyncContextManager

from sleep_bot.core.database import transaction
from sleep_bot.repositories.checkin_repository import CheckinRepository
from sleep_bot.repositories.pending_goodnight_repository import PendingGoodnightRepository
from sleep_bot.repositories.sleep_session_repository import SleepSessionRepository
from sleep_bot.repositories.summary_state_repository import SummaryStateRepository
from sleep_bot.repositories.undo_repository import UndoRepository

logger = logging.getLogger(__name__)


class SleepStore:
    """
    Durable record of check-ins and sleep sessions

    Services use the repository attributes for queries and mutations and
    wrap each logical state transition in ``transaction()``.
    """

    def __init__(self):
        self.checkins = CheckinRepository()
        self.sessions = SleepSessionRepository()
        self.pending = PendingGoodnightRepository()
        self.undo = UndoRepository()
        self.summary_state = SummaryStateRepository()

    def transaction(self) -> AbstractAsyncContextManager:
        """Open a transaction shared by every repository call inside it"""
        return transaction()

    async def wipe_all(self) -> None:
        """Delete all data in one transaction"""
        async with self.transaction():
            sessions = await self.sessions.delete_all()
            checkins = await self.checkins.delete_all()
            await self.pending.delete_all()
            await self.undo.delete_all()
            await self.summary_state.delete_all()
        logger.warning(f"All data wiped: {sessions} sessions, {checkins} check-ins")
