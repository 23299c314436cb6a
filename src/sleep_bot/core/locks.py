"""Per-user locks (memory + idle expiry)"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional

from sleep_bot.core.timezone import utc_now


@dataclass
class LockEntry:
    """Lock entry"""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_used: datetime = field(default_factory=utc_now)


class UserLocks:
    """
    One ``asyncio.Lock`` per user

    Check-in handlers and the pending sweep hold the user's lock for the
    whole state transition, so two messages from the same user never
    interleave their reads and writes.
    """

    def __init__(self):
        self._locks: dict[int, LockEntry] = {}
        self._guard = asyncio.Lock()

    async def _entry(self, user_id: int) -> LockEntry:
        async with self._guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = LockEntry()
                self._locks[user_id] = entry
            entry.last_used = utc_now()
            return entry

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        """Hold the user's lock for the duration of the block"""
        entry = await self._entry(user_id)
        async with entry.lock:
            yield
        entry.last_used = utc_now()

    async def clear_idle(self, max_idle: timedelta) -> int:
        """
        Drop locks nobody has used recently

        Returns:
            Number of locks dropped
        """
        async with self._guard:
            cutoff = utc_now() - max_idle
            idle = [
                user_id for user_id, entry in self._locks.items()
                if entry.last_used < cutoff and not entry.lock.locked()
            ]
            for user_id in idle:
                del self._locks[user_id]
            return len(idle)

    def __len__(self) -> int:
        return len(self._locks)


# Global lock registry
_locks: Optional[UserLocks] = None


def get_user_locks() -> UserLocks:
    """Lock registry (singleton)"""
    global _locks
    if _locks is None:
        _locks = UserLocks()
    return _locks
