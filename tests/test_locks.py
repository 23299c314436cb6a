"""
Unit tests for sleep_bot.core.locks module.
"""
import asyncio
from datetime import timedelta

import pytest

from sleep_bot.core.locks import UserLocks


class TestUserLocks:
    """Test UserLocks."""

    @pytest.mark.asyncio
    async def test_same_user_is_serialised(self):
        """Test two holders of one user's lock never overlap."""
        locks = UserLocks()
        events = []

        async def worker(name):
            async with locks.hold(1):
                events.append(f"{name} in")
                await asyncio.sleep(0.01)
                events.append(f"{name} out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (["a in", "a out", "b in", "b out"], ["b in", "b out", "a in", "a out"])

    @pytest.mark.asyncio
    async def test_users_do_not_block_each_other(self):
        """Test different users' locks are independent."""
        locks = UserLocks()

        async with locks.hold(1):
            await asyncio.wait_for(self._enter(locks, 2), timeout=1)

        assert len(locks) == 2

    @staticmethod
    async def _enter(locks, user_id):
        async with locks.hold(user_id):
            pass

    @pytest.mark.asyncio
    async def test_clear_idle(self):
        """Test idle locks are dropped and held ones kept."""
        locks = UserLocks()
        await self._enter(locks, 1)

        async with locks.hold(2):
            dropped = await locks.clear_idle(timedelta(seconds=-1))

        assert dropped == 1
        assert len(locks) == 1

    @pytest.mark.asyncio
    async def test_recent_locks_kept(self):
        """Test recently used locks survive cleanup."""
        locks = UserLocks()
        await self._enter(locks, 1)

        assert await locks.clear_idle(timedelta(hours=1)) == 0
        assert len(locks) == 1
