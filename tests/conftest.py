"""
Pytest configuration and shared fixtures for all tests.

``MemoryStore`` stands in for ``SleepStore``: same repository attributes and
method signatures, backed by dicts, with rollback on a failed transaction.
"""
import copy
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

os.environ.setdefault("BOT_TOKEN", "123456:TEST")
os.environ.setdefault("SLEEP_CHAT_ID", "-1001")
os.environ.setdefault("DATABASE_URL", "postgresql://localhost/sleep_bot_test")

from sleep_bot.config.constants import RatingStatus, SessionState, SessionStatus
from sleep_bot.core.locks import UserLocks
from sleep_bot.models.checkin import Checkin
from sleep_bot.models.pending_goodnight import PendingGoodnight
from sleep_bot.models.sleep_session import SleepSession
from sleep_bot.models.undo_entry import UndoEntry
from sleep_bot.services.sleep_tracker import SleepTracker
from sleep_bot.services.undo_manager import UndoManager


LA = ZoneInfo("America/Los_Angeles")


def local(year, month, day, hour=0, minute=0, zone=LA) -> datetime:
    """A local wall-clock time as an aware UTC instant"""
    return datetime(year, month, day, hour, minute, tzinfo=zone).astimezone(timezone.utc)


@dataclass
class _Tables:
    checkins: dict = field(default_factory=dict)
    sessions: dict = field(default_factory=dict)
    pending: dict = field(default_factory=dict)
    undo: dict = field(default_factory=dict)
    summary_dates: set = field(default_factory=set)
    next_checkin_id: int = 1
    next_session_id: int = 1
    next_undo_id: int = 1


def _derive(session: SleepSession) -> SleepSession:
    session.state = SessionState.derive(session.status, session.evening_rating_status, session.morning_rating)
    return session


class _Checkins:
    def __init__(self, t):
        self.t = t

    async def create(self, user_id, username, kind, timestamp, raw_text, session_id=None, rating_slot=None):
        checkin = Checkin(
            self.t().next_checkin_id, user_id, username, kind, timestamp, raw_text, session_id, rating_slot
        )
        self.t().checkins[checkin.id] = checkin
        self.t().next_checkin_id += 1
        return replace(checkin)

    async def get_by_id(self, checkin_id):
        checkin = self.t().checkins.get(checkin_id)
        return replace(checkin) if checkin else None

    async def get_last(self, user_id):
        mine = [c for c in self.t().checkins.values() if c.user_id == user_id]
        return replace(max(mine, key=lambda c: c.id)) if mine else None

    async def get_last_goodnight_before(self, user_id, timestamp):
        mine = [
            c for c in self.t().checkins.values()
            if c.user_id == user_id and c.kind.value == "GN" and c.timestamp <= timestamp
        ]
        return replace(max(mine, key=lambda c: (c.timestamp, c.id))) if mine else None

    async def delete(self, checkin_id):
        return self.t().checkins.pop(checkin_id, None) is not None

    async def restore(
        self, checkin_id, user_id, username, kind, timestamp, raw_text, session_id=None, rating_slot=None,
    ):
        if checkin_id not in self.t().checkins:
            self.t().checkins[checkin_id] = Checkin(
                checkin_id, user_id, username, kind, timestamp, raw_text, session_id, rating_slot
            )
            return True
        await self.create(user_id, username, kind, timestamp, raw_text, session_id, rating_slot)
        return False

    async def delete_all(self):
        count = len(self.t().checkins)
        self.t().checkins.clear()
        return count


class _Sessions:
    def __init__(self, t):
        self.t = t

    async def create(
        self, user_id, username, bed_time, note=None, evening_rating=None,
        evening_rating_status=RatingStatus.MISSING, session_id=None,
    ):
        if session_id is None or session_id in self.t().sessions:
            session_id = self.t().next_session_id
            self.t().next_session_id += 1
        session = _derive(SleepSession(
            id=session_id, user_id=user_id, username=username, bed_time=bed_time,
            wake_time=None, sleep_minutes=None, evening_rating=evening_rating,
            evening_rating_status=evening_rating_status, morning_rating=None,
            status=SessionStatus.OPEN, state=SessionState.OPEN, note=note, morning_note=None,
        ))
        self.t().sessions[session.id] = session
        return replace(session)

    async def get_by_id(self, session_id):
        session = self.t().sessions.get(session_id)
        return replace(session) if session else None

    def _mine(self, user_id, predicate=lambda s: True):
        return sorted(
            (s for s in self.t().sessions.values() if s.user_id == user_id and predicate(s)),
            key=lambda s: s.id,
            reverse=True,
        )

    async def get_open(self, user_id):
        return [replace(s) for s in self._mine(user_id, lambda s: s.is_open)]

    async def get_last(self, user_id):
        mine = self._mine(user_id)
        return replace(mine[0]) if mine else None

    async def get_last_needing_evening_rating(self, user_id):
        mine = self._mine(user_id, lambda s: s.evening_rating_status == RatingStatus.MISSING)
        return replace(mine[0]) if mine else None

    async def get_last_needing_morning_rating(self, user_id):
        mine = self._mine(user_id, lambda s: not s.is_open and s.morning_rating is None)
        return replace(mine[0]) if mine else None

    def _update(self, session_id, **changes):
        session = self.t().sessions.get(session_id)
        if session is None:
            return None
        for key, value in changes.items():
            setattr(session, key, value)
        return replace(_derive(session))

    async def close(self, session_id, wake_time, sleep_minutes, morning_rating=None, morning_note=None):
        return self._update(
            session_id, wake_time=wake_time, sleep_minutes=sleep_minutes, status=SessionStatus.CLOSED,
            morning_rating=morning_rating, morning_note=morning_note,
        )

    async def reopen(self, session_id):
        return self._update(session_id, wake_time=None, sleep_minutes=None, status=SessionStatus.OPEN)

    async def set_evening_rating(self, session_id, rating):
        return self._update(session_id, evening_rating=rating, evening_rating_status=RatingStatus.RECORDED)

    async def clear_evening_rating(self, session_id):
        return self._update(session_id, evening_rating=None, evening_rating_status=RatingStatus.MISSING)

    async def omit_evening_rating(self, session_id):
        return self._update(session_id, evening_rating_status=RatingStatus.OMITTED)

    async def set_morning_rating(self, session_id, rating):
        return self._update(session_id, morning_rating=rating)

    async def update_bed_time(self, session_id, bed_time):
        return self._update(session_id, bed_time=bed_time)

    async def delete(self, session_id):
        return self.t().sessions.pop(session_id, None) is not None

    async def get_closed(self):
        closed = [s for s in self.t().sessions.values() if not s.is_open]
        return [replace(s) for s in sorted(closed, key=lambda s: s.bed_time)]

    async def get_closed_between(self, start, end):
        closed = [s for s in self.t().sessions.values() if not s.is_open and start <= s.bed_time < end]
        return [replace(s) for s in sorted(closed, key=lambda s: s.sleep_minutes)]

    async def delete_all(self):
        count = len(self.t().sessions)
        self.t().sessions.clear()
        return count


class _Pending:
    def __init__(self, t):
        self.t = t

    async def upsert(self, user_id, checkin_id, bed_time, raw_text, created_at, note=None):
        pending = PendingGoodnight(user_id, checkin_id, bed_time, raw_text, created_at, note)
        self.t().pending[user_id] = pending
        return replace(pending)

    async def get(self, user_id):
        pending = self.t().pending.get(user_id)
        return replace(pending) if pending else None

    async def delete(self, user_id):
        return self.t().pending.pop(user_id, None) is not None

    async def get_older_than(self, cutoff):
        stale = [p for p in self.t().pending.values() if p.created_at < cutoff]
        return [replace(p) for p in sorted(stale, key=lambda p: p.created_at)]

    async def delete_all(self):
        count = len(self.t().pending)
        self.t().pending.clear()
        return count


class _Undo:
    def __init__(self, t):
        self.t = t

    async def push(
        self, user_id, checkin_id, checkin_kind, checkin_timestamp, checkin_raw_text,
        checkin_username, session_id, undo_type, snapshot,
    ):
        for entry_id, entry in list(self.t().undo.items()):
            if entry.user_id == user_id and entry.checkin_id == checkin_id:
                del self.t().undo[entry_id]
        entry = UndoEntry(
            id=self.t().next_undo_id, user_id=user_id, checkin_id=checkin_id, checkin_kind=checkin_kind,
            checkin_timestamp=checkin_timestamp, checkin_raw_text=checkin_raw_text,
            checkin_username=checkin_username, session_id=session_id, undo_type=undo_type,
            snapshot=snapshot, created_at=datetime.now(timezone.utc),
        )
        self.t().undo[entry.id] = entry
        self.t().next_undo_id += 1
        return replace(entry)

    def _mine(self, user_id):
        return sorted((e for e in self.t().undo.values() if e.user_id == user_id), key=lambda e: e.id, reverse=True)

    async def peek_latest(self, user_id):
        mine = self._mine(user_id)
        return replace(mine[0]) if mine else None

    async def count(self, user_id):
        return len(self._mine(user_id))

    async def delete(self, entry_id):
        return self.t().undo.pop(entry_id, None) is not None

    async def clear(self, user_id):
        mine = self._mine(user_id)
        for entry in mine:
            del self.t().undo[entry.id]
        return len(mine)

    async def delete_all(self):
        count = len(self.t().undo)
        self.t().undo.clear()
        return count


class _SummaryState:
    def __init__(self, t):
        self.t = t

    async def get_last_summary_date(self):
        return max(self.t().summary_dates) if self.t().summary_dates else None

    async def set_last_summary_date(self, summary_date: date):
        self.t().summary_dates.add(summary_date)

    async def delete_all(self):
        count = len(self.t().summary_dates)
        self.t().summary_dates.clear()
        return count


class MemoryStore:
    """In-memory SleepStore"""

    def __init__(self):
        self.tables = _Tables()
        self.transactions = 0
        self._depth = 0
        tables = lambda: self.tables  # noqa: E731
        self.checkins = _Checkins(tables)
        self.sessions = _Sessions(tables)
        self.pending = _Pending(tables)
        self.undo = _Undo(tables)
        self.summary_state = _SummaryState(tables)

    @asynccontextmanager
    async def transaction(self):
        saved = copy.deepcopy(self.tables)
        self._depth += 1
        if self._depth == 1:
            self.transactions += 1
        try:
            yield
        except BaseException:
            self.tables = saved
            raise
        finally:
            self._depth -= 1

    async def wipe_all(self):
        async with self.transaction():
            await self.sessions.delete_all()
            await self.checkins.delete_all()
            await self.pending.delete_all()
            await self.undo.delete_all()
            await self.summary_state.delete_all()

    # Synchronous views for assertions
    def sessions_of(self, user_id):
        return sorted((s for s in self.tables.sessions.values() if s.user_id == user_id), key=lambda s: s.id)

    def open_sessions_of(self, user_id):
        return [s for s in self.sessions_of(user_id) if s.is_open]

    def checkins_of(self, user_id):
        return sorted((c for c in self.tables.checkins.values() if c.user_id == user_id), key=lambda c: c.id)


@pytest.fixture
def store():
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def tracker(store):
    """Sleep tracker on the in-memory store, Los Angeles time."""
    return SleepTracker(store=store, zone=LA, grace=timedelta(hours=1), locks=UserLocks())


@pytest.fixture
def undo_manager(store, tracker):
    """Undo manager sharing the tracker's store and locks."""
    return UndoManager(store=store, locks=tracker.locks)
