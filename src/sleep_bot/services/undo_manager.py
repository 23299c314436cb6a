"""Reset and undo

``reset_last`` deletes a user's newest check-in, reverses its effect on the
session it touched and pushes an undo entry describing the inverse.
``undo`` pops the newest entry, replays that inverse and restores the
check-in. Entries stack, so several resets can be undone in order.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sleep_bot.config.constants import CheckinKind, RatingSlot, SessionStatus, UndoType
from sleep_bot.core.locks import UserLocks, get_user_locks
from sleep_bot.models.checkin import Checkin
from sleep_bot.models.sleep_session import SleepSession
from sleep_bot.models.undo_entry import (
    EveningRatingSnapshot,
    GoodmorningSnapshot,
    GoodnightSnapshot,
    MorningRatingSnapshot,
    UndoEntry,
    UndoSnapshot,
)
from sleep_bot.repositories.store import SleepStore

logger = logging.getLogger(__name__)

_RATING_SLOTS = {
    UndoType.EVENING_RATING_CLEAR: RatingSlot.EVENING,
    UndoType.MORNING_RATING_CLEAR: RatingSlot.MORNING,
}


class ResetOutcome(str, Enum):
    """Reset result"""
    RESET = "RESET"
    NOTHING_TO_RESET = "NOTHING_TO_RESET"


class UndoOutcome(str, Enum):
    """Undo result"""
    RESTORED = "RESTORED"
    NOTHING_TO_UNDO = "NOTHING_TO_UNDO"


@dataclass
class ResetResult:
    outcome: ResetOutcome
    checkin: Checkin | None = None
    entry: UndoEntry | None = None


@dataclass
class UndoResult:
    outcome: UndoOutcome
    entry: UndoEntry | None = None
    session: SleepSession | None = None
    # False when the original check-in ID was taken and a new row was used
    original_id_reused: bool = True
    has_more: bool = False


class UndoManager:
    """Undo stack manager"""

    def __init__(self, store: SleepStore | None = None, locks: UserLocks | None = None):
        self.store = store or SleepStore()
        self.locks = locks or get_user_locks()

        self._inverses = {
            UndoType.GN_DELETE: self._recreate_session,
            UndoType.GM_REOPEN: self._close_again,
            UndoType.EVENING_RATING_CLEAR: self._restore_evening_rating,
            UndoType.MORNING_RATING_CLEAR: self._restore_morning_rating,
        }

    # ==================== reset ====================

    async def reset_last(self, user_id: int, username: str) -> ResetResult:
        """
        Reset the user's newest check-in

        Args:
            user_id: Telegram user ID
            username: Display name, used when the check-in carries none

        Returns:
            ``RESET`` with the removed check-in, or ``NOTHING_TO_RESET``
        """
        async with self.locks.hold(user_id):
            async with self.store.transaction():
                last = await self.store.checkins.get_last(user_id)
                if last is None:
                    return ResetResult(outcome=ResetOutcome.NOTHING_TO_RESET)

                if last.kind == CheckinKind.GM:
                    session_id, undo_type, snapshot = await self._reset_goodmorning(user_id)
                elif last.kind == CheckinKind.GN:
                    session_id, undo_type, snapshot = await self._reset_goodnight(user_id, last)
                else:
                    session_id, undo_type, snapshot = await self._reset_rating(user_id, last)

                if not last.username:
                    last.username = username
                entry = await self.push_reset(last, session_id, undo_type, snapshot)
                await self.store.checkins.delete(last.id)

        logger.info(f"Reset: user={user_id} checkin={last.id} kind={last.kind.value} undo={undo_type.value}")
        return ResetResult(outcome=ResetOutcome.RESET, checkin=last, entry=entry)

    async def push_reset(
        self,
        checkin: Checkin,
        session_id: int | None,
        undo_type: UndoType,
        snapshot: UndoSnapshot,
    ) -> UndoEntry:
        """Push the undo entry for a check-in about to be deleted"""
        return await self.store.undo.push(
            user_id=checkin.user_id,
            checkin_id=checkin.id,
            checkin_kind=checkin.kind,
            checkin_timestamp=checkin.timestamp,
            checkin_raw_text=checkin.raw_text or "",
            checkin_username=checkin.username,
            session_id=session_id,
            undo_type=undo_type,
            snapshot=snapshot,
        )

    async def _reset_goodmorning(self, user_id: int):
        open_sessions = await self.store.sessions.get_open(user_id)
        session = open_sessions[0] if open_sessions else await self.store.sessions.get_last(user_id)
        if session is None or session.is_open:
            return None, UndoType.UNKNOWN, None

        snapshot = GoodmorningSnapshot(
            wake_time=session.wake_time,
            sleep_minutes=session.sleep_minutes,
            morning_rating=session.morning_rating,
            morning_note=session.morning_note,
        )
        await self.store.sessions.reopen(session.id)
        return session.id, UndoType.GM_REOPEN, snapshot

    async def _reset_goodnight(self, user_id: int, checkin: Checkin):
        pending = await self.store.pending.get(user_id)
        if pending is not None and pending.checkin_id == checkin.id:
            # The gn only created a pending record, which goes inert with its check-in
            return None, UndoType.UNKNOWN, None

        open_sessions = await self.store.sessions.get_open(user_id)
        if not open_sessions:
            return None, UndoType.UNKNOWN, None

        session = open_sessions[0]
        snapshot = GoodnightSnapshot(
            username=session.username,
            bed_time=session.bed_time,
            note=session.note,
            evening_rating=session.evening_rating,
            evening_rating_status=session.evening_rating_status,
        )
        await self.store.sessions.delete(session.id)
        return session.id, UndoType.GN_DELETE, snapshot

    async def _reset_rating(self, user_id: int, checkin: Checkin):
        if checkin.session_id is not None and checkin.rating_slot is not None:
            session = await self.store.sessions.get_by_id(checkin.session_id)
            if session is None:
                return None, UndoType.UNKNOWN, None
            if checkin.rating_slot == RatingSlot.MORNING:
                return await self._clear_morning(session)
            return await self._clear_evening(session)

        # Check-in without a recorded target: guess from the newest session
        session = await self.store.sessions.get_last(user_id)
        if session is None:
            return None, UndoType.UNKNOWN, None

        # Morning slot first: it is the later of the two to be filled
        if session.morning_rating is not None:
            return await self._clear_morning(session)
        return await self._clear_evening(session)

    async def _clear_morning(self, session: SleepSession):
        if session.morning_rating is None:
            return session.id, UndoType.UNKNOWN, None
        snapshot = MorningRatingSnapshot(rating=session.morning_rating)
        await self.store.sessions.set_morning_rating(session.id, None)
        return session.id, UndoType.MORNING_RATING_CLEAR, snapshot

    async def _clear_evening(self, session: SleepSession):
        if session.evening_rating is None:
            return session.id, UndoType.UNKNOWN, None
        snapshot = EveningRatingSnapshot(
            rating=session.evening_rating,
            rating_status=session.evening_rating_status,
        )
        await self.store.sessions.clear_evening_rating(session.id)
        return session.id, UndoType.EVENING_RATING_CLEAR, snapshot

    # ==================== undo ====================

    async def peek_latest(self, user_id: int) -> UndoEntry | None:
        """Newest undo entry of the user"""
        return await self.store.undo.peek_latest(user_id)

    async def pop_and_apply(self, user_id: int) -> UndoResult:
        """
        Undo the user's newest reset

        Replays the inverse, restores the check-in (original ID when free)
        and removes exactly one entry.

        Returns:
            ``RESTORED`` with ``has_more`` set when entries remain,
            or ``NOTHING_TO_UNDO``
        """
        async with self.locks.hold(user_id):
            async with self.store.transaction():
                entry = await self.store.undo.peek_latest(user_id)
                if entry is None:
                    return UndoResult(outcome=UndoOutcome.NOTHING_TO_UNDO)

                session = None
                inverse = self._inverses.get(entry.undo_type)
                if inverse is not None and entry.snapshot is not None:
                    session = await inverse(entry)

                # A restored rating keeps pointing at the slot it fills again
                rating_slot = _RATING_SLOTS.get(entry.undo_type)
                reused = await self.store.checkins.restore(
                    entry.checkin_id,
                    entry.user_id,
                    entry.checkin_username,
                    entry.checkin_kind,
                    entry.checkin_timestamp,
                    entry.checkin_raw_text,
                    session_id=session.id if rating_slot and session else None,
                    rating_slot=rating_slot if session else None,
                )
                await self.store.undo.delete(entry.id)
                remaining = await self.store.undo.count(user_id)

        logger.info(f"Undo: user={user_id} checkin={entry.checkin_id} undo={entry.undo_type.value} remaining={remaining}")
        return UndoResult(
            outcome=UndoOutcome.RESTORED,
            entry=entry,
            session=session,
            original_id_reused=reused,
            has_more=remaining > 0,
        )

    async def _recreate_session(self, entry: UndoEntry) -> SleepSession:
        snapshot: GoodnightSnapshot = entry.snapshot
        return await self.store.sessions.create(
            entry.user_id,
            snapshot.username,
            snapshot.bed_time,
            note=snapshot.note,
            evening_rating=snapshot.evening_rating,
            evening_rating_status=snapshot.evening_rating_status,
            session_id=entry.session_id,
        )

    async def _close_again(self, entry: UndoEntry) -> SleepSession | None:
        snapshot: GoodmorningSnapshot = entry.snapshot
        session = await self._session_by_id(entry.session_id)
        if session is None or not session.is_open:
            # The gn behind it may have been reset and re-added under a new ID
            open_sessions = await self.store.sessions.get_open(entry.user_id)
            session = open_sessions[0] if open_sessions else None
        if session is None:
            logger.warning(f"Cannot restore gm: no open session for user {entry.user_id}")
            return None

        return await self.store.sessions.close(
            session.id,
            snapshot.wake_time,
            snapshot.sleep_minutes,
            morning_rating=snapshot.morning_rating,
            morning_note=snapshot.morning_note,
        )

    async def _restore_evening_rating(self, entry: UndoEntry) -> SleepSession | None:
        snapshot: EveningRatingSnapshot = entry.snapshot
        session = await self._session_by_id(entry.session_id)
        if session is None:
            open_sessions = await self.store.sessions.get_open(entry.user_id)
            session = open_sessions[0] if open_sessions else await self.store.sessions.get_last(entry.user_id)
        if session is None:
            logger.warning(f"Cannot restore evening rating: no session for user {entry.user_id}")
            return None
        return await self.store.sessions.set_evening_rating(session.id, snapshot.rating)

    async def _restore_morning_rating(self, entry: UndoEntry) -> SleepSession | None:
        snapshot: MorningRatingSnapshot = entry.snapshot
        session = await self._session_by_id(entry.session_id)
        if session is None or session.status != SessionStatus.CLOSED:
            session = await self.store.sessions.get_last(entry.user_id)
        if session is None or session.status != SessionStatus.CLOSED:
            logger.warning(f"Cannot restore morning rating: no closed session for user {entry.user_id}")
            return None
        return await self.store.sessions.set_morning_rating(session.id, snapshot.rating)

    async def _session_by_id(self, session_id: int | None) -> SleepSession | None:
        if session_id is None:
            return None
        return await self.store.sessions.get_by_id(session_id)

    # ==================== admin ====================

    async def wipe_all(self, requester_id: int) -> None:
        """Delete every check-in, session, pending gn and undo entry"""
        logger.warning(f"Wipe-all requested by {requester_id}")
        await self.store.wipe_all()
