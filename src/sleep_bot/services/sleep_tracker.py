"""Check-in state machine

Drives the session lifecycle from parsed check-ins:

* ``gn`` opens a session, or records a pending gn while another session is open
* ``gm`` closes the open session (picking one when several are open)
* a bare ``!n`` fills the evening or morning energy rating
* the periodic sweep promotes pending gns left unresolved past the grace period

Every call re-reads the store and runs its writes in one transaction while
holding the user's lock.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from sleep_bot.config.constants import (
    MAX_PLAUSIBLE_SLEEP_HOURS,
    MAX_REPAIRED_SLEEP_MINUTES,
    MIN_PLAUSIBLE_SLEEP_HOURS,
    PENDING_GRACE_PERIOD,
    TARGET_SLEEP_HOURS,
    CheckinKind,
    RatingSlot,
    RatingStatus,
)
from sleep_bot.core.locks import UserLocks, get_user_locks
from sleep_bot.core.timezone import get_timezone, utc_now
from sleep_bot.models.sleep_session import SleepSession
from sleep_bot.repositories.store import SleepStore
from sleep_bot.services.command_parser import MessageKind, ParsedMessage, parse_message
from sleep_bot.services.time_resolver import (
    minutes_between,
    parse_time_token,
    previous_evening,
    resolve_bedtime,
    resolve_wake,
)

logger = logging.getLogger(__name__)


class CheckinOutcome(str, Enum):
    """What a check-in did"""
    SESSION_OPENED = "SESSION_OPENED"
    PENDING_RECORDED = "PENDING_RECORDED"
    PENDING_PROMOTED = "PENDING_PROMOTED"
    SESSION_CLOSED = "SESSION_CLOSED"
    DUPLICATE_GOODMORNING = "DUPLICATE_GOODMORNING"
    NO_OPEN_SESSION = "NO_OPEN_SESSION"
    TIME_PARSE_ERROR = "TIME_PARSE_ERROR"
    RATING_RECORDED = "RATING_RECORDED"
    NO_RATING_TARGET = "NO_RATING_TARGET"
    IGNORED = "IGNORED"


class RatingPrompt(str, Enum):
    """Follow-up the caller should send (advisory only)"""
    NONE = "NONE"
    EVENING = "EVENING"
    MORNING = "MORNING"
    BOTH = "BOTH"
    MORNING_AFTER_EVENING = "MORNING_AFTER_EVENING"


@dataclass
class CheckinResult:
    """Result of one check-in"""

    outcome: CheckinOutcome
    session: SleepSession | None = None
    prompt: RatingPrompt = RatingPrompt.NONE
    # A negative sleep duration survived the bedtime repair
    anomaly: bool = False
    kind: MessageKind = MessageKind.UNKNOWN


class SleepTracker:
    """Check-in state machine"""

    def __init__(
        self,
        store: SleepStore | None = None,
        zone: ZoneInfo | None = None,
        grace: timedelta = PENDING_GRACE_PERIOD,
        locks: UserLocks | None = None,
    ):
        self.store = store or SleepStore()
        self.zone = zone or get_timezone()
        self.grace = grace
        self.locks = locks or get_user_locks()

    async def handle_message(
        self,
        user_id: int,
        username: str,
        raw_text: str,
        now: datetime | None = None,
    ) -> CheckinResult:
        """
        Parse a chat message and dispatch it

        Returns:
            The check-in result tagged with the message kind; ``IGNORED``
            for text that is not a check-in
        """
        parsed = parse_message(raw_text)
        if parsed.kind == MessageKind.GN:
            result = await self.on_goodnight(user_id, username, raw_text, parsed, now)
        elif parsed.kind == MessageKind.GM:
            result = await self.on_goodmorning(user_id, username, raw_text, parsed, now)
        elif parsed.kind == MessageKind.RATING_ONLY:
            result = await self.on_rating(user_id, username, raw_text, parsed.rating, now)
        else:
            return CheckinResult(outcome=CheckinOutcome.IGNORED)
        result.kind = parsed.kind
        return result

    # ==================== gn ====================

    async def on_goodnight(
        self,
        user_id: int,
        username: str,
        raw_text: str,
        parsed: ParsedMessage,
        now: datetime | None = None,
    ) -> CheckinResult:
        """
        Handle a gn check-in

        Args:
            user_id: Telegram user ID
            username: Display name at posting time
            raw_text: Message as posted
            parsed: Parsed message
            now: Reference instant (defaults to the current time)

        Returns:
            ``SESSION_OPENED``, ``PENDING_RECORDED``, ``PENDING_PROMOTED``
            or ``TIME_PARSE_ERROR``
        """
        now = now or utc_now()

        if parsed.time_token:
            bed_time = resolve_bedtime(parsed.time_token, now, self.zone)
            if bed_time is None:
                logger.info(f"gn time not understood: user={user_id} token={parsed.time_token!r}")
                return CheckinResult(outcome=CheckinOutcome.TIME_PARSE_ERROR)
        else:
            bed_time = now

        async with self.locks.hold(user_id):
            async with self.store.transaction():
                # Starting a new night forfeits the previous night's evening rating
                unrated = await self.store.sessions.get_last_needing_evening_rating(user_id)
                if unrated is not None and not unrated.is_open:
                    await self.store.sessions.omit_evening_rating(unrated.id)
                    logger.info(f"Evening rating omitted: session={unrated.id} user={user_id}")

                open_sessions = await self.store.sessions.get_open(user_id)
                if open_sessions:
                    checkin = await self.store.checkins.create(
                        user_id, username, CheckinKind.GN, bed_time, raw_text
                    )
                    await self.store.pending.upsert(
                        user_id, checkin.id, bed_time, raw_text, now, parsed.note
                    )
                    await self.store.undo.clear(user_id)
                    logger.info(
                        f"Pending gn recorded: user={user_id} checkin={checkin.id} "
                        f"open_session={open_sessions[0].id}"
                    )
                    return CheckinResult(
                        outcome=CheckinOutcome.PENDING_RECORDED,
                        session=open_sessions[0],
                    )

                outcome = CheckinOutcome.SESSION_OPENED
                note = parsed.note
                pending = await self.store.pending.get(user_id)
                if pending is not None:
                    await self.store.pending.delete(user_id)
                    if await self.store.checkins.get_by_id(pending.checkin_id) is not None:
                        outcome = CheckinOutcome.PENDING_PROMOTED
                        bed_time = pending.bed_time
                        note = pending.note
                    else:
                        logger.info(f"Stale pending gn discarded: user={user_id} checkin={pending.checkin_id}")

                rating = parsed.rating
                session = await self.store.sessions.create(
                    user_id,
                    username,
                    bed_time,
                    note=note,
                    evening_rating=rating,
                    evening_rating_status=RatingStatus.RECORDED if rating is not None else RatingStatus.MISSING,
                )
                await self.store.checkins.create(user_id, username, CheckinKind.GN, bed_time, raw_text)
                await self.store.undo.clear(user_id)

        logger.info(f"Session opened: user={user_id} session={session.id} via={outcome.value}")
        return CheckinResult(
            outcome=outcome,
            session=session,
            prompt=RatingPrompt.EVENING if rating is None else RatingPrompt.NONE,
        )

    # ==================== gm ====================

    async def on_goodmorning(
        self,
        user_id: int,
        username: str,
        raw_text: str,
        parsed: ParsedMessage,
        now: datetime | None = None,
    ) -> CheckinResult:
        """
        Handle a gm check-in

        Returns:
            ``SESSION_CLOSED``, ``DUPLICATE_GOODMORNING``, ``NO_OPEN_SESSION``
            or ``TIME_PARSE_ERROR``
        """
        now = now or utc_now()

        async with self.locks.hold(user_id):
            open_sessions = await self.store.sessions.get_open(user_id)
            if not open_sessions:
                last = await self.store.sessions.get_last(user_id)
                if last is not None and not last.is_open:
                    return CheckinResult(outcome=CheckinOutcome.DUPLICATE_GOODMORNING, session=last)
                return CheckinResult(outcome=CheckinOutcome.NO_OPEN_SESSION)

            target = self._select_target(open_sessions, parsed.time_token, now)

            if parsed.time_token:
                wake_time = resolve_wake(parsed.time_token, target.bed_time, self.zone)
                if wake_time is None:
                    logger.info(f"gm time not understood: user={user_id} token={parsed.time_token!r}")
                    return CheckinResult(outcome=CheckinOutcome.TIME_PARSE_ERROR)
            else:
                wake_time = now

            anomaly = False
            async with self.store.transaction():
                sleep_minutes = minutes_between(target.bed_time, wake_time)
                if sleep_minutes < 0:
                    repaired = await self._repair_bedtime(target, wake_time)
                    if repaired is not None:
                        await self.store.sessions.update_bed_time(target.id, repaired)
                        logger.info(
                            f"Bedtime repaired: session={target.id} "
                            f"{target.bed_time.isoformat()} -> {repaired.isoformat()}"
                        )
                        sleep_minutes = minutes_between(repaired, wake_time)
                    else:
                        anomaly = True
                        logger.warning(
                            f"Negative sleep duration kept: session={target.id} user={user_id} "
                            f"minutes={sleep_minutes}"
                        )

                session = await self.store.sessions.close(
                    target.id,
                    wake_time,
                    sleep_minutes,
                    morning_rating=parsed.rating,
                    morning_note=parsed.note,
                )
                await self.store.checkins.create(user_id, username, CheckinKind.GM, wake_time, raw_text)
                await self.store.undo.clear(user_id)

                for other in open_sessions:
                    if other.id != target.id:
                        await self.store.sessions.delete(other.id)
                        logger.info(f"Abandoned open session deleted: session={other.id} user={user_id}")

                await self.store.pending.delete(user_id)

        logger.info(f"Session closed: user={user_id} session={target.id} minutes={sleep_minutes}")
        return CheckinResult(
            outcome=CheckinOutcome.SESSION_CLOSED,
            session=session,
            prompt=self._prompt_after_goodmorning(session),
            anomaly=anomaly,
        )

    def _select_target(
        self,
        open_sessions: list[SleepSession],
        time_token: str | None,
        now: datetime,
    ) -> SleepSession:
        """
        Pick the session a gm closes

        Defaults to the newest open session. With several open and a wake
        override in the past, prefers the session implying a sleep closest to
        eight hours among those implying 4-12 hours; ties go to the
        earliest-created session.
        """
        default = open_sessions[0]
        if len(open_sessions) < 2 or not time_token:
            return default

        wake_time = resolve_wake(time_token, default.bed_time, self.zone)
        if wake_time is None or wake_time >= now:
            return default

        best = None
        best_score = None
        for session in sorted(open_sessions, key=lambda s: s.id):
            if wake_time <= session.bed_time:
                continue
            hours = (wake_time - session.bed_time) / timedelta(hours=1)
            if not MIN_PLAUSIBLE_SLEEP_HOURS <= hours <= MAX_PLAUSIBLE_SLEEP_HOURS:
                continue
            score = abs(hours - TARGET_SLEEP_HOURS)
            if best_score is None or score < best_score:
                best = session
                best_score = score

        if best is not None and best.id != default.id:
            logger.info(f"gm matched older open session: session={best.id} score={best_score:.2f}")
        return best or default

    async def _repair_bedtime(self, session: SleepSession, wake_time: datetime) -> datetime | None:
        """
        Retry an ambiguous gn time as the previous evening

        Applies only when the gn that opened ``session`` carried a time with
        no meridiem and an hour up to 12, and the stored bedtime is not before
        the wake time. The repair is kept when it yields a sleep in
        (0, 16 hours].

        Returns:
            The repaired bedtime, or None when no repair applies
        """
        if session.bed_time < wake_time:
            return None

        checkin = await self.store.checkins.get_last_goodnight_before(session.user_id, session.bed_time)
        if checkin is None:
            return None

        token = parse_time_token(parse_message(checkin.raw_text).time_token)
        if token is None or not token.is_ambiguous:
            return None

        candidate = previous_evening(token, wake_time, self.zone)
        minutes = minutes_between(candidate, wake_time)
        if 0 < minutes <= MAX_REPAIRED_SLEEP_MINUTES:
            return candidate
        return None

    @staticmethod
    def _prompt_after_goodmorning(session: SleepSession) -> RatingPrompt:
        if session.needs_evening_rating and session.needs_morning_rating:
            return RatingPrompt.BOTH
        if session.needs_evening_rating:
            return RatingPrompt.EVENING
        if session.needs_morning_rating:
            return RatingPrompt.MORNING
        return RatingPrompt.NONE

    # ==================== ratings ====================

    async def on_rating(
        self,
        user_id: int,
        username: str,
        raw_text: str,
        rating: int,
        now: datetime | None = None,
    ) -> CheckinResult:
        """
        Handle a bare ``!n`` rating

        A session missing both ratings takes the evening one first. Otherwise
        a missing morning rating is filled before a missing evening rating.

        Returns:
            ``RATING_RECORDED`` or ``NO_RATING_TARGET``
        """
        now = now or utc_now()

        async with self.locks.hold(user_id):
            async with self.store.transaction():
                needs_evening = await self.store.sessions.get_last_needing_evening_rating(user_id)
                needs_morning = await self.store.sessions.get_last_needing_morning_rating(user_id)

                prompt = RatingPrompt.NONE
                if needs_evening is not None and needs_morning is not None and needs_evening.id == needs_morning.id:
                    session = await self.store.sessions.set_evening_rating(needs_evening.id, rating)
                    slot = RatingSlot.EVENING
                    if session.needs_morning_rating:
                        prompt = RatingPrompt.MORNING_AFTER_EVENING
                elif needs_morning is not None:
                    session = await self.store.sessions.set_morning_rating(needs_morning.id, rating)
                    slot = RatingSlot.MORNING
                elif needs_evening is not None:
                    session = await self.store.sessions.set_evening_rating(needs_evening.id, rating)
                    slot = RatingSlot.EVENING
                else:
                    return CheckinResult(outcome=CheckinOutcome.NO_RATING_TARGET)

                await self.store.checkins.create(
                    user_id, username, CheckinKind.RATING, now, raw_text,
                    session_id=session.id, rating_slot=slot,
                )
                await self.store.undo.clear(user_id)

        logger.info(f"Rating recorded: user={user_id} session={session.id} {slot.value.lower()}={rating}")
        return CheckinResult(outcome=CheckinOutcome.RATING_RECORDED, session=session, prompt=prompt)

    # ==================== pending sweep ====================

    async def process_pending_promotions(self, now: datetime | None = None) -> list[CheckinResult]:
        """
        Promote pending gns older than the grace period

        For each one: if its check-in was reset, the pending record is dropped;
        otherwise every open session of the user is deleted as abandoned and a
        new open session starts at the pending bedtime.

        Returns:
            One ``PENDING_PROMOTED`` result per promoted session
        """
        now = now or utc_now()
        cutoff = now - self.grace

        results = []
        for stale in await self.store.pending.get_older_than(cutoff):
            async with self.locks.hold(stale.user_id):
                session = await self._promote_pending(stale.user_id, stale.checkin_id)
            if session is not None:
                results.append(CheckinResult(outcome=CheckinOutcome.PENDING_PROMOTED, session=session))

        if results:
            logger.info(f"Pending sweep promoted {len(results)} gn(s)")
        return results

    async def _promote_pending(self, user_id: int, checkin_id: int) -> SleepSession | None:
        async with self.store.transaction():
            pending = await self.store.pending.get(user_id)
            if pending is None or pending.checkin_id != checkin_id:
                # Resolved or replaced since the sweep started
                return None

            await self.store.pending.delete(user_id)

            checkin = await self.store.checkins.get_by_id(pending.checkin_id)
            if checkin is None:
                logger.info(f"Pending gn dropped, check-in was reset: user={user_id} checkin={checkin_id}")
                return None

            for abandoned in await self.store.sessions.get_open(user_id):
                await self.store.sessions.delete(abandoned.id)
                logger.info(f"Abandoned open session deleted: session={abandoned.id} user={user_id}")

            session = await self.store.sessions.create(
                user_id, checkin.username, pending.bed_time, note=pending.note
            )

        logger.info(f"Pending gn promoted: user={user_id} session={session.id}")
        return session
