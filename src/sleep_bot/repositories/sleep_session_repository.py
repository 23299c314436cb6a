"""Sleep session data access layer"""

import logging
from datetime import datetime
from typing import List

from sleep_bot.config.constants import RatingStatus, SessionState, SessionStatus
from sleep_bot.models.sleep_session import SleepSession
from sleep_bot.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SleepSessionRepository(BaseRepository):
    """Sleep session Repository

    The ``state`` column is derived by a database trigger on every write.
    """

    async def create(
        self,
        user_id: int,
        username: str,
        bed_time: datetime,
        note: str | None = None,
        evening_rating: int | None = None,
        evening_rating_status: RatingStatus = RatingStatus.MISSING,
        session_id: int | None = None,
    ) -> SleepSession:
        """
        Open a new session

        Args:
            session_id: Reuse this ID when it is free (undo of a reset gn)
        """
        conn = await self._get_connection()
        try:
            record = None
            if session_id is not None:
                record = await conn.fetchrow(
                    """
                    INSERT INTO sleep_sessions (
                        id, user_id, username, bed_time, note,
                        evening_rating, evening_rating_status, status
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, 'OPEN')
                    ON CONFLICT (id) DO NOTHING
                    RETURNING *
                    """,
                    session_id,
                    user_id,
                    username,
                    bed_time,
                    note,
                    evening_rating,
                    evening_rating_status.value,
                )
            if record is None:
                record = await conn.fetchrow(
                    """
                    INSERT INTO sleep_sessions (
                        user_id, username, bed_time, note,
                        evening_rating, evening_rating_status, status
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, 'OPEN')
                    RETURNING *
                    """,
                    user_id,
                    username,
                    bed_time,
                    note,
                    evening_rating,
                    evening_rating_status.value,
                )
            session = self._to_model(record)
            logger.debug(f"Session opened: id={session.id} user={user_id}")
            return session
        finally:
            await self._release_connection(conn)

    async def get_by_id(self, session_id: int) -> SleepSession | None:
        """Get session by ID"""
        return await self._fetch_one("SELECT * FROM sleep_sessions WHERE id = $1", session_id)

    async def get_open(self, user_id: int) -> List[SleepSession]:
        """All open sessions of a user, newest first"""
        conn = await self._get_connection()
        try:
            records = await conn.fetch(
                """
                SELECT * FROM sleep_sessions
                WHERE user_id = $1 AND status = 'OPEN'
                ORDER BY id DESC
                """,
                user_id,
            )
            return [self._to_model(record) for record in records]
        finally:
            await self._release_connection(conn)

    async def get_last(self, user_id: int) -> SleepSession | None:
        """Most recently created session of a user"""
        return await self._fetch_one(
            "SELECT * FROM sleep_sessions WHERE user_id = $1 ORDER BY id DESC LIMIT 1",
            user_id,
        )

    async def get_last_needing_evening_rating(self, user_id: int) -> SleepSession | None:
        """Most recent session whose evening rating is still missing"""
        return await self._fetch_one(
            """
            SELECT * FROM sleep_sessions
            WHERE user_id = $1 AND evening_rating_status = 'MISSING'
            ORDER BY id DESC
            LIMIT 1
            """,
            user_id,
        )

    async def get_last_needing_morning_rating(self, user_id: int) -> SleepSession | None:
        """Most recent closed session without a morning rating"""
        return await self._fetch_one(
            """
            SELECT * FROM sleep_sessions
            WHERE user_id = $1 AND status = 'CLOSED' AND morning_rating IS NULL
            ORDER BY id DESC
            LIMIT 1
            """,
            user_id,
        )

    async def close(
        self,
        session_id: int,
        wake_time: datetime,
        sleep_minutes: int,
        morning_rating: int | None = None,
        morning_note: str | None = None,
    ) -> SleepSession | None:
        """Close a session"""
        return await self._update(
            """
            UPDATE sleep_sessions
            SET wake_time = $1, sleep_minutes = $2, status = 'CLOSED',
                morning_rating = $3, morning_note = $4
            WHERE id = $5
            RETURNING *
            """,
            wake_time,
            sleep_minutes,
            morning_rating,
            morning_note,
            session_id,
        )

    async def reopen(self, session_id: int) -> SleepSession | None:
        """Reopen a closed session (morning rating and note are kept)"""
        return await self._update(
            """
            UPDATE sleep_sessions
            SET wake_time = NULL, sleep_minutes = NULL, status = 'OPEN'
            WHERE id = $1
            RETURNING *
            """,
            session_id,
        )

    async def set_evening_rating(self, session_id: int, rating: int) -> SleepSession | None:
        """Record the evening rating"""
        return await self._update(
            """
            UPDATE sleep_sessions
            SET evening_rating = $1, evening_rating_status = 'RECORDED'
            WHERE id = $2
            RETURNING *
            """,
            rating,
            session_id,
        )

    async def clear_evening_rating(self, session_id: int) -> SleepSession | None:
        """Forget the evening rating"""
        return await self._update(
            """
            UPDATE sleep_sessions
            SET evening_rating = NULL, evening_rating_status = 'MISSING'
            WHERE id = $1
            RETURNING *
            """,
            session_id,
        )

    async def omit_evening_rating(self, session_id: int) -> SleepSession | None:
        """Give up on the evening rating"""
        return await self._update(
            """
            UPDATE sleep_sessions
            SET evening_rating_status = 'OMITTED'
            WHERE id = $1
            RETURNING *
            """,
            session_id,
        )

    async def set_morning_rating(self, session_id: int, rating: int | None) -> SleepSession | None:
        """Record (or clear, with None) the morning rating"""
        return await self._update(
            "UPDATE sleep_sessions SET morning_rating = $1 WHERE id = $2 RETURNING *",
            rating,
            session_id,
        )

    async def update_bed_time(self, session_id: int, bed_time: datetime) -> SleepSession | None:
        """Move the bedtime of a session"""
        return await self._update(
            "UPDATE sleep_sessions SET bed_time = $1 WHERE id = $2 RETURNING *",
            bed_time,
            session_id,
        )

    async def delete(self, session_id: int) -> bool:
        """Delete a session"""
        conn = await self._get_connection()
        try:
            result = await conn.execute(
                "DELETE FROM sleep_sessions WHERE id = $1",
                session_id,
            )
            return result == "DELETE 1"
        finally:
            await self._release_connection(conn)

    async def get_closed(self) -> List[SleepSession]:
        """Every closed session, oldest bedtime first"""
        conn = await self._get_connection()
        try:
            records = await conn.fetch(
                "SELECT * FROM sleep_sessions WHERE status = 'CLOSED' ORDER BY bed_time ASC"
            )
            return [self._to_model(record) for record in records]
        finally:
            await self._release_connection(conn)

    async def get_closed_between(self, start: datetime, end: datetime) -> List[SleepSession]:
        """Closed sessions with a bedtime in [start, end)"""
        conn = await self._get_connection()
        try:
            records = await conn.fetch(
                """
                SELECT * FROM sleep_sessions
                WHERE status = 'CLOSED' AND bed_time >= $1 AND bed_time < $2
                ORDER BY sleep_minutes ASC
                """,
                start,
                end,
            )
            return [self._to_model(record) for record in records]
        finally:
            await self._release_connection(conn)

    async def delete_all(self) -> int:
        """Delete every session"""
        conn = await self._get_connection()
        try:
            return self._affected(await conn.execute("DELETE FROM sleep_sessions"))
        finally:
            await self._release_connection(conn)

    async def _fetch_one(self, query: str, *params) -> SleepSession | None:
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(query, *params)
            if not record:
                return None
            return self._to_model(record)
        finally:
            await self._release_connection(conn)

    async def _update(self, query: str, *params) -> SleepSession | None:
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(query, *params)
            if not record:
                logger.warning(f"Session update matched no row: params={params}")
                return None
            return self._to_model(record)
        finally:
            await self._release_connection(conn)

    @staticmethod
    def _to_model(record) -> SleepSession:
        """Convert database record to model"""
        return SleepSession(
            id=record["id"],
            user_id=record["user_id"],
            username=record["username"],
            bed_time=record["bed_time"],
            wake_time=record["wake_time"],
            sleep_minutes=record["sleep_minutes"],
            evening_rating=record["evening_rating"],
            evening_rating_status=RatingStatus(record["evening_rating_status"]),
            morning_rating=record["morning_rating"],
            status=SessionStatus(record["status"]),
            state=SessionState(record["state"]),
            note=record["note"],
            morning_note=record["morning_note"],
        )
