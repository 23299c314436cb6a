"""Check-in data access layer"""

import logging
from datetime import datetime

from sleep_bot.config.constants import CheckinKind, RatingSlot
from sleep_bot.models.checkin import Checkin
from sleep_bot.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class CheckinRepository(BaseRepository):
    """Check-in Repository"""

    async def create(
        self,
        user_id: int,
        username: str,
        kind: CheckinKind,
        timestamp: datetime,
        raw_text: str,
        session_id: int | None = None,
        rating_slot: RatingSlot | None = None,
    ) -> Checkin:
        """
        Record a check-in

        Rating check-ins also record the session and slot they filled, so a
        reset clears exactly that rating.
        """
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(
                """
                INSERT INTO checkins (user_id, username, kind, ts_utc, raw_text, session_id, rating_slot)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                user_id,
                username,
                kind.value,
                timestamp,
                raw_text,
                session_id,
                rating_slot.value if rating_slot else None,
            )
            checkin = self._to_model(record)
            logger.debug(f"Check-in recorded: id={checkin.id} user={user_id} kind={kind.value}")
            return checkin
        finally:
            await self._release_connection(conn)

    async def get_by_id(self, checkin_id: int) -> Checkin | None:
        """Get check-in by ID"""
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(
                "SELECT * FROM checkins WHERE id = $1",
                checkin_id,
            )
            if not record:
                return None
            return self._to_model(record)
        finally:
            await self._release_connection(conn)

    async def get_last(self, user_id: int) -> Checkin | None:
        """Most recent check-in of a user"""
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(
                "SELECT * FROM checkins WHERE user_id = $1 ORDER BY id DESC LIMIT 1",
                user_id,
            )
            if not record:
                return None
            return self._to_model(record)
        finally:
            await self._release_connection(conn)

    async def get_last_goodnight_before(self, user_id: int, timestamp: datetime) -> Checkin | None:
        """Latest gn check-in at or before ``timestamp``"""
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(
                """
                SELECT * FROM checkins
                WHERE user_id = $1 AND kind = 'GN' AND ts_utc <= $2
                ORDER BY ts_utc DESC, id DESC
                LIMIT 1
                """,
                user_id,
                timestamp,
            )
            if not record:
                return None
            return self._to_model(record)
        finally:
            await self._release_connection(conn)

    async def delete(self, checkin_id: int) -> bool:
        """Delete a check-in"""
        conn = await self._get_connection()
        try:
            result = await conn.execute(
                "DELETE FROM checkins WHERE id = $1",
                checkin_id,
            )
            return result == "DELETE 1"
        finally:
            await self._release_connection(conn)

    async def restore(
        self,
        checkin_id: int,
        user_id: int,
        username: str,
        kind: CheckinKind,
        timestamp: datetime,
        raw_text: str,
        session_id: int | None = None,
        rating_slot: RatingSlot | None = None,
    ) -> bool:
        """
        Re-insert a deleted check-in

        Returns:
            True if the original ID was reused, False if the ID was taken
            and the check-in was inserted as a new row
        """
        slot = rating_slot.value if rating_slot else None
        conn = await self._get_connection()
        try:
            restored_id = await conn.fetchval(
                """
                INSERT INTO checkins (id, user_id, username, kind, ts_utc, raw_text, session_id, rating_slot)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                ON CONFLICT (id) DO NOTHING
                RETURNING id
                """,
                checkin_id,
                user_id,
                username,
                kind.value,
                timestamp,
                raw_text,
                session_id,
                slot,
            )
            if restored_id is not None:
                return True

            logger.warning(f"Check-in id {checkin_id} already taken, restoring as a new row")
            await conn.execute(
                """
                INSERT INTO checkins (user_id, username, kind, ts_utc, raw_text, session_id, rating_slot)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                user_id,
                username,
                kind.value,
                timestamp,
                raw_text,
                session_id,
                slot,
            )
            return False
        finally:
            await self._release_connection(conn)

    async def delete_all(self) -> int:
        """Delete every check-in"""
        conn = await self._get_connection()
        try:
            return self._affected(await conn.execute("DELETE FROM checkins"))
        finally:
            await self._release_connection(conn)

    @staticmethod
    def _to_model(record) -> Checkin:
        """Convert database record to model"""
        return Checkin(
            id=record["id"],
            user_id=record["user_id"],
            username=record["username"],
            kind=CheckinKind(record["kind"]),
            timestamp=record["ts_utc"],
            raw_text=record["raw_text"],
            session_id=record["session_id"],
            rating_slot=RatingSlot(record["rating_slot"]) if record["rating_slot"] else None,
        )
