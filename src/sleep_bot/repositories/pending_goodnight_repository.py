"""Pending goodnight data access layer"""

import logging
from datetime import datetime
from typing import List

from sleep_bot.models.pending_goodnight import PendingGoodnight
from sleep_bot.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class PendingGoodnightRepository(BaseRepository):
    """Pending goodnight Repository (at most one row per user)"""

    async def upsert(
        self,
        user_id: int,
        checkin_id: int,
        bed_time: datetime,
        raw_text: str,
        created_at: datetime,
        note: str | None = None,
    ) -> PendingGoodnight:
        """Store the pending gn, replacing any older one for the user"""
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(
                """
                INSERT INTO pending_goodnights (user_id, checkin_id, bed_time, raw_text, created_at, note)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (user_id) DO UPDATE SET
                    checkin_id = excluded.checkin_id,
                    bed_time = excluded.bed_time,
                    raw_text = excluded.raw_text,
                    created_at = excluded.created_at,
                    note = excluded.note
                RETURNING *
                """,
                user_id,
                checkin_id,
                bed_time,
                raw_text,
                created_at,
                note,
            )
            logger.debug(f"Pending gn stored: user={user_id} checkin={checkin_id}")
            return self._to_model(record)
        finally:
            await self._release_connection(conn)

    async def get(self, user_id: int) -> PendingGoodnight | None:
        """Pending gn of a user"""
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(
                "SELECT * FROM pending_goodnights WHERE user_id = $1",
                user_id,
            )
            if not record:
                return None
            return self._to_model(record)
        finally:
            await self._release_connection(conn)

    async def delete(self, user_id: int) -> bool:
        """Discard the pending gn of a user"""
        conn = await self._get_connection()
        try:
            result = await conn.execute(
                "DELETE FROM pending_goodnights WHERE user_id = $1",
                user_id,
            )
            return result == "DELETE 1"
        finally:
            await self._release_connection(conn)

    async def get_older_than(self, cutoff: datetime) -> List[PendingGoodnight]:
        """Pending gns created before ``cutoff``"""
        conn = await self._get_connection()
        try:
            records = await conn.fetch(
                "SELECT * FROM pending_goodnights WHERE created_at < $1 ORDER BY created_at ASC",
                cutoff,
            )
            return [self._to_model(record) for record in records]
        finally:
            await self._release_connection(conn)

    async def delete_all(self) -> int:
        """Delete every pending gn"""
        conn = await self._get_connection()
        try:
            return self._affected(await conn.execute("DELETE FROM pending_goodnights"))
        finally:
            await self._release_connection(conn)

    @staticmethod
    def _to_model(record) -> PendingGoodnight:
        """Convert database record to model"""
        return PendingGoodnight(
            user_id=record["user_id"],
            checkin_id=record["checkin_id"],
            bed_time=record["bed_time"],
            raw_text=record["raw_text"],
            created_at=record["created_at"],
            note=record["note"],
        )
