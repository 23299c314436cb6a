"""Undo stack data access layer"""

import json
import logging
from datetime import datetime

from sleep_bot.config.constants import CheckinKind, UndoType
from sleep_bot.models.undo_entry import (
    UndoEntry,
    UndoSnapshot,
    snapshot_from_json,
    snapshot_to_json,
)
from sleep_bot.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class UndoRepository(BaseRepository):
    """Undo stack Repository (many entries per user, newest on top)"""

    async def push(
        self,
        user_id: int,
        checkin_id: int,
        checkin_kind: CheckinKind,
        checkin_timestamp: datetime,
        checkin_raw_text: str,
        checkin_username: str,
        session_id: int | None,
        undo_type: UndoType,
        snapshot: UndoSnapshot,
    ) -> UndoEntry:
        """Push an entry on the user's stack"""
        data = snapshot_to_json(snapshot)
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(
                """
                INSERT INTO undo_entries (
                    user_id, checkin_id, checkin_kind, checkin_ts_utc,
                    checkin_raw_text, checkin_username, session_id, snapshot, undo_type
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                ON CONFLICT (user_id, checkin_id) DO UPDATE SET
                    checkin_kind = excluded.checkin_kind,
                    checkin_ts_utc = excluded.checkin_ts_utc,
                    checkin_raw_text = excluded.checkin_raw_text,
                    checkin_username = excluded.checkin_username,
                    session_id = excluded.session_id,
                    snapshot = excluded.snapshot,
                    undo_type = excluded.undo_type,
                    created_at = NOW()
                RETURNING *
                """,
                user_id,
                checkin_id,
                checkin_kind.value,
                checkin_timestamp,
                checkin_raw_text,
                checkin_username,
                session_id,
                json.dumps(data) if data is not None else None,
                undo_type.value,
            )
            entry = self._to_model(record)
            logger.debug(f"Undo entry pushed: id={entry.id} user={user_id} type={undo_type.value}")
            return entry
        finally:
            await self._release_connection(conn)

    async def peek_latest(self, user_id: int) -> UndoEntry | None:
        """Top of the user's stack"""
        conn = await self._get_connection()
        try:
            record = await conn.fetchrow(
                "SELECT * FROM undo_entries WHERE user_id = $1 ORDER BY id DESC LIMIT 1",
                user_id,
            )
            if not record:
                return None
            return self._to_model(record)
        finally:
            await self._release_connection(conn)

    async def count(self, user_id: int) -> int:
        """Number of entries on the user's stack"""
        conn = await self._get_connection()
        try:
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM undo_entries WHERE user_id = $1",
                user_id,
            )
            return count or 0
        finally:
            await self._release_connection(conn)

    async def delete(self, entry_id: int) -> bool:
        """Remove one entry"""
        conn = await self._get_connection()
        try:
            result = await conn.execute("DELETE FROM undo_entries WHERE id = $1", entry_id)
            return result == "DELETE 1"
        finally:
            await self._release_connection(conn)

    async def clear(self, user_id: int) -> int:
        """Drop the user's whole stack"""
        conn = await self._get_connection()
        try:
            return self._affected(
                await conn.execute("DELETE FROM undo_entries WHERE user_id = $1", user_id)
            )
        finally:
            await self._release_connection(conn)

    async def delete_all(self) -> int:
        """Delete every undo entry"""
        conn = await self._get_connection()
        try:
            return self._affected(await conn.execute("DELETE FROM undo_entries"))
        finally:
            await self._release_connection(conn)

    @staticmethod
    def _to_model(record) -> UndoEntry:
        """Convert database record to model"""
        data = record["snapshot"]
        if isinstance(data, str):
            data = json.loads(data)

        undo_type = UndoType(record["undo_type"])
        return UndoEntry(
            id=record["id"],
            user_id=record["user_id"],
            checkin_id=record["checkin_id"],
            checkin_kind=CheckinKind(record["checkin_kind"]),
            checkin_timestamp=record["checkin_ts_utc"],
            checkin_raw_text=record["checkin_raw_text"],
            checkin_username=record["checkin_username"],
            session_id=record["session_id"],
            undo_type=undo_type,
            snapshot=snapshot_from_json(undo_type, data),
            created_at=record["created_at"],
        )
