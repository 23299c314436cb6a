"""Weekly summary bookkeeping"""

from datetime import date

from sleep_bot.repositories.base import BaseRepository


class SummaryStateRepository(BaseRepository):
    """Remembers which weekly summaries were already posted"""

    async def get_last_summary_date(self) -> date | None:
        """Date of the most recent posted summary"""
        conn = await self._get_connection()
        try:
            return await conn.fetchval("SELECT MAX(last_summary_date) FROM summary_state")
        finally:
            await self._release_connection(conn)

    async def set_last_summary_date(self, summary_date: date) -> None:
        """Mark a summary as posted"""
        conn = await self._get_connection()
        try:
            await conn.execute(
                """
                INSERT INTO summary_state (last_summary_date)
                VALUES ($1)
                ON CONFLICT (last_summary_date) DO NOTHING
                """,
                summary_date,
            )
        finally:
            await self._release_connection(conn)

    async def delete_all(self) -> int:
        """Forget every posted summary"""
        conn = await self._get_connection()
        try:
            return self._affected(await conn.execute("DELETE FROM summary_state"))
        finally:
            await self._release_connection(conn)
