"""Repository base class"""

import asyncio
import logging
from abc import ABC

from sleep_bot.core.database import DatabaseConnection, current_transaction

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """Repository base class"""

    # Per-task connection contexts so concurrent tasks never share one
    _contexts = {}

    async def _get_connection(self):
        """Get database connection (the transaction's, when one is active)"""
        conn = current_transaction()
        if conn is not None:
            return conn

        task_id = id(asyncio.current_task())

        if task_id not in self._contexts:
            self._contexts[task_id] = DatabaseConnection()

        db_context = self._contexts[task_id]
        conn = await db_context.__aenter__()
        return conn

    async def _release_connection(self, conn=None):
        """
        Release database connection (with exception safety)

        Args:
            conn: The connection returned by ``_get_connection``; a
                  transaction's connection is left to the transaction
        """
        if conn is not None and conn is current_transaction():
            return

        task_id = id(asyncio.current_task())

        if task_id in self._contexts:
            try:
                await self._contexts[task_id].__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"Error releasing database connection: {e}")
            finally:
                del self._contexts[task_id]

    @staticmethod
    def _affected(result: str) -> int:
        """Row count from a status string such as ``DELETE 3``"""
        try:
            return int(result.split()[-1]) if result else 0
        except ValueError:
            return 0
