"""CSV export of closed sessions"""

import csv
import io
import logging

from sleep_bot.models.sleep_session import SleepSession
from sleep_bot.repositories.store import SleepStore

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "sleep_sessions.csv"

EXPORT_COLUMNS = [
    "user_id",
    "username",
    "bed_time_utc",
    "wake_time_utc",
    "sleep_minutes",
    "evening_rating",
    "evening_rating_status",
    "morning_rating",
    "note",
    "morning_note",
]


def _row(session: SleepSession) -> list:
    return [
        session.user_id,
        session.username,
        session.bed_time.isoformat() if session.bed_time else "",
        session.wake_time.isoformat() if session.wake_time else "",
        session.sleep_minutes,
        session.evening_rating,
        session.evening_rating_status.value,
        session.morning_rating,
        session.note,
        session.morning_note,
    ]


def build_csv(sessions: list[SleepSession]) -> str:
    """
    Render sessions as CSV

    Every field is quoted; missing values become empty strings.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for session in sessions:
        writer.writerow(["" if value is None else value for value in _row(session)])
    return buffer.getvalue()


async def export_sessions(store: SleepStore) -> tuple[int, bytes]:
    """
    Export every closed session, oldest bedtime first

    Returns:
        (row count, UTF-8 CSV payload)
    """
    sessions = await store.sessions.get_closed()
    logger.info(f"Exporting {len(sessions)} sessions")
    return len(sessions), build_csv(sessions).encode("utf-8")
