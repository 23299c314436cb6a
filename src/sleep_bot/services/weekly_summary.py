"""Weekly summary"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from telegram.helpers import escape_markdown

from sleep_bot.models.sleep_session import SleepSession
from sleep_bot.repositories.store import SleepStore
from sleep_bot.utils.formatter import format_duration, mention

logger = logging.getLogger(__name__)


@dataclass
class SleepRecord:
    """A notable sleep (longest or shortest)"""
    username: str
    sleep_minutes: int


@dataclass
class WeeklySummary:
    """Statistics over the closed sessions of one week"""

    start: datetime
    end: datetime
    session_count: int = 0
    average_minutes: int | None = None
    longest: SleepRecord | None = None
    shortest: SleepRecord | None = None
    per_user: dict[str, int] = field(default_factory=dict)
    average_evening_rating: float | None = None
    evening_rated_count: int = 0
    average_morning_rating: float | None = None
    morning_rated_count: int = 0
    # (user_id, username) in order of first appearance
    contributors: list[tuple[int, str]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.session_count == 0


def summary_window(now: datetime, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """
    The last seven local calendar days before today

    Returns:
        (start, end) in UTC; ``end`` is the start of today, excluded
    """
    today = now.astimezone(zone).date()
    start_day = today - timedelta(days=7)
    start = datetime.combine(start_day, time.min, tzinfo=zone)
    end = datetime.combine(today, time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def _average(values: list[int]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def calculate_weekly_summary(
    sessions: list[SleepSession],
    start: datetime,
    end: datetime,
) -> WeeklySummary:
    """
    Fold closed sessions into weekly statistics

    Args:
        sessions: Closed sessions with a bedtime inside [start, end)
        start: Window start (UTC)
        end: Window end (UTC, excluded)
    """
    summary = WeeklySummary(start=start, end=end)
    if not sessions:
        return summary

    summary.session_count = len(sessions)
    total = sum(s.sleep_minutes or 0 for s in sessions)
    summary.average_minutes = round(total / len(sessions))

    valid = [s for s in sessions if s.sleep_minutes is not None and s.sleep_minutes > 0]
    if valid:
        longest = max(valid, key=lambda s: s.sleep_minutes)
        shortest = min(valid, key=lambda s: s.sleep_minutes)
        summary.longest = SleepRecord(longest.username, longest.sleep_minutes)
        summary.shortest = SleepRecord(shortest.username, shortest.sleep_minutes)

    seen = set()
    for s in sessions:
        summary.per_user[s.username] = summary.per_user.get(s.username, 0) + 1
        if s.user_id not in seen:
            seen.add(s.user_id)
            summary.contributors.append((s.user_id, s.username))

    evening = [s.evening_rating for s in sessions if s.evening_rating is not None]
    morning = [s.morning_rating for s in sessions if s.morning_rating is not None]
    summary.average_evening_rating = _average(evening)
    summary.evening_rated_count = len(evening)
    summary.average_morning_rating = _average(morning)
    summary.morning_rated_count = len(morning)

    return summary


def format_weekly_summary(summary: WeeklySummary, zone: ZoneInfo) -> str:
    """Render a summary as Telegram Markdown"""
    if summary.is_empty:
        return "📊 *Weekly Sleep Summary*\n\nNo completed sleep sessions this week."

    first = summary.start.astimezone(zone)
    last = summary.end.astimezone(zone) - timedelta(days=1)
    first_day = f"{first:%b} {first.day}"
    last_day = f"{last:%b} {last.day}"

    lines = [
        f"📊 *Weekly Sleep Summary* ({first_day} - {last_day})",
        "",
        f"*Total Sessions:* {summary.session_count}",
        f"*Average Sleep:* {summary.average_minutes / 60:.1f} hours",
    ]

    if summary.longest and summary.shortest:
        lines += [
            "",
            f"*Longest Sleep:* {format_duration(summary.longest.sleep_minutes)} "
            f"({escape_markdown(summary.longest.username)})",
            f"*Shortest Sleep:* {format_duration(summary.shortest.sleep_minutes)} "
            f"({escape_markdown(summary.shortest.username)})",
        ]

    if len(summary.per_user) > 1:
        lines.append("")
        for username, count in sorted(summary.per_user.items(), key=lambda item: (-item[1], item[0])):
            lines.append(f"• {escape_markdown(username)}: {count}")

    if summary.average_evening_rating is not None:
        lines += [
            "",
            f"*Average Evening Energy:* {summary.average_evening_rating:.1f}/10 "
            f"({summary.evening_rated_count} rated)",
        ]
    if summary.average_morning_rating is not None:
        lines.append(
            f"*Average Morning Energy:* {summary.average_morning_rating:.1f}/10 "
            f"({summary.morning_rated_count} rated)"
        )

    if len(summary.contributors) > 1:
        mentions = " ".join(mention(user_id, username) for user_id, username in summary.contributors)
        lines += ["", f"*Contributors:* {mentions}"]

    return "\n".join(lines)


async def generate_weekly_summary(
    store: SleepStore,
    now: datetime,
    zone: ZoneInfo,
) -> WeeklySummary:
    """Load the last week's closed sessions and summarise them"""
    start, end = summary_window(now, zone)
    sessions = await store.sessions.get_closed_between(start, end)
    summary = calculate_weekly_summary(sessions, start, end)
    logger.info(f"Weekly summary computed: {summary.session_count} sessions since {start.isoformat()}")
    return summary
