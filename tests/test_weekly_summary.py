"""
Unit tests for sleep_bot.services.weekly_summary and sleep_bot.services.export modules.
"""
from datetime import timedelta

import pytest

from sleep_bot.config.constants import RatingStatus, SessionState, SessionStatus
from sleep_bot.models.sleep_session import SleepSession
from sleep_bot.services.export import EXPORT_COLUMNS, build_csv, export_sessions
from sleep_bot.services.weekly_summary import (
    calculate_weekly_summary,
    format_weekly_summary,
    generate_weekly_summary,
    summary_window,
)
from tests.conftest import LA, local

_ids = iter(range(1, 1000))


def closed(user_id, username, bed_time, minutes, evening=None, morning=None, note=None):
    return SleepSession(
        id=next(_ids),
        user_id=user_id,
        username=username,
        bed_time=bed_time,
        wake_time=bed_time + timedelta(minutes=minutes),
        sleep_minutes=minutes,
        evening_rating=evening,
        evening_rating_status=RatingStatus.RECORDED if evening else RatingStatus.OMITTED,
        morning_rating=morning,
        status=SessionStatus.CLOSED,
        state=SessionState.RATED,
        note=note,
        morning_note=None,
    )


@pytest.fixture
def week():
    """Window for Sunday Jan 21 2024: Jan 14 through Jan 20."""
    return summary_window(local(2024, 1, 21, 10, 0), LA)


class TestSummaryWindow:
    """Test summary_window function."""

    def test_seven_local_days_before_today(self, week):
        """Test the window spans the seven local days before today."""
        start, end = week

        assert start == local(2024, 1, 14, 0, 0)
        assert end == local(2024, 1, 21, 0, 0)

    def test_just_after_midnight(self):
        """Test the local date decides the window, not the UTC date."""
        start, end = summary_window(local(2024, 1, 21, 0, 5), LA)

        assert end == local(2024, 1, 21, 0, 0)

    def test_across_dst_change(self):
        """Test a window containing the spring-forward day is one hour shorter."""
        start, end = summary_window(local(2024, 3, 14, 9, 0), LA)

        assert start == local(2024, 3, 7, 0, 0)
        assert end - start == timedelta(days=7, hours=-1)


class TestCalculateWeeklySummary:
    """Test calculate_weekly_summary function."""

    def test_statistics(self, week):
        """Test counts, averages and extremes."""
        sessions = [
            closed(1, "alice", local(2024, 1, 14, 23, 0), 480, evening=8, morning=6),
            closed(2, "bob", local(2024, 1, 15, 0, 0), 420, morning=5),
            closed(1, "alice", local(2024, 1, 16, 22, 0), 540, evening=7),
        ]

        summary = calculate_weekly_summary(sessions, *week)

        assert summary.session_count == 3
        assert summary.average_minutes == 480
        assert (summary.longest.username, summary.longest.sleep_minutes) == ("alice", 540)
        assert (summary.shortest.username, summary.shortest.sleep_minutes) == ("bob", 420)
        assert summary.per_user == {"alice": 2, "bob": 1}
        assert summary.contributors == [(1, "alice"), (2, "bob")]
        assert summary.average_evening_rating == 7.5
        assert summary.evening_rated_count == 2
        assert summary.average_morning_rating == 5.5
        assert summary.morning_rated_count == 2

    def test_negative_duration_not_an_extreme(self, week):
        """Test anomalous durations count in the average but not as longest/shortest."""
        sessions = [
            closed(1, "alice", local(2024, 1, 14, 23, 0), 480),
            closed(1, "alice", local(2024, 1, 15, 23, 0), -60),
        ]

        summary = calculate_weekly_summary(sessions, *week)

        assert summary.average_minutes == 210
        assert summary.longest.sleep_minutes == 480
        assert summary.shortest.sleep_minutes == 480

    def test_empty(self, week):
        """Test no sessions gives an empty summary."""
        summary = calculate_weekly_summary([], *week)

        assert summary.is_empty
        assert summary.average_minutes is None
        assert summary.longest is None


class TestFormatWeeklySummary:
    """Test format_weekly_summary function."""

    def test_group_summary(self, week):
        """Test the message for several users."""
        sessions = [
            closed(1, "alice", local(2024, 1, 14, 23, 0), 480, evening=8, morning=6),
            closed(2, "night_owl", local(2024, 1, 15, 0, 0), 420, morning=5),
            closed(1, "alice", local(2024, 1, 16, 22, 0), 540, evening=7),
        ]

        text = format_weekly_summary(calculate_weekly_summary(sessions, *week), LA)

        assert text.startswith("📊 *Weekly Sleep Summary* (Jan 14 - Jan 20)")
        assert "*Total Sessions:* 3" in text
        assert "*Average Sleep:* 8.0 hours" in text
        assert "*Longest Sleep:* 9h (alice)" in text
        assert "*Shortest Sleep:* 7h (night\\_owl)" in text
        assert "• alice: 2\n• night\\_owl: 1" in text
        assert "*Average Evening Energy:* 7.5/10 (2 rated)" in text
        assert "*Average Morning Energy:* 5.5/10 (2 rated)" in text
        assert "[alice](tg://user?id=1) [night\\_owl](tg://user?id=2)" in text

    def test_single_user(self, week):
        """Test per-user counts and mentions are left out for one user."""
        sessions = [closed(1, "alice", local(2024, 1, 14, 23, 0), 450)]

        text = format_weekly_summary(calculate_weekly_summary(sessions, *week), LA)

        assert "*Longest Sleep:* 7h 30m (alice)" in text
        assert "•" not in text
        assert "Contributors" not in text
        assert "Energy" not in text

    def test_empty(self, week):
        """Test the message for a week without sessions."""
        text = format_weekly_summary(calculate_weekly_summary([], *week), LA)

        assert "No completed sleep sessions this week." in text


class TestGenerateWeeklySummary:
    """Test generate_weekly_summary function."""

    @pytest.mark.asyncio
    async def test_reads_closed_sessions_in_window(self, store):
        """Test only closed sessions with a bedtime in the window are counted."""
        for bed, minutes in [
            (local(2024, 1, 13, 23, 0), 480),  # before the window
            (local(2024, 1, 14, 23, 0), 480),
            (local(2024, 1, 20, 23, 0), 420),
        ]:
            session = await store.sessions.create(1, "alice", bed)
            await store.sessions.close(session.id, bed + timedelta(minutes=minutes), minutes)
        await store.sessions.create(1, "alice", local(2024, 1, 21, 1, 0))

        summary = await generate_weekly_summary(store, local(2024, 1, 21, 10, 0), LA)

        assert summary.session_count == 2
        assert summary.average_minutes == 450


class TestExport:
    """Test CSV export."""

    def test_build_csv(self):
        """Test header, quoting and empty values."""
        session = closed(
            1, "alice", local(2024, 1, 14, 23, 0), 480, evening=8, note='said "hi", then slept'
        )

        lines = build_csv([session]).splitlines()

        assert lines[0] == ",".join(f'"{column}"' for column in EXPORT_COLUMNS)
        assert lines[1] == (
            '"1","alice","2024-01-15T07:00:00+00:00","2024-01-15T15:00:00+00:00",'
            '"480","8","RECORDED","","said ""hi"", then slept",""'
        )

    def test_no_sessions(self):
        """Test an empty export still has the header."""
        assert build_csv([]).splitlines() == [",".join(f'"{column}"' for column in EXPORT_COLUMNS)]

    @pytest.mark.asyncio
    async def test_export_sessions(self, store):
        """Test only closed sessions are exported, oldest first."""
        later = await store.sessions.create(1, "alice", local(2024, 1, 15, 23, 0))
        earlier = await store.sessions.create(2, "bob", local(2024, 1, 14, 23, 0))
        await store.sessions.close(later.id, local(2024, 1, 16, 7, 0), 480)
        await store.sessions.close(earlier.id, local(2024, 1, 15, 7, 0), 480)
        await store.sessions.create(1, "alice", local(2024, 1, 16, 23, 0))

        count, payload = await export_sessions(store)

        lines = payload.decode("utf-8").splitlines()
        assert count == 2
        assert len(lines) == 3
        assert lines[1].startswith('"2","bob"')
        assert lines[2].startswith('"1","alice"')
