"""
Unit tests for the repositories and the transaction helper, on mocked asyncpg connections.
"""
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sleep_bot.config.constants import CheckinKind, RatingSlot, RatingStatus, SessionState, SessionStatus, UndoType
from sleep_bot.core import database
from sleep_bot.models.undo_entry import GoodnightSnapshot
from sleep_bot.repositories.base import BaseRepository
from sleep_bot.repositories.checkin_repository import CheckinRepository
from sleep_bot.repositories.sleep_session_repository import SleepSessionRepository
from sleep_bot.repositories.undo_repository import UndoRepository
from tests.conftest import local


@pytest.fixture
def conn():
    """Mocked connection standing in for an open transaction."""
    connection = AsyncMock()
    with patch("sleep_bot.repositories.base.current_transaction", return_value=connection):
        yield connection


def session_record(**overrides):
    record = {
        "id": 7,
        "user_id": 1,
        "username": "alice",
        "bed_time": local(2024, 1, 14, 23, 0),
        "wake_time": None,
        "sleep_minutes": None,
        "evening_rating": None,
        "evening_rating_status": "MISSING",
        "morning_rating": None,
        "status": "OPEN",
        "state": "OPEN",
        "note": None,
        "morning_note": None,
    }
    record.update(overrides)
    return record


class TestSleepSessionRepository:
    """Test SleepSessionRepository."""

    @pytest.mark.asyncio
    async def test_create_reuses_free_id(self, conn):
        """Test a free session ID is inserted directly."""
        conn.fetchrow.return_value = session_record()

        session = await SleepSessionRepository().create(1, "alice", local(2024, 1, 14, 23, 0), session_id=7)

        assert session.id == 7
        assert conn.fetchrow.await_count == 1
        assert conn.fetchrow.await_args.args[1] == 7

    @pytest.mark.asyncio
    async def test_create_falls_back_when_id_taken(self, conn):
        """Test a taken session ID falls back to a new row."""
        conn.fetchrow.side_effect = [None, session_record(id=8)]

        session = await SleepSessionRepository().create(1, "alice", local(2024, 1, 14, 23, 0), session_id=7)

        assert session.id == 8
        assert conn.fetchrow.await_count == 2

    @pytest.mark.asyncio
    async def test_to_model(self, conn):
        """Test enum columns are converted."""
        conn.fetchrow.return_value = session_record(
            status="CLOSED", state="CLOSED_AWAITING_MORNING", evening_rating=8,
            evening_rating_status="RECORDED", wake_time=local(2024, 1, 15, 7, 0), sleep_minutes=480,
        )

        session = await SleepSessionRepository().get_by_id(7)

        assert session.status == SessionStatus.CLOSED
        assert session.state == SessionState.CLOSED_AWAITING_MORNING
        assert session.evening_rating_status == RatingStatus.RECORDED
        assert session.needs_morning_rating

    @pytest.mark.asyncio
    async def test_update_without_row(self, conn):
        """Test an update that matches nothing returns None."""
        conn.fetchrow.return_value = None

        assert await SleepSessionRepository().set_morning_rating(99, 5) is None


class TestCheckinRepository:
    """Test CheckinRepository."""

    @pytest.mark.asyncio
    async def test_restore_original_id(self, conn):
        """Test restore reports the original ID was reused."""
        conn.fetchval.return_value = 3

        reused = await CheckinRepository().restore(
            3, 1, "alice", CheckinKind.GN, local(2024, 1, 14, 23, 0), "gn"
        )

        assert reused
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_restore_as_new_row(self, conn):
        """Test restore inserts a new row when the ID is taken."""
        conn.fetchval.return_value = None

        reused = await CheckinRepository().restore(
            3, 1, "alice", CheckinKind.GN, local(2024, 1, 14, 23, 0), "gn"
        )

        assert not reused
        conn.execute.assert_awaited_once()
        assert conn.execute.await_args.args[1:] == (1, "alice", "GN", local(2024, 1, 14, 23, 0), "gn", None, None)

    @pytest.mark.asyncio
    async def test_create_records_rating_target(self, conn):
        """Test a rating check-in stores the session and slot it filled."""
        conn.fetchrow.return_value = {
            "id": 5, "user_id": 1, "username": "alice", "kind": "RATING",
            "ts_utc": local(2024, 1, 15, 7, 1), "raw_text": "!6", "session_id": 7, "rating_slot": "MORNING",
        }

        checkin = await CheckinRepository().create(
            1, "alice", CheckinKind.RATING, local(2024, 1, 15, 7, 1), "!6",
            session_id=7, rating_slot=RatingSlot.MORNING,
        )

        assert conn.fetchrow.await_args.args[6:] == (7, "MORNING")
        assert checkin.session_id == 7
        assert checkin.rating_slot == RatingSlot.MORNING

    @pytest.mark.asyncio
    async def test_delete(self, conn):
        """Test delete reports whether a row was removed."""
        conn.execute.return_value = "DELETE 0"

        assert not await CheckinRepository().delete(3)


class TestUndoRepository:
    """Test UndoRepository."""

    @pytest.mark.asyncio
    async def test_push_serialises_snapshot(self, conn):
        """Test the snapshot is stored as JSON and read back as its variant."""
        snapshot = GoodnightSnapshot(
            username="alice",
            bed_time=local(2024, 1, 14, 23, 0),
            note="tired",
            evening_rating=8,
            evening_rating_status=RatingStatus.RECORDED,
        )

        async def fetchrow(query, *params):
            return {
                "id": 1,
                "user_id": params[0],
                "checkin_id": params[1],
                "checkin_kind": params[2],
                "checkin_ts_utc": params[3],
                "checkin_raw_text": params[4],
                "checkin_username": params[5],
                "session_id": params[6],
                "snapshot": params[7],
                "undo_type": params[8],
                "created_at": local(2024, 1, 14, 23, 5),
            }

        conn.fetchrow.side_effect = fetchrow

        entry = await UndoRepository().push(
            user_id=1,
            checkin_id=3,
            checkin_kind=CheckinKind.GN,
            checkin_timestamp=local(2024, 1, 14, 23, 0),
            checkin_raw_text='gn "tired" !8',
            checkin_username="alice",
            session_id=7,
            undo_type=UndoType.GN_DELETE,
            snapshot=snapshot,
        )

        stored = json.loads(conn.fetchrow.await_args.args[8])
        assert stored["evening_rating_status"] == "RECORDED"
        assert entry.snapshot == snapshot
        assert entry.undo_type == UndoType.GN_DELETE
        assert entry.checkin_kind == CheckinKind.GN

    @pytest.mark.asyncio
    async def test_unknown_entry_has_no_snapshot(self, conn):
        """Test an UNKNOWN entry stores NULL."""
        conn.fetchrow.return_value = {
            "id": 2, "user_id": 1, "checkin_id": 4, "checkin_kind": "GN",
            "checkin_ts_utc": local(2024, 1, 14, 23, 0), "checkin_raw_text": "gn",
            "checkin_username": "alice", "session_id": None, "snapshot": None,
            "undo_type": "UNKNOWN", "created_at": local(2024, 1, 14, 23, 5),
        }

        entry = await UndoRepository().peek_latest(1)

        assert entry.undo_type == UndoType.UNKNOWN
        assert entry.snapshot is None

    @pytest.mark.asyncio
    async def test_clear_counts_rows(self, conn):
        """Test clear returns the number of dropped entries."""
        conn.execute.return_value = "DELETE 3"

        assert await UndoRepository().clear(1) == 3


class TestAffected:
    """Test the status-string row counter."""

    @pytest.mark.parametrize("status,expected", [("DELETE 3", 3), ("UPDATE 0", 0), ("", 0), (None, 0), ("BEGIN", 0)])
    def test_affected(self, status, expected):
        """Test row counts are read from asyncpg status strings."""
        assert BaseRepository._affected(status) == expected


class TestTransaction:
    """Test the transaction context manager."""

    @pytest.fixture
    def pool(self):
        connection = MagicMock()
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = connection
        with patch.object(database, "get_pool", AsyncMock(return_value=pool)):
            yield pool, connection

    @pytest.mark.asyncio
    async def test_binds_connection(self, pool):
        """Test the connection is visible inside the block only."""
        _, connection = pool

        async with database.transaction() as conn:
            assert conn is connection
            assert database.current_transaction() is connection

        assert database.current_transaction() is None
        connection.transaction.assert_called_once()

    @pytest.mark.asyncio
    async def test_nested_is_savepoint(self, pool):
        """Test a nested block reuses the outer connection."""
        mock_pool, connection = pool

        async with database.transaction() as outer:
            async with database.transaction() as inner:
                assert inner is outer

        mock_pool.acquire.assert_called_once()
        assert connection.transaction.call_count == 2

    @pytest.mark.asyncio
    async def test_unbinds_on_error(self, pool):
        """Test the connection is released when the block raises."""
        with pytest.raises(RuntimeError):
            async with database.transaction():
                raise RuntimeError("boom")

        assert database.current_transaction() is None
