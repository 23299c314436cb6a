"""Database pool and transactions"""

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Optional

import asyncpg
from asyncpg import Connection, Pool

from sleep_bot.config.settings import get_settings

logger = logging.getLogger(__name__)

_pool: Optional[Pool] = None

# Connection owned by the transaction running in the current task
_transaction_conn: ContextVar[Optional[Connection]] = ContextVar(
    "transaction_conn", default=None
)


async def _init_connection(conn):
    """Initialise a pooled connection (session timezone)"""
    await conn.execute("SET TIME ZONE 'UTC';")


async def get_pool() -> Pool:
    """Connection pool (singleton)"""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
            init=_init_connection,
        )
    return _pool


async def close_pool():
    """Close the connection pool"""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None


def current_transaction() -> Optional[Connection]:
    """Connection of the active transaction, if any"""
    return _transaction_conn.get()


@asynccontextmanager
async def transaction() -> AsyncIterator[Connection]:
    """
    Run a block in one database transaction

    Repository calls made inside the block share the same connection, so
    a logical state transition either commits as a whole or not at all.
    Nested use opens a savepoint on the outer connection.
    """
    outer = _transaction_conn.get()
    if outer is not None:
        async with outer.transaction():
            yield outer
        return

    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            token = _transaction_conn.set(conn)
            try:
                yield conn
            finally:
                _transaction_conn.reset(token)


class DatabaseConnection:
    """Database connection context manager"""

    def __init__(self):
        self._conn = None
        self._pool = None
        self._acquire_context = None

    async def __aenter__(self):
        self._pool = await get_pool()
        # acquire() returns a context manager; enter it to get the connection
        self._acquire_context = self._pool.acquire()
        self._conn = await self._acquire_context.__aenter__()
        return self._conn

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._acquire_context:
            await self._acquire_context.__aexit__(exc_type, exc_val, exc_tb)
            self._acquire_context = None
            self._conn = None


# ==================== Schema ====================

# Executed in steps so older PostgreSQL versions accept it
_INIT_SQL_TYPES = """
DO $$ BEGIN
    CREATE TYPE checkin_kind AS ENUM ('GN', 'GM', 'RATING');
EXCEPTION
    WHEN duplicate_object THEN null;
END $$;

DO $$ BEGIN
    CREATE TYPE rating_slot AS ENUM ('EVENING', 'MORNING');
EXCEPTION
    WHEN duplicate_object THEN null;
END $$;

DO $$ BEGIN
    CREATE TYPE session_status AS ENUM ('OPEN', 'CLOSED');
EXCEPTION
    WHEN duplicate_object THEN null;
END $$;

DO $$ BEGIN
    CREATE TYPE rating_status AS ENUM ('MISSING', 'RECORDED', 'OMITTED');
EXCEPTION
    WHEN duplicate_object THEN null;
END $$;

DO $$ BEGIN
    CREATE TYPE session_state AS ENUM (
        'OPEN',
        'CLOSED_AWAITING_EVENING',
        'CLOSED_AWAITING_MORNING',
        'CLOSED_AWAITING_BOTH',
        'RATED'
    );
EXCEPTION
    WHEN duplicate_object THEN null;
END $$;

DO $$ BEGIN
    CREATE TYPE undo_type AS ENUM (
        'GN_DELETE',
        'GM_REOPEN',
        'EVENING_RATING_CLEAR',
        'MORNING_RATING_CLEAR',
        'UNKNOWN'
    );
EXCEPTION
    WHEN duplicate_object THEN null;
END $$;
"""

_INIT_SQL_TABLES = """
CREATE TABLE IF NOT EXISTS checkins (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL,
    username VARCHAR(255) NOT NULL,
    kind checkin_kind NOT NULL,
    ts_utc TIMESTAMPTZ NOT NULL,
    raw_text TEXT NOT NULL,
    session_id BIGINT,
    rating_slot rating_slot
);

ALTER TABLE checkins ADD COLUMN IF NOT EXISTS session_id BIGINT;
ALTER TABLE checkins ADD COLUMN IF NOT EXISTS rating_slot rating_slot;

CREATE TABLE IF NOT EXISTS sleep_sessions (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL,
    username VARCHAR(255) NOT NULL,
    bed_time TIMESTAMPTZ NOT NULL,
    wake_time TIMESTAMPTZ,
    sleep_minutes INTEGER,
    evening_rating SMALLINT CHECK (evening_rating BETWEEN 1 AND 10),
    evening_rating_status rating_status NOT NULL DEFAULT 'MISSING',
    morning_rating SMALLINT CHECK (morning_rating BETWEEN 1 AND 10),
    status session_status NOT NULL DEFAULT 'OPEN',
    state session_state NOT NULL DEFAULT 'OPEN',
    note TEXT,
    morning_note TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- One pending goodnight per user
CREATE TABLE IF NOT EXISTS pending_goodnights (
    user_id BIGINT PRIMARY KEY,
    checkin_id BIGINT NOT NULL,
    bed_time TIMESTAMPTZ NOT NULL,
    raw_text TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    note TEXT
);

CREATE TABLE IF NOT EXISTS undo_entries (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL,
    checkin_id BIGINT NOT NULL,
    checkin_kind checkin_kind NOT NULL,
    checkin_ts_utc TIMESTAMPTZ NOT NULL,
    checkin_raw_text TEXT NOT NULL,
    checkin_username VARCHAR(255) NOT NULL,
    session_id BIGINT,
    snapshot JSONB,
    undo_type undo_type NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (user_id, checkin_id)
);

CREATE TABLE IF NOT EXISTS summary_state (
    last_summary_date DATE PRIMARY KEY
);

-- ==================== Indexes ====================

CREATE INDEX IF NOT EXISTS idx_checkins_user_time ON checkins(user_id, ts_utc);
CREATE INDEX IF NOT EXISTS idx_sleep_sessions_user_status ON sleep_sessions(user_id, status);
CREATE INDEX IF NOT EXISTS idx_sleep_sessions_user_bed ON sleep_sessions(user_id, bed_time);
CREATE INDEX IF NOT EXISTS idx_sleep_sessions_bed ON sleep_sessions(bed_time);
CREATE INDEX IF NOT EXISTS idx_pending_goodnights_created ON pending_goodnights(created_at);
CREATE INDEX IF NOT EXISTS idx_undo_entries_user ON undo_entries(user_id, id DESC);

-- ==================== Triggers ====================

-- Keep the derived session state in step with the raw columns
CREATE OR REPLACE FUNCTION derive_session_state()
RETURNS TRIGGER AS $$
BEGIN
    IF NEW.status = 'OPEN' THEN
        NEW.state = 'OPEN';
    ELSIF NEW.evening_rating_status = 'MISSING' AND NEW.morning_rating IS NULL THEN
        NEW.state = 'CLOSED_AWAITING_BOTH';
    ELSIF NEW.evening_rating_status = 'MISSING' THEN
        NEW.state = 'CLOSED_AWAITING_EVENING';
    ELSIF NEW.morning_rating IS NULL THEN
        NEW.state = 'CLOSED_AWAITING_MORNING';
    ELSE
        NEW.state = 'RATED';
    END IF;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS sleep_sessions_derive_state ON sleep_sessions;
CREATE TRIGGER sleep_sessions_derive_state
    BEFORE INSERT OR UPDATE ON sleep_sessions
    FOR EACH ROW
    EXECUTE FUNCTION derive_session_state();
"""


async def init_database():
    """Create types, tables and triggers if they don't exist"""
    settings = get_settings()

    try:
        conn = await asyncpg.connect(settings.database_url)

        try:
            await conn.execute(_INIT_SQL_TYPES)
            logger.info("Database types initialised")

            await conn.execute(_INIT_SQL_TABLES)
            logger.info("Database tables initialised")
        finally:
            await conn.close()

    except Exception as e:
        logger.error(f"Database initialisation failed: {e}", exc_info=True)
        raise


async def check_and_init_database():
    """Check whether the schema exists, initialise it if not"""
    settings = get_settings()

    conn = await asyncpg.connect(settings.database_url)
    try:
        exists = await conn.fetchval(
            "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = 'sleep_sessions')"
        )
    finally:
        await conn.close()

    if not exists:
        logger.warning("Database tables missing, initialising...")
        await init_database()
    else:
        logger.debug("Database tables already exist")
