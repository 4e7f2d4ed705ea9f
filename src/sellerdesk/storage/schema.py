"""SQLite schema and connection setup for thread, message, and offer storage.

Timestamps are stored as fixed-width UTC ISO 8601 strings with microsecond
precision so that ``ORDER BY`` and ``>`` comparisons in SQL agree with
chronological order.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import structlog

logger = structlog.get_logger()

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: the current time in UTC."""
    return datetime.now(tz=UTC)


def format_ts(value: datetime) -> str:
    """Render a datetime as the stored timestamp string (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def parse_ts(value: str | None) -> datetime | None:
    """Parse a stored timestamp string back into an aware UTC datetime."""
    if value is None:
        return None
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def connect(db_path: Path | str, busy_timeout: float = 5.0) -> sqlite3.Connection:
    """Open a connection configured for explicit transaction control.

    ``isolation_level=None`` disables the sqlite3 module's implicit
    transactions; every write goes through a ``UnitOfWork`` that issues its
    own ``BEGIN IMMEDIATE`` / ``COMMIT`` / ``ROLLBACK``.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
        busy_timeout: Seconds to wait for another writer's lock.

    Returns:
        An open connection with ``sqlite3.Row`` rows, WAL mode, and foreign
        keys enabled.
    """
    conn = sqlite3.connect(
        str(db_path),
        timeout=busy_timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they do not already exist.

    Args:
        conn: A connection from ``connect()``.
    """
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS threads (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            seller_name TEXT NOT NULL,
            seller_type TEXT NOT NULL
                CHECK (seller_type IN ('private', 'dealership', 'other')),
            phone TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            last_message_at TEXT,
            last_read_at TEXT,
            archived_at TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_threads_user ON threads (user_id, archived_at);
        CREATE INDEX IF NOT EXISTS idx_threads_phone ON threads (user_id, phone);

        CREATE TABLE IF NOT EXISTS messages (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            thread_id TEXT REFERENCES threads (id),
            sender TEXT NOT NULL CHECK (sender IN ('user', 'agent', 'seller')),
            content TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            sender_address TEXT,
            external_message_id TEXT,
            subject TEXT,
            channel TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_messages_thread ON messages (thread_id, timestamp);
        CREATE INDEX IF NOT EXISTS idx_messages_inbox ON messages (user_id, thread_id);
        CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_external_id
            ON messages (user_id, external_message_id)
            WHERE external_message_id IS NOT NULL AND external_message_id != '';

        CREATE TABLE IF NOT EXISTS tracked_offers (
            id TEXT PRIMARY KEY,
            thread_id TEXT NOT NULL REFERENCES threads (id),
            message_id TEXT REFERENCES messages (id),
            offer_text TEXT NOT NULL,
            tracked_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_offers_thread ON tracked_offers (thread_id);

        CREATE TABLE IF NOT EXISTS user_addresses (
            channel TEXT NOT NULL,
            address TEXT NOT NULL,
            user_id TEXT NOT NULL,
            PRIMARY KEY (channel, address)
        );
    """)
    logger.debug("schema_initialized")


def init_db(db_path: Path | str, busy_timeout: float = 5.0) -> sqlite3.Connection:
    """Connect to *db_path* and make sure the schema exists."""
    conn = connect(db_path, busy_timeout=busy_timeout)
    init_schema(conn)
    return conn
