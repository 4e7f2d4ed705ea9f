"""SQLite-backed thread store: create, read, rename, archive, and read-state.

Every statement is scoped by ``(id, user_id)`` and, where archival matters,
by ``archived_at IS NULL``.  A missing row, a row owned by someone else, and
an archived row all surface as the same ``ThreadNotFoundError`` so the store
never reveals that another user's thread exists.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime

import structlog

from sellerdesk.domain.errors import (
    InvalidInputError,
    ThreadNotFoundError,
    require_text,
)
from sellerdesk.domain.models import Thread
from sellerdesk.domain.types import SellerType, parse_seller_type
from sellerdesk.storage.schema import Clock, format_ts, parse_ts, utc_now
from sellerdesk.storage.unit_of_work import UnitOfWork, storage_errors

logger = structlog.get_logger()


def row_to_thread(row: sqlite3.Row) -> Thread:
    """Build a ``Thread`` from a ``threads`` table row."""
    return Thread(
        id=row["id"],
        user_id=row["user_id"],
        seller_name=row["seller_name"],
        seller_type=SellerType(row["seller_type"]),
        phone=row["phone"],
        created_at=parse_ts(row["created_at"]),
        updated_at=parse_ts(row["updated_at"]),
        last_message_at=parse_ts(row["last_message_at"]),
        last_read_at=parse_ts(row["last_read_at"]),
        archived_at=parse_ts(row["archived_at"]),
    )


class ThreadStore:
    """Persist and retrieve seller threads in SQLite."""

    def __init__(self, conn: sqlite3.Connection, clock: Clock = utc_now) -> None:
        """Initialize with an open database connection.

        Args:
            conn: A connection from ``sellerdesk.storage.connect`` whose
                  database already has the schema.
            clock: Source of "now"; injectable for tests.
        """
        self._conn = conn
        self._clock = clock

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create(
        self,
        user_id: str,
        seller_name: str,
        seller_type: SellerType | str,
        phone: str | None = None,
    ) -> Thread:
        """Create a new active thread for *user_id*.

        Args:
            user_id: Owning user.
            seller_name: Seller display name; must not be blank.
            seller_type: One of the ``SellerType`` values.
            phone: Optional channel address used for SMS routing.

        Returns:
            The stored ``Thread``.

        Raises:
            InvalidInputError: On a blank name/user id or unknown seller type.
        """
        user_id = require_text(user_id, "user_id")
        seller_name = require_text(seller_name, "seller_name")
        try:
            kind = parse_seller_type(seller_type)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc
        phone = phone.strip() if phone and phone.strip() else None

        thread_id = str(uuid.uuid4())
        now = format_ts(self._clock())
        with UnitOfWork(self._conn, "create_thread") as conn:
            conn.execute(
                """
                INSERT INTO threads (
                    id, user_id, seller_name, seller_type, phone,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (thread_id, user_id, seller_name, kind.value, phone, now, now),
            )
            thread = self._fetch(thread_id, user_id, include_archived=False)

        logger.info("thread_created", thread_id=thread_id, user_id=user_id, seller_type=kind.value)
        return thread

    def rename(self, thread_id: str, user_id: str, seller_name: str) -> Thread:
        """Change the seller name of an active thread.

        Raises:
            InvalidInputError: If the new name is blank.
            ThreadNotFoundError: If the thread is missing, foreign, or archived.
        """
        seller_name = require_text(seller_name, "seller_name")
        now = format_ts(self._clock())
        with UnitOfWork(self._conn, "rename_thread") as conn:
            cursor = conn.execute(
                """
                UPDATE threads SET seller_name = ?, updated_at = ?
                WHERE id = ? AND user_id = ? AND archived_at IS NULL
                """,
                (seller_name, now, thread_id, user_id),
            )
            if cursor.rowcount == 0:
                raise ThreadNotFoundError(thread_id)
            thread = self._fetch(thread_id, user_id, include_archived=False)

        logger.info("thread_renamed", thread_id=thread_id, user_id=user_id)
        return thread

    def archive(self, thread_id: str, user_id: str) -> Thread:
        """Soft-delete an active thread by setting ``archived_at``.

        The ``archived_at IS NULL`` guard in the ``UPDATE`` means only the
        first of two racing archive calls changes the row; the other sees a
        zero row count and fails.

        Returns:
            The archived ``Thread``.

        Raises:
            ThreadNotFoundError: If the thread is missing, foreign, or
                already archived.
        """
        now = format_ts(self._clock())
        with UnitOfWork(self._conn, "archive_thread") as conn:
            cursor = conn.execute(
                """
                UPDATE threads SET archived_at = ?, updated_at = ?
                WHERE id = ? AND user_id = ? AND archived_at IS NULL
                """,
                (now, now, thread_id, user_id),
            )
            if cursor.rowcount == 0:
                raise ThreadNotFoundError(thread_id)
            thread = self._fetch(thread_id, user_id, include_archived=True)

        logger.info("thread_archived", thread_id=thread_id, user_id=user_id)
        return thread

    def mark_read(self, thread_id: str, user_id: str) -> Thread:
        """Set ``last_read_at`` to now.  Calling it repeatedly is harmless.

        Raises:
            ThreadNotFoundError: If the thread is missing, foreign, or archived.
        """
        now = format_ts(self._clock())
        with UnitOfWork(self._conn, "mark_thread_read") as conn:
            cursor = conn.execute(
                """
                UPDATE threads SET last_read_at = ?
                WHERE id = ? AND user_id = ? AND archived_at IS NULL
                """,
                (now, thread_id, user_id),
            )
            if cursor.rowcount == 0:
                raise ThreadNotFoundError(thread_id)
            thread = self._fetch(thread_id, user_id, include_archived=False)

        logger.debug("thread_marked_read", thread_id=thread_id, user_id=user_id)
        return thread

    def touch_last_message(self, thread_id: str, at: datetime) -> bool:
        """Advance ``last_message_at`` to *at* if it is later than the current value.

        Joins the caller's transaction when one is open.

        Returns:
            ``True`` if the row changed.
        """
        stamp = format_ts(at)
        with UnitOfWork(self._conn, "touch_last_message") as conn:
            cursor = conn.execute(
                """
                UPDATE threads SET last_message_at = ?, updated_at = ?
                WHERE id = ? AND (last_message_at IS NULL OR last_message_at < ?)
                """,
                (stamp, format_ts(self._clock()), thread_id, stamp),
            )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, thread_id: str, user_id: str, include_archived: bool = False) -> Thread:
        """Fetch one thread owned by *user_id*.

        Raises:
            ThreadNotFoundError: If missing, foreign, or archived (unless
                ``include_archived`` is set).
        """
        with storage_errors("get_thread"):
            return self._fetch(thread_id, user_id, include_archived=include_archived)

    def list_for_user(self, user_id: str) -> list[Thread]:
        """List a user's active threads, most recently active first.

        Threads with no messages yet sort by their creation time.
        """
        with storage_errors("list_threads"):
            rows = self._conn.execute(
                """
                SELECT * FROM threads
                WHERE user_id = ? AND archived_at IS NULL
                ORDER BY COALESCE(last_message_at, created_at) DESC, id
                """,
                (user_id,),
            ).fetchall()
        return [row_to_thread(row) for row in rows]

    def find_active_by_phone(self, user_id: str, phone: str) -> list[Thread]:
        """Return the user's active threads whose channel address is *phone*."""
        with storage_errors("find_threads_by_phone"):
            rows = self._conn.execute(
                """
                SELECT * FROM threads
                WHERE user_id = ? AND phone = ? AND archived_at IS NULL
                ORDER BY created_at
                """,
                (user_id, phone),
            ).fetchall()
        return [row_to_thread(row) for row in rows]

    def _fetch(self, thread_id: str, user_id: str, include_archived: bool) -> Thread:
        query = "SELECT * FROM threads WHERE id = ? AND user_id = ?"
        if not include_archived:
            query += " AND archived_at IS NULL"
        row = self._conn.execute(query, (thread_id, user_id)).fetchone()
        if row is None:
            raise ThreadNotFoundError(thread_id)
        return row_to_thread(row)
