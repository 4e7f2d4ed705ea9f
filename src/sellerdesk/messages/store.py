"""SQLite-backed message store: inserts, lookups, inbox routing, outbound records.

A message's ``thread_id`` only changes through three paths: routing at
ingestion, ``assign_to_thread`` for inbox items, and consolidation.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime

import structlog

from sellerdesk.domain.errors import (
    InvalidInputError,
    MessageNotFoundError,
    ThreadConflictError,
    require_text,
)
from sellerdesk.domain.models import Message
from sellerdesk.domain.types import Channel, SenderRole
from sellerdesk.storage.schema import Clock, format_ts, parse_ts, utc_now
from sellerdesk.storage.unit_of_work import UnitOfWork, storage_errors
from sellerdesk.threads.store import ThreadStore

logger = structlog.get_logger()


def row_to_message(row: sqlite3.Row) -> Message:
    """Build a ``Message`` from a ``messages`` table row."""
    return Message(
        id=row["id"],
        user_id=row["user_id"],
        thread_id=row["thread_id"],
        sender=SenderRole(row["sender"]),
        content=row["content"],
        timestamp=parse_ts(row["timestamp"]),
        sender_address=row["sender_address"],
        external_message_id=row["external_message_id"],
        subject=row["subject"],
        channel=Channel(row["channel"]) if row["channel"] else None,
    )


class MessageStore:
    """Persist and retrieve messages in SQLite."""

    def __init__(self, conn: sqlite3.Connection, clock: Clock = utc_now) -> None:
        self._conn = conn
        self._clock = clock
        self._threads = ThreadStore(conn, clock=clock)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(
        self,
        *,
        user_id: str,
        sender: SenderRole,
        content: str,
        timestamp: datetime,
        thread_id: str | None = None,
        sender_address: str | None = None,
        external_message_id: str | None = None,
        subject: str | None = None,
        channel: Channel | None = None,
    ) -> Message:
        """Insert a message row and return it.

        Joins the caller's transaction when one is open.  A repeated
        ``(user_id, external_message_id)`` raises ``sqlite3.IntegrityError``
        from the unique index; callers that need idempotency look the id up
        first (see ``IngestionPipeline``).
        """
        message_id = str(uuid.uuid4())
        self._conn.execute(
            """
            INSERT INTO messages (
                id, user_id, thread_id, sender, content, timestamp,
                sender_address, external_message_id, subject, channel
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message_id,
                user_id,
                thread_id,
                sender.value,
                content,
                format_ts(timestamp),
                sender_address,
                external_message_id or None,
                subject,
                channel.value if channel is not None else None,
            ),
        )
        row = self._conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
        return row_to_message(row)

    def assign_to_thread(self, message_id: str, user_id: str, thread_id: str) -> Message:
        """Move an unassigned inbox message onto one of the user's active threads.

        Raises:
            MessageNotFoundError: If the message does not exist for the user.
            ThreadNotFoundError: If the thread is missing, foreign, or archived.
            ThreadConflictError: If the message is already on a thread.
        """
        with UnitOfWork(self._conn, "assign_message") as conn:
            message = self._fetch(message_id, user_id)
            thread = self._threads.get(thread_id, user_id)
            if message.thread_id is not None:
                raise ThreadConflictError(message.thread_id, reason="message already assigned")

            conn.execute(
                "UPDATE messages SET thread_id = ? WHERE id = ? AND thread_id IS NULL",
                (thread.id, message.id),
            )
            self._threads.touch_last_message(thread.id, message.timestamp)
            assigned = self._fetch(message_id, user_id)

        logger.info(
            "inbox_message_assigned",
            message_id=message_id,
            thread_id=thread_id,
            user_id=user_id,
        )
        return assigned

    def record_outbound(
        self,
        user_id: str,
        thread_id: str,
        content: str,
        sender: SenderRole = SenderRole.USER,
        channel: Channel | None = None,
    ) -> Message:
        """Record that a message was sent to the seller on *thread_id*.

        Only the send request is recorded; delivery is the transport's job.

        Raises:
            InvalidInputError: If *content* is blank or *sender* is the seller.
            ThreadNotFoundError: If the thread is missing, foreign, or archived.
        """
        content = require_text(content, "content")
        if sender is SenderRole.SELLER:
            raise InvalidInputError("outbound messages cannot be sent as the seller")

        now = self._clock()
        with UnitOfWork(self._conn, "record_outbound"):
            thread = self._threads.get(thread_id, user_id)
            message = self.insert(
                user_id=user_id,
                sender=sender,
                content=content,
                timestamp=now,
                thread_id=thread.id,
                channel=channel,
            )
            self._threads.touch_last_message(thread.id, now)

        logger.info(
            "outbound_message_recorded",
            message_id=message.id,
            thread_id=thread_id,
            sender=sender.value,
        )
        return message

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, message_id: str, user_id: str) -> Message:
        """Fetch one of the user's messages.

        Raises:
            MessageNotFoundError: If it does not exist for the user.
        """
        with storage_errors("get_message"):
            return self._fetch(message_id, user_id)

    def find_by_external_id(self, user_id: str, external_message_id: str) -> Message | None:
        """Return the user's message carrying *external_message_id*, if any."""
        with storage_errors("find_message_by_external_id"):
            row = self._conn.execute(
                "SELECT * FROM messages WHERE user_id = ? AND external_message_id = ?",
                (user_id, external_message_id),
            ).fetchone()
        return row_to_message(row) if row is not None else None

    def list_for_thread(self, thread_id: str, user_id: str) -> list[Message]:
        """Chronological history of one of the user's active threads.

        Raises:
            ThreadNotFoundError: If the thread is missing, foreign, or archived.
        """
        thread = self._threads.get(thread_id, user_id)
        with storage_errors("list_thread_messages"):
            rows = self._conn.execute(
                "SELECT * FROM messages WHERE thread_id = ? ORDER BY timestamp, rowid",
                (thread.id,),
            ).fetchall()
        return [row_to_message(row) for row in rows]

    def list_inbox(self, user_id: str) -> list[Message]:
        """Unassigned messages waiting to be routed, newest first."""
        with storage_errors("list_inbox"):
            rows = self._conn.execute(
                """
                SELECT * FROM messages
                WHERE user_id = ? AND thread_id IS NULL
                ORDER BY timestamp DESC, rowid DESC
                """,
                (user_id,),
            ).fetchall()
        return [row_to_message(row) for row in rows]

    def _fetch(self, message_id: str, user_id: str) -> Message:
        row = self._conn.execute(
            "SELECT * FROM messages WHERE id = ? AND user_id = ?",
            (message_id, user_id),
        ).fetchone()
        if row is None:
            raise MessageNotFoundError(message_id)
        return row_to_message(row)
