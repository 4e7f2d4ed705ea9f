"""Tracked offers recorded by the content-extraction step.

Offers only ever point at a thread that exists; consolidation moves them to
the surviving thread alongside the messages.
"""

from __future__ import annotations

import sqlite3
import uuid

import structlog

from sellerdesk.domain.errors import MessageNotFoundError, require_text
from sellerdesk.domain.models import TrackedOffer
from sellerdesk.storage.schema import Clock, format_ts, parse_ts, utc_now
from sellerdesk.storage.unit_of_work import UnitOfWork, storage_errors
from sellerdesk.threads.store import ThreadStore

logger = structlog.get_logger()


def row_to_offer(row: sqlite3.Row) -> TrackedOffer:
    return TrackedOffer(
        id=row["id"],
        thread_id=row["thread_id"],
        message_id=row["message_id"],
        offer_text=row["offer_text"],
        tracked_at=parse_ts(row["tracked_at"]),
    )


class OfferStore:
    """Persist and list tracked offers."""

    def __init__(self, conn: sqlite3.Connection, clock: Clock = utc_now) -> None:
        self._conn = conn
        self._clock = clock
        self._threads = ThreadStore(conn, clock=clock)

    def track(
        self,
        user_id: str,
        thread_id: str,
        offer_text: str,
        message_id: str | None = None,
    ) -> TrackedOffer:
        """Record an offer against one of the user's active threads.

        Args:
            user_id: Owner of the thread.
            thread_id: The thread the offer belongs to.
            offer_text: The extracted offer; must not be blank.
            message_id: Optional originating message, which must belong to
                the same user.

        Raises:
            InvalidInputError: If *offer_text* is blank.
            ThreadNotFoundError: If the thread is missing, foreign, or archived.
            MessageNotFoundError: If *message_id* does not belong to the user.
        """
        offer_text = require_text(offer_text, "offer_text")
        offer_id = str(uuid.uuid4())

        with UnitOfWork(self._conn, "track_offer") as conn:
            thread = self._threads.get(thread_id, user_id)
            if message_id is not None:
                owned = conn.execute(
                    "SELECT 1 FROM messages WHERE id = ? AND user_id = ?",
                    (message_id, user_id),
                ).fetchone()
                if owned is None:
                    raise MessageNotFoundError(message_id)

            conn.execute(
                """
                INSERT INTO tracked_offers (id, thread_id, message_id, offer_text, tracked_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (offer_id, thread.id, message_id, offer_text, format_ts(self._clock())),
            )
            row = conn.execute("SELECT * FROM tracked_offers WHERE id = ?", (offer_id,)).fetchone()

        logger.info("offer_tracked", offer_id=offer_id, thread_id=thread_id)
        return row_to_offer(row)

    def list_for_thread(self, thread_id: str, user_id: str) -> list[TrackedOffer]:
        """List the offers on one of the user's active threads, oldest first."""
        thread = self._threads.get(thread_id, user_id)
        with storage_errors("list_offers"):
            rows = self._conn.execute(
                "SELECT * FROM tracked_offers WHERE thread_id = ? ORDER BY tracked_at, rowid",
                (thread.id,),
            ).fetchall()
        return [row_to_offer(row) for row in rows]
