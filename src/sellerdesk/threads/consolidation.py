"""Transactional consolidation of several threads into one surviving thread.

The whole merge runs inside a single ``UnitOfWork`` opened with
``BEGIN IMMEDIATE``.  The threads are loaded and re-validated only after the
write lock is held, so when two requests race over an overlapping set the
second one waits, then finds its targets archived and fails without writing
anything.

Parent selection is deterministic for a given input order: the first thread
(in the order the caller listed them) with a meaningful seller name wins;
if none has one, the first thread listed wins.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

import structlog

from sellerdesk.domain.errors import (
    InvalidInputError,
    ThreadConflictError,
    ThreadNotFoundError,
    require_text,
)
from sellerdesk.domain.models import Thread, ThreadView
from sellerdesk.observability.metrics import THREADS_CONSOLIDATED
from sellerdesk.storage.schema import Clock, format_ts, utc_now
from sellerdesk.storage.unit_of_work import UnitOfWork
from sellerdesk.threads.store import row_to_thread
from sellerdesk.threads.views import build_thread_view, has_meaningful_name

logger = structlog.get_logger()


def select_parent_thread(threads: Sequence[Thread], ordered_ids: Sequence[str]) -> Thread:
    """Pick the thread that survives a consolidation.

    Args:
        threads: The loaded threads, in any order.
        ordered_ids: Thread ids in the order the caller supplied them.

    Returns:
        The first thread in caller order with a meaningful name, otherwise
        the first thread in caller order.

    Raises:
        ValueError: If *threads* is empty.
    """
    if not threads:
        raise ValueError("cannot select a parent from an empty thread list")

    by_id = {t.id: t for t in threads}
    in_order = [by_id[tid] for tid in ordered_ids if tid in by_id]

    named = [t for t in in_order if has_meaningful_name(t)]
    if named:
        return named[0]
    if in_order:
        return in_order[0]
    return threads[0]


class ConsolidationEngine:
    """Merge a user's threads into one, moving messages and offers to the parent."""

    def __init__(self, conn: sqlite3.Connection, clock: Clock = utc_now) -> None:
        self._conn = conn
        self._clock = clock

    def consolidate(self, user_id: str, thread_ids: Sequence[str]) -> ThreadView:
        """Merge *thread_ids* into a single parent thread.

        Steps, all in one transaction:

        1. Load every thread scoped to the user and check it is active.
        2. Choose the parent (see ``select_parent_thread``).
        3. Re-point messages of the source threads at the parent.
        4. Re-point tracked offers of the source threads at the parent.
        5. Advance the parent's ``last_message_at`` to the latest input value.
        6. Archive the source threads with the transaction timestamp.

        Args:
            user_id: The owner of every thread in *thread_ids*.
            thread_ids: At least two distinct thread ids.  Order matters for
                parent selection.

        Returns:
            The parent thread's freshly computed ``ThreadView``.

        Raises:
            InvalidInputError: Fewer than two ids, duplicate ids, or a blank
                user id.
            ThreadNotFoundError: An id does not exist for this user.
            ThreadConflictError: An id exists but is already archived (for
                example by a concurrent consolidation).
            StorageError: The database failed; nothing was written.
        """
        user_id = require_text(user_id, "user_id")
        ids = list(thread_ids)
        if len(ids) < 2:
            raise InvalidInputError("at least 2 threads required for consolidation")
        if len(set(ids)) != len(ids):
            raise InvalidInputError("thread ids must be distinct")

        log = logger.bind(user_id=user_id, thread_ids=ids)
        now = self._clock()

        with UnitOfWork(self._conn, "consolidate_threads") as conn:
            threads = self._load_active(conn, user_id, ids)
            parent = select_parent_thread(threads, ids)
            sources = [t for t in threads if t.id != parent.id]
            source_ids = [t.id for t in sources]
            placeholders = ", ".join("?" for _ in source_ids)

            moved_messages = conn.execute(
                f"UPDATE messages SET thread_id = ? WHERE thread_id IN ({placeholders})",
                [parent.id, *source_ids],
            ).rowcount

            moved_offers = conn.execute(
                f"UPDATE tracked_offers SET thread_id = ? WHERE thread_id IN ({placeholders})",
                [parent.id, *source_ids],
            ).rowcount

            latest = max(
                (t.last_message_at for t in threads if t.last_message_at is not None),
                default=None,
            )
            if latest is not None and (
                parent.last_message_at is None or latest > parent.last_message_at
            ):
                conn.execute(
                    "UPDATE threads SET last_message_at = ?, updated_at = ? WHERE id = ?",
                    (format_ts(latest), format_ts(now), parent.id),
                )

            archived = conn.execute(
                f"""
                UPDATE threads SET archived_at = ?, updated_at = ?
                WHERE id IN ({placeholders}) AND archived_at IS NULL
                """,
                [format_ts(now), format_ts(now), *source_ids],
            ).rowcount
            if archived != len(source_ids):
                raise ThreadConflictError(source_ids)

            parent_row = conn.execute(
                "SELECT * FROM threads WHERE id = ?", (parent.id,)
            ).fetchone()

        THREADS_CONSOLIDATED.inc()
        log.info(
            "threads_consolidated",
            parent_id=parent.id,
            archived_ids=source_ids,
            moved_messages=moved_messages,
            moved_offers=moved_offers,
        )
        return build_thread_view(self._conn, row_to_thread(parent_row))

    @staticmethod
    def _load_active(conn: sqlite3.Connection, user_id: str, ids: list[str]) -> list[Thread]:
        placeholders = ", ".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT * FROM threads WHERE user_id = ? AND id IN ({placeholders})",
            [user_id, *ids],
        ).fetchall()
        threads = [row_to_thread(row) for row in rows]

        found = {t.id for t in threads}
        missing = [tid for tid in ids if tid not in found]
        if missing:
            raise ThreadNotFoundError(missing)

        archived = [t.id for t in threads if not t.is_active]
        if archived:
            raise ThreadConflictError(archived)
        return threads
