"""Aggregate view builder: per-thread counts, preview, and display name.

Everything here is derived from the current rows on each call.  Nothing is
written back, so a view can never go stale relative to the messages it was
built from.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from sellerdesk.domain.models import Thread, ThreadView
from sellerdesk.storage.schema import format_ts
from sellerdesk.storage.unit_of_work import storage_errors
from sellerdesk.threads.store import ThreadStore

PREVIEW_LENGTH = 50
ELLIPSIS = "..."


def has_meaningful_name(thread: Thread) -> bool:
    """A seller name counts only if it is non-empty and not just the phone number."""
    return bool(thread.seller_name) and thread.seller_name != thread.phone


def display_name(thread: Thread) -> str:
    """Return the seller name, or the channel address when the name adds nothing."""
    if has_meaningful_name(thread):
        return thread.seller_name
    return thread.phone or ""


def preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    """Truncate *content* to *length* characters, ending in ``...`` when cut."""
    if len(content) <= length:
        return content
    return content[: length - len(ELLIPSIS)] + ELLIPSIS


def build_thread_view(conn: sqlite3.Connection, thread: Thread) -> ThreadView:
    """Compute the aggregate view for a single thread.

    Args:
        conn: An open database connection.
        thread: The thread to summarize.

    Returns:
        A ``ThreadView`` with message count, unread count (messages newer
        than ``last_read_at``; all of them when it is unset), a preview of
        the newest message, and the display name.
    """
    with storage_errors("build_thread_view"):
        message_count = conn.execute(
            "SELECT COUNT(*) FROM messages WHERE thread_id = ?",
            (thread.id,),
        ).fetchone()[0]

        if thread.last_read_at is None:
            unread_count = message_count
        else:
            unread_count = conn.execute(
                "SELECT COUNT(*) FROM messages WHERE thread_id = ? AND timestamp > ?",
                (thread.id, format_ts(thread.last_read_at)),
            ).fetchone()[0]

        latest = conn.execute(
            """
            SELECT content FROM messages WHERE thread_id = ?
            ORDER BY timestamp DESC, rowid DESC LIMIT 1
            """,
            (thread.id,),
        ).fetchone()

    return ThreadView(
        thread=thread,
        message_count=message_count,
        unread_count=unread_count,
        last_message_preview=preview(latest[0]) if latest is not None else "",
        display_name=display_name(thread),
    )


def build_thread_views(conn: sqlite3.Connection, threads: Iterable[Thread]) -> list[ThreadView]:
    """Compute views for *threads*, preserving their order."""
    return [build_thread_view(conn, thread) for thread in threads]


def list_thread_views(conn: sqlite3.Connection, user_id: str) -> list[ThreadView]:
    """List a user's active threads with their aggregates, most recent first."""
    return build_thread_views(conn, ThreadStore(conn).list_for_user(user_id))
