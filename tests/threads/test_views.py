"""Tests for the aggregate view builder: counts, preview, display name."""

from __future__ import annotations

import sqlite3
from datetime import timedelta

import pytest

from sellerdesk.domain.types import Channel
from sellerdesk.ingestion.pipeline import IngestionPipeline
from sellerdesk.threads.store import ThreadStore
from sellerdesk.threads.views import (
    build_thread_view,
    build_thread_views,
    display_name,
    has_meaningful_name,
    list_thread_views,
    preview,
)

USER = "user-1"
PHONE = "+15551230000"


class TestDisplayName:
    @pytest.mark.parametrize(
        ("name", "phone", "expected"),
        [
            ("Bob", PHONE, "Bob"),
            (PHONE, PHONE, PHONE),
            ("Bob", None, "Bob"),
        ],
    )
    def test_display_name(self, make_thread, name, phone, expected) -> None:
        thread = make_thread(name, phone=phone)
        assert display_name(thread) == expected

    def test_phone_only_name_is_not_meaningful(self, make_thread) -> None:
        assert has_meaningful_name(make_thread("Bob", phone=PHONE))
        assert not has_meaningful_name(make_thread(PHONE, phone=PHONE))


class TestPreview:
    def test_short_content_unchanged(self) -> None:
        assert preview("Still available?") == "Still available?"

    def test_exactly_fifty_characters_unchanged(self) -> None:
        text = "x" * 50
        assert preview(text) == text

    def test_long_content_truncated_with_ellipsis(self) -> None:
        text = "I can do 18,500 if you pick it up this weekend, cash only please."
        result = preview(text)
        assert len(result) == 50
        assert result.endswith("...")
        assert result[:47] == text[:47]


class TestBuildThreadView:
    def test_empty_thread(self, conn: sqlite3.Connection, make_thread) -> None:
        view = build_thread_view(conn, make_thread("Bob", phone=PHONE))

        assert view.message_count == 0
        assert view.unread_count == 0
        assert view.last_message_preview == ""
        assert view.display_name == "Bob"

    def test_never_read_means_everything_unread(
        self, conn: sqlite3.Connection, make_thread, pipeline: IngestionPipeline, threads
    ) -> None:
        thread = make_thread(phone=PHONE)
        pipeline.ingest(USER, Channel.SMS, PHONE, "first")
        pipeline.ingest(USER, Channel.SMS, PHONE, "second")

        view = build_thread_view(conn, threads.get(thread.id, USER))
        assert view.message_count == 2
        assert view.unread_count == 2

    def test_mark_read_then_unread_count(
        self,
        conn: sqlite3.Connection,
        make_thread,
        pipeline: IngestionPipeline,
        threads: ThreadStore,
        clock,
    ) -> None:
        thread = make_thread(phone=PHONE)
        pipeline.ingest(USER, Channel.SMS, PHONE, "before", received_at=clock.advance(minutes=1))
        read_at = clock.advance(minutes=1)
        threads.mark_read(thread.id, USER)

        view = build_thread_view(conn, threads.get(thread.id, USER))
        assert view.unread_count == 0

        # A message stamped exactly at the read time is already read.
        pipeline.ingest(USER, Channel.SMS, PHONE, "same instant", received_at=read_at)
        pipeline.ingest(
            USER, Channel.SMS, PHONE, "after", received_at=read_at + timedelta(microseconds=1)
        )

        view = build_thread_view(conn, threads.get(thread.id, USER))
        assert view.message_count == 3
        assert view.unread_count == 1

    def test_preview_uses_newest_by_timestamp(
        self,
        conn: sqlite3.Connection,
        make_thread,
        pipeline: IngestionPipeline,
        threads: ThreadStore,
        clock,
    ) -> None:
        thread = make_thread(phone=PHONE)
        newest = clock.advance(minutes=10)
        pipeline.ingest(USER, Channel.SMS, PHONE, "newest", received_at=newest)
        pipeline.ingest(
            USER, Channel.SMS, PHONE, "older but stored later", received_at=newest - timedelta(minutes=5)
        )

        view = build_thread_view(conn, threads.get(thread.id, USER))
        assert view.last_message_preview == "newest"

    def test_list_thread_views_reflects_current_rows(
        self, conn: sqlite3.Connection, make_thread, pipeline: IngestionPipeline
    ) -> None:
        make_thread(phone=PHONE)
        assert list_thread_views(conn, USER)[0].message_count == 0

        pipeline.ingest(USER, Channel.SMS, PHONE, "hello")
        assert list_thread_views(conn, USER)[0].message_count == 1

    def test_build_thread_views_preserves_order(
        self, conn: sqlite3.Connection, make_thread
    ) -> None:
        first, second = make_thread("Zed"), make_thread("Amy")

        views = build_thread_views(conn, [first, second])

        assert [v.thread.id for v in views] == [first.id, second.id]
