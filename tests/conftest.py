"""Shared pytest fixtures for the seller desk test suite."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from sellerdesk.domain.models import Thread
from sellerdesk.domain.types import SellerType
from sellerdesk.ingestion.pipeline import IngestionPipeline
from sellerdesk.messages.offers import OfferStore
from sellerdesk.messages.store import MessageStore
from sellerdesk.storage.schema import init_db
from sellerdesk.threads.consolidation import ConsolidationEngine
from sellerdesk.threads.store import ThreadStore

USER = "user-1"
OTHER_USER = "user-2"


class FakeClock:
    """A controllable clock; call it for "now", ``advance`` to move forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "sellerdesk.db"


@pytest.fixture
def conn(db_path: Path) -> sqlite3.Connection:
    """File-backed SQLite connection with the schema initialized."""
    connection = init_db(db_path)
    yield connection
    connection.close()


@pytest.fixture
def threads(conn: sqlite3.Connection, clock: FakeClock) -> ThreadStore:
    return ThreadStore(conn, clock=clock)


@pytest.fixture
def messages(conn: sqlite3.Connection, clock: FakeClock) -> MessageStore:
    return MessageStore(conn, clock=clock)


@pytest.fixture
def offers(conn: sqlite3.Connection, clock: FakeClock) -> OfferStore:
    return OfferStore(conn, clock=clock)


@pytest.fixture
def pipeline(conn: sqlite3.Connection, clock: FakeClock) -> IngestionPipeline:
    return IngestionPipeline(conn, clock=clock)


@pytest.fixture
def engine(conn: sqlite3.Connection, clock: FakeClock) -> ConsolidationEngine:
    return ConsolidationEngine(conn, clock=clock)


@pytest.fixture
def make_thread(threads: ThreadStore):
    """Factory creating threads for ``USER`` unless told otherwise."""

    def _make(
        seller_name: str = "Bob",
        phone: str | None = None,
        seller_type: SellerType = SellerType.PRIVATE,
        user_id: str = USER,
    ) -> Thread:
        return threads.create(user_id, seller_name, seller_type, phone=phone)

    return _make
