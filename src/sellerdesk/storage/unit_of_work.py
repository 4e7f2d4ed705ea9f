"""Explicit begin/commit/rollback around a sqlite3 connection.

A ``UnitOfWork`` opened while the connection is already inside a
transaction joins it instead of starting a new one, so store methods can be
composed into a larger atomic operation (ingest-and-route, consolidate).
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType

import structlog

from sellerdesk.domain.errors import StorageError

logger = structlog.get_logger()


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate ``sqlite3.Error`` raised in the block into ``StorageError``."""
    try:
        yield
    except sqlite3.Error as exc:
        logger.error("storage_error", operation=operation, error=str(exc))
        raise StorageError(f"{operation} failed: {exc}") from exc


class UnitOfWork:
    """Context manager running its block as one SQLite transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock before the first read,
    so a second writer touching the same rows waits until this transaction
    commits or rolls back and then sees the committed state.

    Usage::

        with UnitOfWork(conn, "consolidate"):
            ...
    """

    def __init__(self, conn: sqlite3.Connection, operation: str = "transaction") -> None:
        self._conn = conn
        self._operation = operation
        self._owner = False

    def __enter__(self) -> sqlite3.Connection:
        if self._conn.in_transaction:
            return self._conn
        with storage_errors(self._operation):
            self._conn.execute("BEGIN IMMEDIATE")
        self._owner = True
        return self._conn

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._owner:
            if isinstance(exc, sqlite3.Error):
                raise StorageError(f"{self._operation} failed: {exc}") from exc
            return

        if exc_type is None:
            try:
                with storage_errors(self._operation):
                    self._conn.execute("COMMIT")
            except StorageError:
                self._rollback()
                raise
            return

        self._rollback()
        if isinstance(exc, sqlite3.Error):
            logger.error("storage_error", operation=self._operation, error=str(exc))
            raise StorageError(f"{self._operation} failed: {exc}") from exc

    def _rollback(self) -> None:
        if not self._conn.in_transaction:
            return
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("rollback_failed", operation=self._operation)
        else:
            logger.debug("transaction_rolled_back", operation=self._operation)
