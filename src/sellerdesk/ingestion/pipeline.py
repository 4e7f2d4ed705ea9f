"""Ingestion pipeline turning raw inbound payloads into stored messages.

Webhook senders retry on timeouts and non-2xx responses, so the same
provider message can arrive more than once.  When an external message id is
present it is the deduplication key: a second delivery returns the message
stored the first time instead of creating a new row.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime

import structlog

from sellerdesk.domain.errors import InvalidInputError, StorageError, require_text
from sellerdesk.domain.models import Message, Thread
from sellerdesk.domain.types import Channel, SenderRole, parse_channel
from sellerdesk.ingestion.cleaning import clean_body
from sellerdesk.messages.store import MessageStore
from sellerdesk.observability.metrics import MESSAGES_DEDUPLICATED, MESSAGES_INGESTED
from sellerdesk.storage.schema import Clock, utc_now
from sellerdesk.storage.unit_of_work import UnitOfWork
from sellerdesk.threads.store import ThreadStore

logger = structlog.get_logger()


class IngestionPipeline:
    """Deduplicate, clean, route, and store inbound seller messages."""

    def __init__(self, conn: sqlite3.Connection, clock: Clock = utc_now) -> None:
        self._conn = conn
        self._clock = clock
        self._messages = MessageStore(conn, clock=clock)
        self._threads = ThreadStore(conn, clock=clock)

    def ingest(
        self,
        user_id: str,
        channel: Channel | str,
        from_address: str,
        body: str,
        external_message_id: str | None = None,
        subject: str | None = None,
        received_at: datetime | None = None,
    ) -> Message:
        """Store one inbound message, or return the copy stored earlier.

        Args:
            user_id: The already-authenticated owner of the mailbox/number.
            channel: ``sms`` or ``email``.
            from_address: The seller's phone number or email address.
            body: The raw message body.
            external_message_id: Provider id (Twilio SID, Message-ID header).
                Used as the idempotency key when non-empty.
            subject: Email subject, if any.
            received_at: Provider timestamp; defaults to now.

        Returns:
            The stored ``Message``.  On a repeated delivery this is the
            existing row, unchanged.

        Raises:
            InvalidInputError: Blank user id or sender address, unknown channel,
                non-string external message id.
            StorageError: The database round-trip failed; safe to retry.
        """
        user_id = require_text(user_id, "user_id")
        from_address = require_text(from_address, "from_address")
        try:
            kind = parse_channel(channel)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc
        if external_message_id is not None and not isinstance(external_message_id, str):
            raise InvalidInputError("external_message_id must be a string")
        external_id = (external_message_id or "").strip() or None

        log = logger.bind(user_id=user_id, channel=kind.value, external_message_id=external_id)

        if external_id is not None:
            existing = self._messages.find_by_external_id(user_id, external_id)
            if existing is not None:
                MESSAGES_DEDUPLICATED.labels(channel=kind.value).inc()
                log.info("message_ingest_duplicate", message_id=existing.id)
                return existing

        content = clean_body(kind, body or "")
        timestamp = received_at or self._clock()

        try:
            with UnitOfWork(self._conn, "ingest_message"):
                thread = self._route(user_id, kind, from_address)
                message = self._messages.insert(
                    user_id=user_id,
                    sender=SenderRole.SELLER,
                    content=content,
                    timestamp=timestamp,
                    thread_id=thread.id if thread is not None else None,
                    sender_address=from_address,
                    external_message_id=external_id,
                    subject=subject,
                    channel=kind,
                )
                if thread is not None:
                    self._threads.touch_last_message(thread.id, timestamp)
        except StorageError as exc:
            # A concurrent delivery of the same provider message won the insert.
            if external_id is None or not isinstance(exc.__cause__, sqlite3.IntegrityError):
                raise
            winner = self._messages.find_by_external_id(user_id, external_id)
            if winner is None:
                raise
            MESSAGES_DEDUPLICATED.labels(channel=kind.value).inc()
            log.info("message_ingest_duplicate", message_id=winner.id, race=True)
            return winner

        outcome = "routed" if message.thread_id is not None else "inbox"
        MESSAGES_INGESTED.labels(channel=kind.value, outcome=outcome).inc()
        log.info("message_ingested", message_id=message.id, thread_id=message.thread_id, outcome=outcome)
        return message

    def _route(self, user_id: str, channel: Channel, from_address: str) -> Thread | None:
        """Pick the thread a message belongs to when the match is unambiguous."""
        if channel is not Channel.SMS:
            return None
        candidates = self._threads.find_active_by_phone(user_id, from_address)
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1:
            logger.info(
                "message_routing_ambiguous",
                user_id=user_id,
                candidate_count=len(candidates),
            )
        return None
