"""Lookup from a receiving address (Twilio number, forwarding mailbox) to a user.

Inbound webhooks identify the recipient only by the number or mailbox the
seller wrote to.  Each address belongs to at most one user per channel.
"""

from __future__ import annotations

import sqlite3

import structlog

from sellerdesk.domain.errors import InvalidInputError, require_text
from sellerdesk.domain.types import Channel, parse_channel
from sellerdesk.storage.unit_of_work import UnitOfWork, storage_errors

logger = structlog.get_logger()


class UserDirectory:
    """Map ``(channel, address)`` pairs to user ids."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def register(self, user_id: str, channel: Channel | str, address: str) -> None:
        """Bind *address* on *channel* to *user_id*, replacing any previous owner."""
        user_id = require_text(user_id, "user_id")
        address = require_text(address, "address")
        try:
            kind = parse_channel(channel)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc

        with UnitOfWork(self._conn, "register_address") as conn:
            conn.execute(
                "INSERT OR REPLACE INTO user_addresses (channel, address, user_id) VALUES (?, ?, ?)",
                (kind.value, _normalize(kind, address), user_id),
            )
        logger.info("user_address_registered", user_id=user_id, channel=kind.value)

    def resolve(self, channel: Channel | str, address: str) -> str | None:
        """Return the user who owns *address*, or ``None`` if nobody does."""
        if not address or not address.strip():
            return None
        kind = parse_channel(channel)
        with storage_errors("resolve_address"):
            row = self._conn.execute(
                "SELECT user_id FROM user_addresses WHERE channel = ? AND address = ?",
                (kind.value, _normalize(kind, address)),
            ).fetchone()
        return row["user_id"] if row is not None else None


def _normalize(channel: Channel, address: str) -> str:
    address = address.strip()
    if channel is Channel.EMAIL:
        return address.lower()
    return address
