"""Pydantic v2 models for threads, messages, tracked offers, and thread views."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from sellerdesk.domain.types import Channel, SellerType, SenderRole


class Thread(BaseModel):
    """One ongoing conversation with one seller, owned by one user.

    ``archived_at`` doubles as the soft-delete marker: a thread is active
    only while it is ``None``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    seller_name: str
    seller_type: SellerType
    phone: str | None = None
    created_at: datetime
    updated_at: datetime
    last_message_at: datetime | None = None
    last_read_at: datetime | None = None
    archived_at: datetime | None = None

    @field_validator("seller_name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        """Ensure seller_name is not empty or whitespace-only."""
        if not v.strip():
            raise ValueError("seller_name must not be empty")
        return v

    @property
    def is_active(self) -> bool:
        return self.archived_at is None


class Message(BaseModel):
    """A single inbound or outbound communication unit.

    ``thread_id`` is ``None`` while the message sits in the user's inbox
    waiting to be routed.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    thread_id: str | None = None
    sender: SenderRole
    content: str
    timestamp: datetime
    sender_address: str | None = None
    external_message_id: str | None = None
    subject: str | None = None
    channel: Channel | None = None


class TrackedOffer(BaseModel):
    """A price/terms offer extracted from a message."""

    model_config = ConfigDict(frozen=True)

    id: str
    thread_id: str
    message_id: str | None = None
    offer_text: str
    tracked_at: datetime


class ThreadView(BaseModel):
    """Read-side aggregate for a thread, recomputed on every read."""

    model_config = ConfigDict(frozen=True)

    thread: Thread
    message_count: int
    unread_count: int
    last_message_preview: str
    display_name: str
