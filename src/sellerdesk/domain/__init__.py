"""Domain types, models, and errors for the seller desk."""

from sellerdesk.domain.errors import (
    ConflictError,
    InvalidInputError,
    MessageNotFoundError,
    NotFoundError,
    SellerDeskError,
    StorageError,
    ThreadConflictError,
    ThreadNotFoundError,
    require_text,
)
from sellerdesk.domain.models import Message, Thread, ThreadView, TrackedOffer
from sellerdesk.domain.types import (
    Channel,
    SellerType,
    SenderRole,
    parse_channel,
    parse_seller_type,
)

__all__ = [
    "Channel",
    "ConflictError",
    "InvalidInputError",
    "Message",
    "MessageNotFoundError",
    "NotFoundError",
    "SellerDeskError",
    "SellerType",
    "SenderRole",
    "StorageError",
    "Thread",
    "ThreadConflictError",
    "ThreadNotFoundError",
    "ThreadView",
    "TrackedOffer",
    "parse_channel",
    "parse_seller_type",
    "require_text",
]
