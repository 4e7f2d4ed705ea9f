"""Message and tracked-offer persistence."""

from sellerdesk.messages.offers import OfferStore
from sellerdesk.messages.store import MessageStore

__all__ = ["MessageStore", "OfferStore"]
