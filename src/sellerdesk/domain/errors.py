"""Domain-specific exception classes for the seller desk.

Callers map these onto transport responses: ``InvalidInputError`` is a bad
request, ``NotFoundError`` a 404-equivalent, ``ConflictError`` a refresh and
retry, and ``StorageError`` a transient failure that is safe to retry.
"""

from collections.abc import Iterable


class SellerDeskError(Exception):
    """Base class for all domain errors in the seller desk."""

    retryable: bool = False


class InvalidInputError(SellerDeskError):
    """Raised for malformed input: empty required fields, bad enums, too few ids."""


class NotFoundError(SellerDeskError):
    """Raised when an id does not resolve under the caller's ownership scope."""


class ThreadNotFoundError(NotFoundError):
    """Raised when a thread is missing, owned by someone else, or archived.

    Attributes:
        thread_ids: The ids that failed to resolve.
    """

    def __init__(self, thread_ids: str | Iterable[str]) -> None:
        if isinstance(thread_ids, str):
            thread_ids = [thread_ids]
        self.thread_ids = list(thread_ids)
        super().__init__(f"Thread not found: {', '.join(self.thread_ids)}")


class MessageNotFoundError(NotFoundError):
    """Raised when a message does not exist for the caller.

    Attributes:
        message_id: The id that failed to resolve.
    """

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"Message not found: {message_id}")


class ConflictError(SellerDeskError):
    """Raised when concurrent state changed underneath an operation."""


class ThreadConflictError(ConflictError):
    """Raised when a thread became archived or reassigned before commit.

    Attributes:
        thread_ids: The ids whose state no longer matches the request.
    """

    def __init__(self, thread_ids: str | Iterable[str], reason: str = "already archived") -> None:
        if isinstance(thread_ids, str):
            thread_ids = [thread_ids]
        self.thread_ids = list(thread_ids)
        self.reason = reason
        super().__init__(f"Thread conflict ({reason}): {', '.join(self.thread_ids)}")


class StorageError(SellerDeskError):
    """Raised when the database round-trip fails.  Safe to retry."""

    retryable = True


def require_text(value: str | None, field: str) -> str:
    """Return *value* stripped, raising ``InvalidInputError`` when it is blank."""
    if value is None or not value.strip():
        raise InvalidInputError(f"{field} is required")
    return value.strip()
