"""Domain enumerations for seller threads, messages, and delivery channels."""

from enum import StrEnum


class SellerType(StrEnum):
    """Kinds of seller a thread can represent."""

    PRIVATE = "private"
    DEALERSHIP = "dealership"
    OTHER = "other"


class SenderRole(StrEnum):
    """Who authored a message."""

    USER = "user"
    AGENT = "agent"
    SELLER = "seller"


class Channel(StrEnum):
    """Transport a message arrived over or was sent through."""

    SMS = "sms"
    EMAIL = "email"


def parse_seller_type(value: str | SellerType) -> SellerType:
    """Coerce a raw value into a ``SellerType``.

    Args:
        value: A ``SellerType`` member or its string value.

    Returns:
        The matching ``SellerType``.

    Raises:
        ValueError: If the value is not one of the known seller types.
    """
    try:
        return SellerType(value)
    except ValueError:
        raise ValueError(
            f"{value!r} is not a valid seller type. "
            f"Valid types: {', '.join(t.value for t in SellerType)}"
        ) from None


def parse_channel(value: str | Channel) -> Channel:
    """Coerce a raw value into a ``Channel``.

    Raises:
        ValueError: If the value is not a supported channel.
    """
    try:
        return Channel(value)
    except ValueError:
        raise ValueError(
            f"{value!r} is not a supported channel. "
            f"Valid channels: {', '.join(c.value for c in Channel)}"
        ) from None
