"""
Closed sets of statuses and discriminators shared by models, schemas and services.
"""

from enum import Enum


class EntityType(str, Enum):
    """Domain object a Payment refers to."""

    GIFT_CARD = "gift_card"
    ORDER = "order"
    BOOKING = "booking"
    TICKET = "ticket"
    TOURNAMENT = "tournament"
    EVENT = "event"


class ItemType(str, Enum):
    """Discriminator of an OrderItem / CartItem."""

    PRODUCT = "product"
    TOURNAMENT = "tournament"
    EVENT = "event"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXPIRED = "expired"


class BookingPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class SessionStatus(str, Enum):
    PENDING = "pending"
    STARTED = "started"
    COMPLETED = "completed"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class OrderPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderPaymentMethod(str, Enum):
    COD = "cod"
    ONLINE = "online"


class BookingPaymentMethod(str, Enum):
    ONLINE = "online"
    AT_VENUE = "at_venue"


class RegistrationStatus(str, Enum):
    REGISTERED = "registered"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class RegistrationPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentOption(str, Enum):
    ONLINE = "online"
    AT_EVENT = "at_event"


class GiftCardStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    REDEEMED = "redeemed"


def values(enum_cls) -> str:
    """Comma-separated quoted values for CHECK constraints."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
