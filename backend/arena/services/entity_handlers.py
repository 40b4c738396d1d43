"""
Per-entity behaviour for payments.

One table maps every EntityType to:
  validate(db, purchaser, entity_id, amount) -> entity row (or None)
      run before a checkout is created: the entity exists, belongs to the
      purchaser, is still payable and, where it has a price, the amount
      matches it
  cascade(db, target, outcome, amount)
      run by the webhook reconciler after a Payment moved out of pending,
      inside the reconciler's transaction

Adding an entity type means adding one row here.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.exceptions import NotFoundError, ValidationError
from arena.core.logging import get_logger
from arena.domain.enums import (
    BookingPaymentStatus,
    EntityType,
    GiftCardStatus,
    OrderPaymentStatus,
    OrderStatus,
    PaymentStatus,
    RegistrationPaymentStatus,
    RegistrationStatus,
)
from arena.domain.purchaser import Purchaser
from arena.infrastructure.stripe_gateway import stripe_field
from arena.models.booking import Booking
from arena.models.gift_card import GiftCard
from arena.models.order import Order
from arena.models.registration import EventRegistration, TournamentRegistration
from arena.services import gift_card_service

logger = get_logger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class PaymentTarget:
    """The (user, entity) a Payment is bound to, as carried in provider metadata."""

    user_id: Optional[int]
    entity_type: EntityType
    entity_id: int

    @classmethod
    def from_metadata(cls, metadata) -> Optional["PaymentTarget"]:
        try:
            entity_type = EntityType(stripe_field(metadata, "entity_type"))
            entity_id = int(stripe_field(metadata, "entity_id"))
        except (TypeError, ValueError):
            return None
        raw_user = str(stripe_field(metadata, "user_id", ""))
        return cls(
            user_id=int(raw_user) if raw_user.isdigit() else None,
            entity_type=entity_type,
            entity_id=entity_id,
        )


@dataclass(frozen=True)
class EntityHandler:
    validate: Callable[[AsyncSession, Purchaser, int, Decimal], Awaitable[Optional[object]]]
    cascade: Callable[[AsyncSession, PaymentTarget, PaymentStatus, Decimal], Awaitable[None]]


def _require_amount(amount: Decimal, expected, label: str) -> None:
    if abs(Decimal(amount) - Decimal(str(expected))) > AMOUNT_TOLERANCE:
        raise ValidationError(f"Amount {amount} does not match {label} price {expected}")


async def _owned(db: AsyncSession, model, entity_id: int, purchaser: Purchaser, label: str):
    row = await db.get(model, entity_id)
    if row is None or not purchaser.owns(row):
        raise NotFoundError(f"{label} {entity_id} not found")
    return row


# Validation

async def _validate_gift_card(db, purchaser, entity_id, amount):
    if purchaser.is_guest:
        raise ValidationError("Sign in to purchase a gift card")
    card = await db.get(GiftCard, entity_id)
    if card is None or card.status != GiftCardStatus.ACTIVE.value:
        raise NotFoundError(f"Gift card {entity_id} not found")
    _require_amount(amount, card.amount, "gift card")
    return card


async def _validate_order(db, purchaser, entity_id, amount):
    order = await _owned(db, Order, entity_id, purchaser, "Order")
    if order.payment_status == OrderPaymentStatus.PAID.value:
        raise ValidationError("Order is already paid")
    _require_amount(amount, order.total_amount, "order")
    return order


async def _validate_booking(db, purchaser, entity_id, amount):
    booking = await _owned(db, Booking, entity_id, purchaser, "Booking")
    if booking.payment_status != BookingPaymentStatus.PENDING.value:
        raise ValidationError(f"Booking is {booking.payment_status}")
    _require_amount(amount, booking.total_amount, "booking")
    return booking


async def _validate_ticket(db, purchaser, entity_id, amount):
    # Tickets are issued by the box office; there is no local row to check.
    return None


def _registration_validator(model, label: str):
    async def validate(db, purchaser, entity_id, amount):
        registration = await _owned(db, model, entity_id, purchaser, label)
        if registration.status == RegistrationStatus.CANCELLED.value:
            raise ValidationError("Registration is cancelled")
        if registration.payment_status == RegistrationPaymentStatus.PAID.value:
            raise ValidationError("Registration is already paid")
        return registration

    return validate


# Cascades

async def _cascade_order(db, target, outcome, amount):
    if outcome == PaymentStatus.SUCCEEDED:
        values = {"payment_status": OrderPaymentStatus.PAID.value, "status": OrderStatus.PROCESSING.value}
    elif outcome == PaymentStatus.FAILED:
        values = {"payment_status": OrderPaymentStatus.FAILED.value}
    else:
        return
    await db.execute(
        update(Order).where(Order.id == target.entity_id).values(**values)
        .execution_options(synchronize_session=False)
    )
    logger.info("order_payment_applied", order_id=target.entity_id, outcome=outcome.value)


async def _cascade_booking(db, target, outcome, amount):
    if outcome != PaymentStatus.SUCCEEDED:
        return
    await db.execute(
        update(Booking)
        .where(Booking.id == target.entity_id)
        .values(payment_status=BookingPaymentStatus.PAID.value)
        .execution_options(synchronize_session=False)
    )
    logger.info("booking_payment_applied", booking_id=target.entity_id)


async def _cascade_gift_card(db, target, outcome, amount):
    if outcome != PaymentStatus.SUCCEEDED:
        return
    if target.user_id is None:
        logger.warning("gift_card_payment_without_user", gift_card_id=target.entity_id)
        return
    await gift_card_service.credit(db, target.user_id, target.entity_id, amount)


async def _cascade_ticket(db, target, outcome, amount):
    logger.info("ticket_payment_recorded", ticket_id=target.entity_id, outcome=outcome.value)


def _registration_cascade(model):
    async def cascade(db, target, outcome, amount):
        if outcome == PaymentStatus.SUCCEEDED:
            status = RegistrationPaymentStatus.PAID.value
        elif outcome == PaymentStatus.FAILED:
            status = RegistrationPaymentStatus.FAILED.value
        else:
            return
        await db.execute(
            update(model).where(model.id == target.entity_id).values(payment_status=status)
            .execution_options(synchronize_session=False)
        )
        logger.info(
            "registration_payment_applied",
            table=model.__tablename__,
            registration_id=target.entity_id,
            payment_status=status,
        )

    return cascade


HANDLERS: dict[EntityType, EntityHandler] = {
    EntityType.GIFT_CARD: EntityHandler(_validate_gift_card, _cascade_gift_card),
    EntityType.ORDER: EntityHandler(_validate_order, _cascade_order),
    EntityType.BOOKING: EntityHandler(_validate_booking, _cascade_booking),
    EntityType.TICKET: EntityHandler(_validate_ticket, _cascade_ticket),
    EntityType.TOURNAMENT: EntityHandler(
        _registration_validator(TournamentRegistration, "Tournament registration"),
        _registration_cascade(TournamentRegistration),
    ),
    EntityType.EVENT: EntityHandler(
        _registration_validator(EventRegistration, "Event registration"),
        _registration_cascade(EventRegistration),
    ),
}


def handler_for(entity_type: EntityType) -> EntityHandler:
    return HANDLERS[entity_type]
