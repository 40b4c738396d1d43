"""
Payment webhook reconciler.

IDEMPOTENCY
===========

Stripe delivers events at least once and may replay them in any order.
Three layers keep a replay from repeating side effects:

  1. Event id ledger: an event id already in processed_webhook_events is
     acknowledged without touching anything.
  2. Conditional transition: exactly one Payment row moves with
     UPDATE payments SET status = :outcome
     WHERE user_id / entity_type / entity_id match
       AND <provider object id> matches
       AND status IN (:from)
     The provider object is the one the event is about: checkout.session.*
     events match checkout_session_id, payment_intent.* events match
     payment_intent_id. A second event for the same payment (same or
     different event id) matches zero rows, and an event for one attempt
     can never settle another attempt for the same entity.
  3. Cascades (order/booking/registration status, gift card credit, cart
     clear) run only when step 2 changed a row.

A checkout session creates its payment intent on Stripe's side, so the row
of a checkout-session payment carries no payment_intent_id until the
session completes. payment_intent.* events for such a payment are recorded
as no-ops; the checkout.session.* events settle it.

The transition, its cascade, the cart clear and the ledger row commit in a
single transaction. If anything fails the whole unit rolls back and the
reconciler answers 500 so Stripe retries the delivery.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.exceptions import WebhookProcessingError
from arena.core.logging import get_logger
from arena.core.metrics import record_webhook
from arena.domain.enums import EntityType, PaymentStatus
from arena.infrastructure.realtime import Broadcaster
from arena.infrastructure.stripe_gateway import StripeGateway, stripe_field
from arena.models.payment import Payment, ProcessedWebhookEvent
from arena.services import cart_service
from arena.services.entity_handlers import PaymentTarget, handler_for

logger = get_logger(__name__)

CHECKOUT_PREFIX = "checkout.session."
CHECKOUT_COMPLETED = "checkout.session.completed"

EVENT_OUTCOMES = {
    CHECKOUT_COMPLETED: PaymentStatus.SUCCEEDED,
    "checkout.session.async_payment_succeeded": PaymentStatus.SUCCEEDED,
    "payment_intent.succeeded": PaymentStatus.SUCCEEDED,
    "checkout.session.async_payment_failed": PaymentStatus.FAILED,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
    "checkout.session.expired": PaymentStatus.EXPIRED,
}

# Money captured for an attempt is always recorded, even when that attempt
# failed once or was superseded by a newer checkout. Nothing leaves succeeded.
TRANSITION_FROM = {
    PaymentStatus.SUCCEEDED: (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value, PaymentStatus.EXPIRED.value),
    PaymentStatus.FAILED: (PaymentStatus.PENDING.value,),
    PaymentStatus.EXPIRED: (PaymentStatus.PENDING.value,),
}


def _ack(message: str) -> dict:
    return {"success": True, "received": True, "message": message}


def target_criteria(target: PaymentTarget) -> list:
    user_clause = Payment.user_id.is_(None) if target.user_id is None else Payment.user_id == target.user_id
    return [
        user_clause,
        Payment.entity_type == target.entity_type.value,
        Payment.entity_id == target.entity_id,
    ]


def attempt_criteria(event_type: str, object_id: str):
    """The Payment row for the provider object an event is about."""
    if event_type.startswith(CHECKOUT_PREFIX):
        return Payment.checkout_session_id == object_id
    return Payment.payment_intent_id == object_id


async def transition_payments(
    db: AsyncSession,
    target: PaymentTarget,
    outcome: PaymentStatus,
    attempt,
    payment_intent_id: Optional[str] = None,
) -> tuple[int, Optional[Decimal]]:
    """
    Move the target's payment for one provider object to `outcome`.
    Returns (rows changed, amount of the payment that moved).
    `payment_intent_id` is stored on the row when a checkout session
    reports the intent it created.
    """
    criteria = target_criteria(target) + [attempt, Payment.status.in_(TRANSITION_FROM[outcome])]

    amount = (
        await db.execute(select(Payment.amount).where(*criteria).order_by(Payment.id.desc()).limit(1))
    ).scalar_one_or_none()
    if amount is None:
        return 0, None

    values = {"status": outcome.value}
    if payment_intent_id:
        values["payment_intent_id"] = payment_intent_id
    result = await db.execute(
        update(Payment)
        .where(*criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount, amount


async def apply_outcome(
    db: AsyncSession,
    target: PaymentTarget,
    outcome: PaymentStatus,
    attempt,
    clear_cart: bool = False,
    payment_intent_id: Optional[str] = None,
) -> bool:
    """
    Transition + cascade inside the caller's transaction.
    Returns True if a payment actually moved.
    """
    rows, amount = await transition_payments(db, target, outcome, attempt, payment_intent_id)
    if rows == 0:
        logger.info(
            "payment_transition_noop",
            entity_type=target.entity_type.value,
            entity_id=target.entity_id,
            outcome=outcome.value,
        )
        return False

    logger.info(
        "payment_transitioned",
        entity_type=target.entity_type.value,
        entity_id=target.entity_id,
        user_id=target.user_id,
        outcome=outcome.value,
        rows=rows,
    )

    if outcome != PaymentStatus.EXPIRED:
        await handler_for(target.entity_type).cascade(db, target, outcome, amount)

    if (
        clear_cart
        and outcome == PaymentStatus.SUCCEEDED
        and target.entity_type == EntityType.ORDER
        and target.user_id is not None
    ):
        await cart_service.clear_cart(db, target.user_id)

    return True


def session_intent_id(session) -> Optional[str]:
    """The payment intent id a checkout session reports, when it is a plain id."""
    intent = stripe_field(session, "payment_intent")
    return intent if isinstance(intent, str) else None


async def _already_processed(db: AsyncSession, event_id: str) -> bool:
    result = await db.execute(
        select(ProcessedWebhookEvent.id).where(ProcessedWebhookEvent.event_id == event_id)
    )
    return result.scalar_one_or_none() is not None


async def _process(db: AsyncSession, event_type: str, outcome: PaymentStatus, obj) -> tuple[str, Optional[PaymentTarget]]:
    object_id = stripe_field(obj, "id")
    target = PaymentTarget.from_metadata(stripe_field(obj, "metadata"))
    if target is None or not object_id:
        logger.warning("webhook_missing_metadata", event_type=event_type, object_id=object_id)
        return "ignored", None

    # Completed-but-unpaid sessions settle later via async_payment_* events.
    payment_status = stripe_field(obj, "payment_status")
    if event_type == CHECKOUT_COMPLETED and payment_status != "paid":
        logger.info("checkout_completed_unpaid", session_id=object_id, payment_status=payment_status)
        return "noop", target

    is_session = event_type.startswith(CHECKOUT_PREFIX)
    applied = await apply_outcome(
        db,
        target,
        outcome,
        attempt_criteria(event_type, object_id),
        clear_cart=event_type == CHECKOUT_COMPLETED,
        payment_intent_id=session_intent_id(obj) if is_session else None,
    )
    return ("applied" if applied else "noop"), target


async def handle_event(
    db: AsyncSession,
    gateway: StripeGateway,
    payload: bytes,
    signature: Optional[str],
    broadcaster: Optional[Broadcaster] = None,
) -> dict:
    event = gateway.construct_event(payload, signature)
    event_id = event["id"]
    event_type = event["type"]

    outcome = EVENT_OUTCOMES.get(event_type)
    if outcome is None:
        record_webhook(event_type, "ignored")
        logger.info("webhook_ignored", event_id=event_id, event_type=event_type)
        return _ack(f"Unhandled event type {event_type}")

    if await _already_processed(db, event_id):
        record_webhook(event_type, "duplicate")
        logger.info("webhook_duplicate", event_id=event_id, event_type=event_type)
        return _ack("Event already processed")

    try:
        result, target = await _process(db, event_type, outcome, event["data"]["object"])
        db.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type, result=result))
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if await _already_processed(db, event_id):
            # A concurrent delivery of the same event committed first.
            record_webhook(event_type, "duplicate")
            logger.info("webhook_duplicate", event_id=event_id, event_type=event_type)
            return _ack("Event already processed")
        record_webhook(event_type, "error")
        logger.exception("webhook_processing_failed", event_id=event_id, event_type=event_type)
        raise WebhookProcessingError("Webhook processing failed", detail=str(e)) from e
    except Exception as e:
        await db.rollback()
        record_webhook(event_type, "error")
        logger.exception("webhook_processing_failed", event_id=event_id, event_type=event_type)
        raise WebhookProcessingError("Webhook processing failed", detail=str(e)) from e

    record_webhook(event_type, result)
    logger.info("webhook_processed", event_id=event_id, event_type=event_type, result=result)

    if result == "applied" and broadcaster is not None:
        await broadcaster.publish(
            "payment.updated",
            {
                "entity_type": target.entity_type.value,
                "entity_id": target.entity_id,
                "status": outcome.value,
            },
        )
    return _ack("Webhook processed")
