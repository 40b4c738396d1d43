"""
Checkout creation and payment lookups.

Two flows reach the provider:
  - hosted checkout session: the client is redirected to Stripe
  - payment intent: the client confirms with Stripe.js

Both flows carry the same metadata (user_id, entity_type, entity_id). The
reconciler reads it back from whichever object an event is about, so the
metadata is built once here and attached to the session, to the intent the
session creates, and to direct intents.

A pending Payment row is written before the provider call and committed only
after it succeeds, so a provider failure leaves nothing behind.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.config import get_settings
from arena.core.exceptions import ForbiddenError, NotFoundError, TransactionError, ValidationError
from arena.core.logging import get_logger
from arena.core.metrics import record_checkout
from arena.core.security import CurrentUser
from arena.domain.enums import EntityType, PaymentStatus
from arena.domain.purchaser import Purchaser
from arena.infrastructure.stripe_gateway import StripeGateway, stripe_field, to_minor_units
from arena.models.payment import Payment
from arena.schemas.payment import CheckoutRequest, CheckoutSessionResponse, ConfirmPaymentResponse, PaymentIntentResponse
from arena.services import webhook_service
from arena.services.entity_handlers import PaymentTarget, handler_for

logger = get_logger(__name__)
settings = get_settings()


def build_metadata(purchaser: Purchaser, entity_type: EntityType, entity_id: int) -> dict[str, str]:
    return {
        "user_id": str(purchaser.user_id) if purchaser.user_id is not None else "guest",
        "entity_type": entity_type.value,
        "entity_id": str(entity_id),
    }


def platform_fee(amount: Decimal) -> Decimal:
    return (Decimal(amount) * settings.PLATFORM_FEE_RATE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _split_params(request: CheckoutRequest) -> dict:
    """Connected-account routing: platform keeps the fee, the rest is transferred."""
    if not request.connected_account_id:
        return {}
    return {
        "application_fee_amount": to_minor_units(platform_fee(request.amount)),
        "transfer_data": {"destination": request.connected_account_id},
    }


async def _prepare(db: AsyncSession, purchaser: Purchaser, request: CheckoutRequest):
    if request.amount < settings.MIN_PAYMENT_AMOUNT:
        raise ValidationError(f"Amount must be at least {settings.MIN_PAYMENT_AMOUNT}")
    return await handler_for(request.entity_type).validate(db, purchaser, request.entity_id, request.amount)


async def _supersede_pending(db: AsyncSession, purchaser: Purchaser, request: CheckoutRequest) -> None:
    """Keep at most one pending payment per (user, entity)."""
    target = PaymentTarget(purchaser.user_id, request.entity_type, request.entity_id)
    await db.execute(
        update(Payment)
        .where(
            *webhook_service.target_criteria(target),
            Payment.status == PaymentStatus.PENDING.value,
        )
        .values(status=PaymentStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )


async def _stage_payment(db: AsyncSession, purchaser: Purchaser, request: CheckoutRequest, entity) -> Payment:
    await _supersede_pending(db, purchaser, request)
    payment = Payment(
        user_id=purchaser.user_id,
        entity_type=request.entity_type.value,
        entity_id=request.entity_id,
        amount=request.amount,
        currency=settings.STRIPE_CURRENCY,
        status=PaymentStatus.PENDING.value,
        connected_account_id=request.connected_account_id,
    )
    db.add(payment)
    await db.flush()
    if entity is not None and hasattr(entity, "payment_id"):
        entity.payment_id = payment.id
    return payment


async def _commit(db: AsyncSession, payment: Payment) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("payment_commit_failed", entity_type=payment.entity_type, error=str(e))
        raise TransactionError("Failed to record payment", detail=str(e))


async def create_checkout_session(
    db: AsyncSession,
    gateway: StripeGateway,
    purchaser: Purchaser,
    request: CheckoutRequest,
) -> CheckoutSessionResponse:
    entity = await _prepare(db, purchaser, request)
    metadata = build_metadata(purchaser, request.entity_type, request.entity_id)
    payment = await _stage_payment(db, purchaser, request, entity)

    params = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": gateway.currency,
                    "product_data": {"name": f"{request.entity_type.value.replace('_', ' ').title()} #{request.entity_id}"},
                    "unit_amount": to_minor_units(request.amount),
                },
                "quantity": 1,
            }
        ],
        "metadata": metadata,
        "payment_intent_data": {"metadata": metadata, **_split_params(request)},
        "success_url": f"{settings.FRONTEND_URL}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{settings.FRONTEND_URL}/payment/cancel",
    }
    if purchaser.is_guest:
        params["customer_email"] = purchaser.email

    try:
        session = await gateway.create_checkout_session(**params)
    except Exception:
        await db.rollback()
        raise

    payment.checkout_session_id = session.id
    await _commit(db, payment)

    record_checkout("checkout_session", request.entity_type.value)
    logger.info(
        "checkout_session_created",
        payment_id=payment.id,
        session_id=session.id,
        entity_type=request.entity_type.value,
        entity_id=request.entity_id,
        connected=bool(request.connected_account_id),
    )
    return CheckoutSessionResponse(session_id=session.id, url=session.url)


async def create_payment_intent(
    db: AsyncSession,
    gateway: StripeGateway,
    purchaser: Purchaser,
    request: CheckoutRequest,
) -> PaymentIntentResponse:
    entity = await _prepare(db, purchaser, request)
    metadata = build_metadata(purchaser, request.entity_type, request.entity_id)
    payment = await _stage_payment(db, purchaser, request, entity)

    params = {
        "amount": to_minor_units(request.amount),
        "currency": gateway.currency,
        "metadata": metadata,
        "automatic_payment_methods": {"enabled": True},
        **_split_params(request),
    }
    if purchaser.is_guest:
        params["receipt_email"] = purchaser.email

    try:
        intent = await gateway.create_payment_intent(**params)
    except Exception:
        await db.rollback()
        raise

    payment.payment_intent_id = intent.id
    await _commit(db, payment)

    record_checkout("payment_intent", request.entity_type.value)
    logger.info(
        "payment_intent_created",
        payment_id=payment.id,
        payment_intent_id=intent.id,
        entity_type=request.entity_type.value,
        entity_id=request.entity_id,
        connected=bool(request.connected_account_id),
    )
    return PaymentIntentResponse(client_secret=intent.client_secret, payment_intent_id=intent.id)


async def confirm_payment(
    db: AsyncSession,
    gateway: StripeGateway,
    session_id: str,
    user: Optional[CurrentUser],
) -> ConfirmPaymentResponse:
    """
    Client-side confirmation after the redirect back from checkout. Applies
    the same transition as the webhook, so whichever arrives second is a no-op.
    """
    session = await gateway.retrieve_checkout_session(session_id)
    target = PaymentTarget.from_metadata(stripe_field(session, "metadata"))
    if target is None:
        raise ValidationError("Checkout session is not linked to a payment")
    if target.user_id is not None and (user is None or (user.id != target.user_id and not user.is_admin)):
        raise ForbiddenError("This payment belongs to another user")

    payment_status = stripe_field(session, "payment_status", "unpaid")
    applied = False
    if payment_status == "paid":
        applied = await webhook_service.apply_outcome(
            db,
            target,
            PaymentStatus.SUCCEEDED,
            Payment.checkout_session_id == session_id,
            clear_cart=True,
            payment_intent_id=webhook_service.session_intent_id(session),
        )
        await db.commit()

    logger.info("payment_confirmed", session_id=session_id, payment_status=payment_status, applied=applied)
    return ConfirmPaymentResponse(session_id=session_id, payment_status=payment_status, applied=applied)


async def get_payment(db: AsyncSession, payment_id: int, user: CurrentUser) -> Payment:
    payment = await db.get(Payment, payment_id)
    if payment is None or (not user.is_admin and payment.user_id != user.id):
        raise NotFoundError("Payment not found")
    return payment


async def list_user_payments(db: AsyncSession, user_id: int) -> list[Payment]:
    result = await db.execute(
        select(Payment).where(Payment.user_id == user_id).order_by(Payment.created_at.desc(), Payment.id.desc())
    )
    return list(result.scalars().all())
