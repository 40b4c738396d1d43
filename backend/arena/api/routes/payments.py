"""
Checkout endpoints: hosted checkout sessions and payment intents.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.security import CurrentUser, get_current_user, get_optional_user
from arena.db.session import get_db
from arena.infrastructure.stripe_gateway import StripeGateway, get_payment_gateway
from arena.schemas.common import ApiResponse, resolve_purchaser
from arena.schemas.payment import (
    CheckoutRequest,
    CheckoutSessionResponse,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    PaymentIntentResponse,
    PaymentResponse,
)
from arena.services import payment_service

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/checkout-session",
    response_model=ApiResponse[CheckoutSessionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_checkout_session(
    request: CheckoutRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    purchaser = resolve_purchaser(user, request.guest)
    session = await payment_service.create_checkout_session(db, gateway, purchaser, request)
    return ApiResponse(message="Checkout session created", data=session)


@router.post(
    "/payment-intent",
    response_model=ApiResponse[PaymentIntentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_payment_intent(
    request: CheckoutRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    purchaser = resolve_purchaser(user, request.guest)
    intent = await payment_service.create_payment_intent(db, gateway, purchaser, request)
    return ApiResponse(message="Payment intent created", data=intent)


@router.post("/confirm", response_model=ApiResponse[ConfirmPaymentResponse])
async def confirm_payment(
    request: ConfirmPaymentRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    result = await payment_service.confirm_payment(db, gateway, request.session_id, user)
    return ApiResponse(message="Payment status retrieved", data=result)


@router.get("/", response_model=ApiResponse[list[PaymentResponse]])
async def list_user_payments(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payments = await payment_service.list_user_payments(db, user.id)
    return ApiResponse(data=[PaymentResponse.model_validate(p) for p in payments])


@router.get("/{payment_id}", response_model=ApiResponse[PaymentResponse])
async def get_payment(
    payment_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payment = await payment_service.get_payment(db, payment_id, user)
    return ApiResponse(data=PaymentResponse.model_validate(payment))
