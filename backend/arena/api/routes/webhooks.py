"""
Stripe webhook receiver.

The raw request body is passed through untouched; signature verification
is computed over the exact bytes Stripe sent.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from arena.db.session import get_db
from arena.infrastructure.realtime import Broadcaster, get_broadcaster
from arena.infrastructure.stripe_gateway import StripeGateway, get_payment_gateway
from arena.services import webhook_service

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    payload = await request.body()
    return await webhook_service.handle_event(db, gateway, payload, stripe_signature, broadcaster)
