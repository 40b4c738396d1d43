"""
Pydantic schemas for checkout creation and payment lookups.

Response field names follow the payment provider's client SDK conventions
(sessionId, clientSecret) so the frontend can pass them straight through.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from arena.domain.enums import EntityType
from arena.schemas.common import GuestContactIn


class CheckoutRequest(BaseModel):
    entity_type: EntityType
    entity_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    connected_account_id: Optional[str] = None
    guest: Optional[GuestContactIn] = None


class CheckoutSessionResponse(BaseModel):
    session_id: str = Field(..., alias="sessionId")
    url: Optional[str] = None

    model_config = {"populate_by_name": True}


class PaymentIntentResponse(BaseModel):
    client_secret: str = Field(..., alias="clientSecret")
    payment_intent_id: str = Field(..., alias="paymentIntentId")

    model_config = {"populate_by_name": True}


class ConfirmPaymentRequest(BaseModel):
    session_id: str = Field(..., min_length=1)


class ConfirmPaymentResponse(BaseModel):
    session_id: str
    payment_status: str
    applied: bool


class PaymentResponse(BaseModel):
    id: int
    user_id: Optional[int]
    entity_type: str
    entity_id: int
    payment_intent_id: Optional[str] = None
    checkout_session_id: Optional[str] = None
    amount: Decimal
    currency: str
    status: str
    connected_account_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
