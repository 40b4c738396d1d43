from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class GiftCardResponse(BaseModel):
    id: int
    code: str
    amount: Decimal
    category: str
    status: str

    model_config = {"from_attributes": True}


class UserGiftCardResponse(BaseModel):
    id: int
    gift_card_id: int
    code: str
    remaining_balance: Decimal
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RedeemRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    amount: Decimal = Field(..., gt=0)
