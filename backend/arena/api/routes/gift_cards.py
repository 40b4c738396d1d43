"""
Gift card endpoints. Purchases go through /payments with entity_type=gift_card.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.security import CurrentUser, get_current_user
from arena.db.session import get_db
from arena.schemas.common import ApiResponse
from arena.schemas.gift_card import GiftCardResponse, RedeemRequest, UserGiftCardResponse
from arena.services import gift_card_service

router = APIRouter(prefix="/gift-cards", tags=["Gift Cards"])


@router.get("/", response_model=ApiResponse[list[GiftCardResponse]])
async def list_gift_cards(db: AsyncSession = Depends(get_db)):
    cards = await gift_card_service.list_catalog(db)
    return ApiResponse(data=[GiftCardResponse.model_validate(c) for c in cards])


@router.get("/mine", response_model=ApiResponse[list[UserGiftCardResponse]])
async def list_my_gift_cards(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cards = await gift_card_service.list_user_cards(db, user.id)
    return ApiResponse(data=[UserGiftCardResponse.model_validate(c) for c in cards])


@router.get("/mine/{code}", response_model=ApiResponse[UserGiftCardResponse])
async def get_my_gift_card(
    code: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    card = await gift_card_service.get_user_card(db, user.id, code)
    return ApiResponse(data=UserGiftCardResponse.model_validate(card))


@router.post("/redeem", response_model=ApiResponse[UserGiftCardResponse])
async def redeem_gift_card(
    request: RedeemRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    card = await gift_card_service.redeem(db, user.id, request.code, request.amount)
    return ApiResponse(message="Gift card redeemed", data=UserGiftCardResponse.model_validate(card))
