"""
Gift card balances.

Purchases arrive through the payment webhook (credit); spending goes through
redeem, which is a single conditional UPDATE so two concurrent redemptions
can never take the balance below zero.
"""

import secrets
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.exceptions import NotFoundError, ValidationError
from arena.core.logging import get_logger
from arena.domain.enums import GiftCardStatus
from arena.models.gift_card import GiftCard, UserGiftCard

logger = get_logger(__name__)


def generate_card_code() -> str:
    return secrets.token_hex(8).upper()


async def list_catalog(db: AsyncSession) -> list[GiftCard]:
    result = await db.execute(
        select(GiftCard).where(GiftCard.status == GiftCardStatus.ACTIVE.value).order_by(GiftCard.amount)
    )
    return list(result.scalars().all())


async def list_user_cards(db: AsyncSession, user_id: int) -> list[UserGiftCard]:
    result = await db.execute(
        select(UserGiftCard)
        .where(UserGiftCard.user_id == user_id)
        .order_by(UserGiftCard.created_at.desc(), UserGiftCard.id.desc())
    )
    return list(result.scalars().all())


async def get_user_card(db: AsyncSession, user_id: int, code: str) -> UserGiftCard:
    result = await db.execute(
        select(UserGiftCard)
        .where(UserGiftCard.code == code, UserGiftCard.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    card = result.scalar_one_or_none()
    if card is None:
        raise NotFoundError("Gift card not found")
    return card


async def credit(db: AsyncSession, user_id: int, gift_card_id: int, amount: Decimal) -> None:
    """
    Add a purchased amount to the user's card, creating it on first purchase.
    Runs inside the caller's transaction.
    """
    result = await db.execute(
        update(UserGiftCard)
        .where(UserGiftCard.user_id == user_id, UserGiftCard.gift_card_id == gift_card_id)
        .values(
            remaining_balance=UserGiftCard.remaining_balance + amount,
            status=GiftCardStatus.ACTIVE.value,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("gift_card_topped_up", user_id=user_id, gift_card_id=gift_card_id, amount=str(amount))
        return

    db.add(
        UserGiftCard(
            user_id=user_id,
            gift_card_id=gift_card_id,
            code=generate_card_code(),
            remaining_balance=amount,
            status=GiftCardStatus.ACTIVE.value,
        )
    )
    await db.flush()
    logger.info("gift_card_issued", user_id=user_id, gift_card_id=gift_card_id, amount=str(amount))


async def redeem(db: AsyncSession, user_id: int, code: str, amount: Decimal) -> UserGiftCard:
    result = await db.execute(
        update(UserGiftCard)
        .where(
            UserGiftCard.code == code,
            UserGiftCard.user_id == user_id,
            UserGiftCard.remaining_balance >= amount,
        )
        .values(remaining_balance=UserGiftCard.remaining_balance - amount)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await db.rollback()
        # Distinguish an unknown card from a short balance.
        await get_user_card(db, user_id, code)
        logger.warning("gift_card_redeem_rejected", user_id=user_id, code=code, amount=str(amount))
        raise ValidationError("Insufficient balance")

    card = await get_user_card(db, user_id, code)
    if card.remaining_balance <= 0:
        card.status = GiftCardStatus.REDEEMED.value
        await db.execute(
            update(GiftCard)
            .where(GiftCard.id == card.gift_card_id)
            .values(status=GiftCardStatus.REDEEMED.value)
            .execution_options(synchronize_session=False)
        )

    await db.commit()
    await db.refresh(card)
    logger.info(
        "gift_card_redeemed",
        user_id=user_id,
        code=code,
        amount=str(amount),
        remaining=str(card.remaining_balance),
    )
    return card
