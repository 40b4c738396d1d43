"""
Gift card catalog entries and the balances users own.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from arena.db.base import Base, TimestampMixin
from arena.domain.enums import GiftCardStatus, values


class GiftCard(Base, TimestampMixin):
    __tablename__ = "gift_cards"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), nullable=False, unique=True)
    amount = Column(Numeric(10, 2), nullable=False)
    category = Column(String(100), nullable=False, default="Gift Cards")
    status = Column(String(20), nullable=False, default=GiftCardStatus.ACTIVE.value)

    __table_args__ = (
        CheckConstraint(f"status IN ({values(GiftCardStatus)})", name="check_gift_card_status"),
        CheckConstraint("amount > 0", name="check_gift_card_amount_positive"),
    )


class UserGiftCard(Base, TimestampMixin):
    __tablename__ = "user_gift_cards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    gift_card_id = Column(Integer, ForeignKey("gift_cards.id"), nullable=False)
    code = Column(String(32), nullable=False, unique=True)
    remaining_balance = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=GiftCardStatus.ACTIVE.value)

    gift_card = relationship("GiftCard", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "gift_card_id", name="uq_user_gift_card"),
        CheckConstraint("remaining_balance >= 0", name="check_remaining_balance_non_negative"),
    )
