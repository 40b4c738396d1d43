from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String

from arena.db.base import Base, TimestampMixin
from arena.domain.enums import ItemType, PaymentOption, values


class CartItem(Base, TimestampMixin):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    item_type = Column(String(20), nullable=False, default=ItemType.PRODUCT.value)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    payment_option = Column(String(20), nullable=False, default=PaymentOption.ONLINE.value)

    __table_args__ = (
        CheckConstraint(f"item_type IN ({values(ItemType)})", name="check_cart_item_type"),
        CheckConstraint("quantity > 0", name="check_cart_quantity_positive"),
    )
