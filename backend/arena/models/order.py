"""
Orders, their line items and shipping addresses.

An order, its address and its items are written in a single transaction by
the order service. Each item references exactly one of product, tournament
or event, selected by item_type.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from arena.db.base import Base, TimestampMixin
from arena.domain.enums import ItemType, OrderPaymentMethod, OrderPaymentStatus, OrderStatus, values


class ShippingAddress(Base, TimestampMixin):
    __tablename__ = "shipping_addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    full_name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    zip_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False)


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=OrderPaymentMethod.COD.value)
    payment_status = Column(String(20), nullable=False, default=OrderPaymentStatus.PENDING.value)
    shipping_address_id = Column(Integer, ForeignKey("shipping_addresses.id"), nullable=False)

    is_guest = Column(Boolean, nullable=False, default=False)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)
    order_reference = Column(String(64), nullable=True, unique=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    shipping_address = relationship("ShippingAddress", lazy="selectin")

    __table_args__ = (
        CheckConstraint(f"status IN ({values(OrderStatus)})", name="check_order_status"),
        CheckConstraint(f"payment_method IN ({values(OrderPaymentMethod)})", name="check_order_payment_method"),
        CheckConstraint(f"payment_status IN ({values(OrderPaymentStatus)})", name="check_order_payment_status"),
        CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
        CheckConstraint("shipping_cost >= 0", name="check_order_shipping_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, user={self.user_id}, total={self.total_amount}, status={self.status})>"


class OrderItem(Base, TimestampMixin):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type = Column(String(20), nullable=False, default=ItemType.PRODUCT.value)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint(f"item_type IN ({values(ItemType)})", name="check_order_item_type"),
        CheckConstraint("quantity > 0", name="check_order_item_quantity_positive"),
        CheckConstraint("price >= 0", name="check_order_item_price_non_negative"),
    )
