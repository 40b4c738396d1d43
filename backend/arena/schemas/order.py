"""
Pydantic schemas for orders.

Item quantities and prices are range-checked by the order service inside the
order transaction, so a bad line item rolls back the address and order rows
written before it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from arena.domain.enums import ItemType, OrderPaymentMethod, OrderPaymentStatus, OrderStatus
from arena.schemas.common import GuestContactIn


class ShippingAddressIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class OrderItemIn(BaseModel):
    item_type: ItemType = ItemType.PRODUCT
    product_id: Optional[int] = None
    tournament_id: Optional[int] = None
    event_id: Optional[int] = None
    quantity: int
    price: Decimal


class OrderCreate(BaseModel):
    items: list[OrderItemIn] = Field(..., min_length=1)
    shipping_address: ShippingAddressIn
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0)
    payment_method: OrderPaymentMethod = OrderPaymentMethod.COD
    guest: Optional[GuestContactIn] = None


class OrderFromCart(BaseModel):
    shipping_address: ShippingAddressIn
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: OrderPaymentMethod = OrderPaymentMethod.COD


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[OrderPaymentStatus] = None


class ShippingAddressResponse(BaseModel):
    id: int
    full_name: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str

    model_config = {"from_attributes": True}


class OrderItemResponse(BaseModel):
    id: int
    item_type: str
    product_id: Optional[int] = None
    tournament_id: Optional[int] = None
    event_id: Optional[int] = None
    quantity: int
    price: Decimal

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: int
    user_id: Optional[int]
    total_amount: Decimal
    shipping_cost: Decimal
    status: str
    payment_method: str
    payment_status: str
    is_guest: bool
    guest_email: Optional[str] = None
    order_reference: Optional[str] = None
    shipping_address: ShippingAddressResponse
    items: list[OrderItemResponse]
    created_at: datetime

    model_config = {"from_attributes": True}
