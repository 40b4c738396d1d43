"""
Order endpoints. Creation is transactional; see order_service.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.security import CurrentUser, get_current_user, get_optional_user, require_admin
from arena.db.session import get_db
from arena.infrastructure.realtime import Broadcaster, get_broadcaster
from arena.schemas.common import ApiResponse, resolve_purchaser
from arena.schemas.order import OrderCreate, OrderFromCart, OrderItemResponse, OrderResponse, OrderStatusUpdate
from arena.services import order_service

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/", response_model=ApiResponse[OrderResponse], status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """
    Create an order with its shipping address and items in one transaction.
    Any invalid item rolls back the whole order.
    """
    purchaser = resolve_purchaser(user, order_data.guest)
    order = await order_service.create_order(db, purchaser, order_data, broadcaster)
    return ApiResponse(message="Order created successfully", data=OrderResponse.model_validate(order))


@router.post("/from-cart", response_model=ApiResponse[OrderResponse], status_code=status.HTTP_201_CREATED)
async def create_order_from_cart(
    order_data: OrderFromCart,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    order = await order_service.create_order_from_cart(db, user, order_data, broadcaster)
    return ApiResponse(message="Order created successfully", data=OrderResponse.model_validate(order))


@router.get("/", response_model=ApiResponse[list[OrderResponse]])
async def list_user_orders(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders = await order_service.get_user_orders(db, user.id)
    return ApiResponse(data=[OrderResponse.model_validate(o) for o in orders])


@router.get("/all", response_model=ApiResponse[list[OrderResponse]])
async def list_all_orders(
    order_status: Optional[str] = Query(default=None, alias="status"),
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders = await order_service.list_all_orders(db, order_status)
    return ApiResponse(data=[OrderResponse.model_validate(o) for o in orders])


@router.get("/{order_id}", response_model=ApiResponse[OrderResponse])
async def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order(db, order_id, user)
    return ApiResponse(data=OrderResponse.model_validate(order))


@router.patch("/{order_id}/status", response_model=ApiResponse[OrderResponse])
async def update_order_status(
    order_id: int,
    patch: OrderStatusUpdate,
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    order = await order_service.update_order_status(
        db, order_id, patch.model_dump(exclude_unset=True, exclude_none=True), broadcaster
    )
    return ApiResponse(message="Order updated successfully", data=OrderResponse.model_validate(order))


@router.delete("/{order_id}", response_model=ApiResponse)
async def delete_order(
    order_id: int,
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await order_service.delete_order(db, order_id)
    return ApiResponse(message="Order deleted successfully")


@router.get("/{order_id}/items", response_model=ApiResponse[list[OrderItemResponse]])
async def list_order_items(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items = await order_service.get_order_items(db, order_id, user)
    return ApiResponse(data=[OrderItemResponse.model_validate(i) for i in items])


@router.delete("/{order_id}/items/{item_id}", response_model=ApiResponse[OrderResponse])
async def delete_order_item(
    order_id: int,
    item_id: int,
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.delete_order_item(db, order_id, item_id)
    return ApiResponse(message="Order item deleted", data=OrderResponse.model_validate(order))
