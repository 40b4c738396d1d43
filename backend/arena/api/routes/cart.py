from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.security import CurrentUser, get_current_user
from arena.db.session import get_db
from arena.schemas.cart import CartItemCreate, CartItemResponse, CartItemUpdate
from arena.schemas.common import ApiResponse
from arena.services import cart_service

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.post("/", response_model=ApiResponse[CartItemResponse], status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item: CartItemCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cart_item = await cart_service.add_item(db, user.id, item)
    return ApiResponse(message="Added to cart", data=CartItemResponse.model_validate(cart_item))


@router.get("/", response_model=ApiResponse[list[CartItemResponse]])
async def list_cart(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items = await cart_service.list_items(db, user.id)
    return ApiResponse(data=[CartItemResponse.model_validate(i) for i in items])


@router.patch("/{item_id}", response_model=ApiResponse[CartItemResponse])
async def update_cart_item(
    item_id: int,
    patch: CartItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cart_item = await cart_service.update_quantity(db, user.id, item_id, patch.quantity)
    return ApiResponse(message="Cart item quantity updated", data=CartItemResponse.model_validate(cart_item))


@router.delete("/{item_id}", response_model=ApiResponse)
async def remove_from_cart(
    item_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await cart_service.remove_item(db, user.id, item_id)
    return ApiResponse(message="Removed from cart")
