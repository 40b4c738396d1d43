"""
Shopping cart: the source of cart-derived orders.
"""

from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.exceptions import NotFoundError
from arena.core.logging import get_logger
from arena.domain.enums import ItemType
from arena.models.cart import CartItem
from arena.models.catalog import Product, Tournament, VenueEvent
from arena.schemas.cart import CartItemCreate
from arena.services.patch import build_update

logger = get_logger(__name__)

# item_type -> (catalog model, reference column, price attribute)
CATALOG = {
    ItemType.PRODUCT: (Product, "product_id", "price"),
    ItemType.TOURNAMENT: (Tournament, "tournament_id", "entry_fee"),
    ItemType.EVENT: (VenueEvent, "event_id", "ticket_price"),
}


async def catalog_entry(db: AsyncSession, item_type: ItemType, ref_id: int):
    model, _, _ = CATALOG[item_type]
    return await db.get(model, ref_id)


def catalog_price(item_type: ItemType, entry) -> Decimal:
    _, _, price_attr = CATALOG[item_type]
    return Decimal(str(getattr(entry, price_attr)))


async def add_item(db: AsyncSession, user_id: int, data: CartItemCreate) -> CartItem:
    _, ref_field, _ = CATALOG[data.item_type]
    ref_id = getattr(data, ref_field)
    if await catalog_entry(db, data.item_type, ref_id) is None:
        raise NotFoundError(f"{data.item_type.value.capitalize()} {ref_id} not found")

    item = CartItem(
        user_id=user_id,
        item_type=data.item_type.value,
        quantity=data.quantity,
        payment_option=data.payment_option.value,
        **{ref_field: ref_id},
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)
    logger.info("cart_item_added", user_id=user_id, item_type=data.item_type.value, ref_id=ref_id)
    return item


async def list_items(db: AsyncSession, user_id: int) -> list[CartItem]:
    result = await db.execute(select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id))
    return list(result.scalars().all())


async def update_quantity(db: AsyncSession, user_id: int, item_id: int, quantity: int) -> CartItem:
    result = await db.execute(
        build_update(CartItem, {"quantity": quantity}, CartItem.id == item_id, CartItem.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Cart item not found")
    await db.commit()
    item = await db.get(CartItem, item_id, populate_existing=True)
    logger.info("cart_item_updated", user_id=user_id, item_id=item_id, quantity=quantity)
    return item


async def remove_item(db: AsyncSession, user_id: int, item_id: int) -> None:
    result = await db.execute(
        delete(CartItem).where(CartItem.id == item_id, CartItem.user_id == user_id)
    )
    if result.rowcount == 0:
        raise NotFoundError("Cart item not found")
    await db.commit()


async def clear_cart(db: AsyncSession, user_id: int) -> int:
    """Delete the user's cart in the caller's transaction. Returns rows removed."""
    result = await db.execute(delete(CartItem).where(CartItem.user_id == user_id))
    logger.info("cart_cleared", user_id=user_id, items=result.rowcount)
    return result.rowcount
