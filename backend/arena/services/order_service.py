"""
Order service: transactional order creation and order administration.

TRANSACTION BOUNDARY
====================

  address -> order (pending/pending) -> items

are written in one transaction. Each item is validated just before it is
written (reference present for its item_type, quantity > 0, price >= 0, the
referenced product/tournament/event exists). The first invalid item rolls
back the whole unit, so a failed attempt leaves no address, order or item
rows behind. Database errors roll back the same way and surface as 500.

Totals are verified server-side before anything is written:
    total_amount == sum(quantity * price) + shipping_cost  (within tolerance)

Notifications and the real-time broadcast run after the commit and are
best-effort.
"""

from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from arena.core.config import get_settings
from arena.core.exceptions import ArenaError, NotFoundError, TransactionError, ValidationError
from arena.core.logging import get_logger
from arena.core.metrics import order_rollbacks, orders_created
from arena.core.security import CurrentUser
from arena.domain.enums import ItemType, OrderPaymentMethod, OrderPaymentStatus, OrderStatus
from arena.domain.purchaser import Purchaser, generate_reference
from arena.infrastructure.realtime import Broadcaster
from arena.models.order import Order, OrderItem, ShippingAddress
from arena.schemas.order import OrderCreate, OrderFromCart, OrderItemIn, ShippingAddressIn
from arena.services import cart_service, notification_service
from arena.services.cart_service import CATALOG
from arena.services.notification_service import NotificationMessage
from arena.services.patch import build_update

logger = get_logger(__name__)
settings = get_settings()

ORDER_STATUS_FIELDS = {"status", "payment_status"}


def expected_total(items: Iterable[OrderItemIn], shipping_cost: Decimal) -> Decimal:
    return sum((Decimal(item.quantity) * item.price for item in items), Decimal("0")) + shipping_cost


def verify_total(items: list[OrderItemIn], shipping_cost: Decimal, total_amount: Decimal) -> None:
    expected = expected_total(items, shipping_cost)
    if abs(expected - total_amount) > settings.ORDER_TOTAL_TOLERANCE:
        raise ValidationError(
            f"Order total {total_amount} does not match items plus shipping ({expected})"
        )


async def _validate_item(db: AsyncSession, item: OrderItemIn, position: int) -> int:
    model, ref_field, _ = CATALOG[item.item_type]
    ref_id = getattr(item, ref_field)
    label = f"Item {position + 1}"

    if ref_id is None:
        raise ValidationError(f"{label}: {ref_field} is required for item_type '{item.item_type.value}'")
    if item.quantity <= 0:
        raise ValidationError(f"{label}: quantity must be greater than 0")
    if item.price < 0:
        raise ValidationError(f"{label}: price cannot be negative")
    if await db.get(model, ref_id) is None:
        raise ValidationError(f"{label}: {item.item_type.value} {ref_id} does not exist")
    return ref_id


async def _write_order(
    db: AsyncSession,
    purchaser: Purchaser,
    items: list[OrderItemIn],
    address: ShippingAddressIn,
    shipping_cost: Decimal,
    total_amount: Decimal,
    payment_method: OrderPaymentMethod,
    clear_cart_for: Optional[int] = None,
) -> int:
    try:
        shipping_address = ShippingAddress(user_id=purchaser.user_id, **address.model_dump())
        db.add(shipping_address)
        await db.flush()

        order = Order(
            total_amount=total_amount,
            shipping_cost=shipping_cost,
            status=OrderStatus.PENDING.value,
            payment_method=payment_method.value,
            payment_status=OrderPaymentStatus.PENDING.value,
            shipping_address_id=shipping_address.id,
            order_reference=generate_reference("ORD") if purchaser.is_guest else None,
            **purchaser.columns(),
        )
        db.add(order)
        await db.flush()

        for position, item in enumerate(items):
            ref_id = await _validate_item(db, item, position)
            _, ref_field, _ = CATALOG[item.item_type]
            db.add(
                OrderItem(
                    order_id=order.id,
                    item_type=item.item_type.value,
                    quantity=item.quantity,
                    price=item.price,
                    **{ref_field: ref_id},
                )
            )
        await db.flush()

        if clear_cart_for is not None:
            await cart_service.clear_cart(db, clear_cart_for)

        await db.commit()
        return order.id
    except ArenaError as e:
        await db.rollback()
        order_rollbacks.labels(reason="validation").inc()
        logger.warning("order_rolled_back", reason=e.message, user_id=purchaser.user_id)
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        order_rollbacks.labels(reason="transaction").inc()
        logger.error("order_transaction_failed", user_id=purchaser.user_id, error=str(e))
        raise TransactionError("Failed to create order", detail=str(e))


async def load_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.shipping_address))
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _after_create(db: AsyncSession, order: Order, broadcaster: Optional[Broadcaster]) -> None:
    orders_created.labels(payment_method=order.payment_method).inc()
    await notification_service.dispatch(
        db,
        NotificationMessage(
            type="order_created",
            subject="Order placed",
            message=f"Order #{order.id} for {order.total_amount} has been placed.",
            link=f"/orders/{order.id}",
        ),
        user_id=order.user_id,
    )
    if broadcaster is not None:
        await broadcaster.publish(
            "order.created",
            {"order_id": order.id, "total_amount": str(order.total_amount), "payment_method": order.payment_method},
        )


async def create_order(
    db: AsyncSession,
    purchaser: Purchaser,
    data: OrderCreate,
    broadcaster: Optional[Broadcaster] = None,
) -> Order:
    verify_total(data.items, data.shipping_cost, data.total_amount)

    order_id = await _write_order(
        db,
        purchaser,
        data.items,
        data.shipping_address,
        data.shipping_cost,
        data.total_amount,
        data.payment_method,
    )
    logger.info(
        "order_created",
        order_id=order_id,
        user_id=purchaser.user_id,
        guest=purchaser.is_guest,
        items=len(data.items),
        total=str(data.total_amount),
    )

    await _after_create(db, await load_order(db, order_id), broadcaster)
    return await load_order(db, order_id)


async def create_order_from_cart(
    db: AsyncSession,
    user: CurrentUser,
    data: OrderFromCart,
    broadcaster: Optional[Broadcaster] = None,
) -> Order:
    """
    Prices come from the catalog, never from the client. Cash-on-delivery
    orders clear the cart in the order transaction; online orders keep it
    until the payment succeeds.
    """
    cart = await cart_service.list_items(db, user.id)
    if not cart:
        raise ValidationError("Cart is empty")

    items: list[OrderItemIn] = []
    for cart_item in cart:
        item_type = ItemType(cart_item.item_type)
        _, ref_field, _ = CATALOG[item_type]
        ref_id = getattr(cart_item, ref_field)
        entry = await cart_service.catalog_entry(db, item_type, ref_id) if ref_id is not None else None
        if entry is None:
            raise ValidationError(f"{item_type.value.capitalize()} {ref_id} in your cart no longer exists")
        items.append(
            OrderItemIn(
                item_type=item_type,
                quantity=cart_item.quantity,
                price=cart_service.catalog_price(item_type, entry),
                **{ref_field: ref_id},
            )
        )

    total = expected_total(items, data.shipping_cost)
    clears_now = data.payment_method == OrderPaymentMethod.COD

    order_id = await _write_order(
        db,
        Purchaser.for_user(user.id),
        items,
        data.shipping_address,
        data.shipping_cost,
        total,
        data.payment_method,
        clear_cart_for=user.id if clears_now else None,
    )
    logger.info(
        "order_created_from_cart",
        order_id=order_id,
        user_id=user.id,
        items=len(items),
        total=str(total),
        cart_cleared=clears_now,
    )

    await _after_create(db, await load_order(db, order_id), broadcaster)
    return await load_order(db, order_id)


async def get_order(db: AsyncSession, order_id: int, user: CurrentUser) -> Order:
    order = await load_order(db, order_id)
    if order is None or (not user.is_admin and order.user_id != user.id):
        raise NotFoundError("Order not found")
    return order


async def get_user_orders(db: AsyncSession, user_id: int) -> list[Order]:
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.shipping_address))
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return list(result.scalars().all())


async def list_all_orders(db: AsyncSession, status: Optional[str] = None) -> list[Order]:
    query = select(Order).options(selectinload(Order.items), selectinload(Order.shipping_address))
    if status:
        query = query.where(Order.status == status)
    result = await db.execute(query.order_by(Order.created_at.desc(), Order.id.desc()))
    return list(result.scalars().all())


async def update_order_status(
    db: AsyncSession,
    order_id: int,
    patch: dict,
    broadcaster: Optional[Broadcaster] = None,
) -> Order:
    order = await load_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    await db.execute(
        build_update(Order, patch, Order.id == order_id, allowed=ORDER_STATUS_FIELDS)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    order = await load_order(db, order_id)
    logger.info("order_status_updated", order_id=order_id, status=order.status, payment_status=order.payment_status)

    if order.user_id is not None:
        await notification_service.dispatch(
            db,
            NotificationMessage(
                type="order_status_updated",
                subject="Order updated",
                message=f"Order #{order.id} is now {order.status}.",
                link=f"/orders/{order.id}",
            ),
            user_id=order.user_id,
            notify_admins=False,
        )
    if broadcaster is not None:
        await broadcaster.publish(
            "order.updated",
            {"order_id": order.id, "status": order.status, "payment_status": order.payment_status},
        )
    return await load_order(db, order_id)


async def delete_order(db: AsyncSession, order_id: int) -> None:
    order = await load_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    await db.delete(order)
    await db.commit()
    logger.info("order_deleted", order_id=order_id)


async def get_order_items(db: AsyncSession, order_id: int, user: CurrentUser) -> list[OrderItem]:
    order = await get_order(db, order_id, user)
    return sorted(order.items, key=lambda item: item.id)


async def delete_order_item(db: AsyncSession, order_id: int, item_id: int) -> Order:
    """
    Admin removal of one line from an unpaid order. The order total is
    recomputed from the remaining lines in the same transaction.
    """
    order = await load_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    item = next((i for i in order.items if i.id == item_id), None)
    if item is None:
        raise NotFoundError("Order item not found")
    if order.payment_status == OrderPaymentStatus.PAID.value:
        raise ValidationError("Cannot change a paid order")
    remaining = [i for i in order.items if i.id != item_id]
    if not remaining:
        raise ValidationError("Cannot remove the last item; delete the order instead")

    try:
        await db.delete(item)
        order.total_amount = expected_total(remaining, Decimal(order.shipping_cost))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("order_item_delete_failed", order_id=order_id, item_id=item_id, error=str(e))
        raise TransactionError("Failed to remove order item", detail=str(e))

    logger.info("order_item_deleted", order_id=order_id, item_id=item_id, total_amount=str(order.total_amount))
    return await load_order(db, order_id)
