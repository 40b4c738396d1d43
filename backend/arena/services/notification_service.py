"""
Notification dispatch.

Notifications are written after the business transaction has committed, in
their own short transaction. A failure is logged and rolled back; it never
undoes or fails the booking/order/payment that triggered it.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.logging import get_logger
from arena.models.notification import Notification
from arena.models.user import User

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotificationMessage:
    type: str
    subject: str
    message: str
    link: Optional[str] = None
    delivery_method: str = "push"


async def admin_ids(db: AsyncSession) -> list[int]:
    result = await db.execute(select(User.id).where(User.role == "admin", User.is_active.is_(True)))
    return list(result.scalars().all())


async def dispatch(
    db: AsyncSession,
    message: NotificationMessage,
    user_id: Optional[int] = None,
    notify_admins: bool = True,
) -> int:
    """
    Persist `message` for the user (if any) and every active admin.
    Returns the number of notifications written.
    """
    try:
        recipients: list[int] = [user_id] if user_id is not None else []
        if notify_admins:
            recipients.extend(uid for uid in await admin_ids(db) if uid != user_id)

        db.add_all(_build(message, recipients))
        await db.commit()
        logger.info("notifications_sent", notification_type=message.type, recipients=len(recipients))
        return len(recipients)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning("notification_dispatch_failed", notification_type=message.type, error=str(e))
        return 0


def _build(message: NotificationMessage, recipients: Iterable[int]) -> list[Notification]:
    return [
        Notification(
            user_id=uid,
            type=message.type,
            subject=message.subject,
            message=message.message,
            link=message.link,
            delivery_method=message.delivery_method,
        )
        for uid in recipients
    ]


async def list_for_user(db: AsyncSession, user_id: int, unread_only: bool = False) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(query.order_by(Notification.created_at.desc(), Notification.id.desc()))
    return list(result.scalars().all())
