"""
Capacity decisions for VR session bookings.

A session admits a new booking while the number of bookings holding a seat
(payment_status pending or paid) is below max_players, and only if the
purchaser does not already hold one. The decision carries the session's
version so the booking writer can detect a concurrent writer between the
check and its insert.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.exceptions import NotFoundError
from arena.domain.enums import BookingPaymentStatus
from arena.domain.purchaser import Purchaser
from arena.models.booking import Booking
from arena.models.vr_session import VRSession

SEAT_HOLDING_STATUSES = (BookingPaymentStatus.PENDING.value, BookingPaymentStatus.PAID.value)


@dataclass(frozen=True)
class CapacityDecision:
    allowed: bool
    reason: Optional[str]
    booked: int
    capacity: int
    version: int


def owned_by(purchaser: Purchaser):
    """WHERE clause matching bookings written for this purchaser."""
    if purchaser.is_guest:
        return (Booking.user_id.is_(None), Booking.guest_email == purchaser.email)
    return (Booking.user_id == purchaser.user_id,)


async def count_active_bookings(db: AsyncSession, session_id: int) -> int:
    result = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.session_id == session_id,
            Booking.payment_status.in_(SEAT_HOLDING_STATUSES),
        )
    )
    return result.scalar_one()


async def check_capacity(db: AsyncSession, session_id: int, purchaser: Purchaser) -> CapacityDecision:
    # Column select so a retry after rollback sees the current version
    # instead of an identity-mapped object.
    row = (
        await db.execute(
            select(VRSession.max_players, VRSession.version).where(VRSession.id == session_id)
        )
    ).one_or_none()
    if row is None:
        raise NotFoundError(f"VR session {session_id} not found")
    capacity, version = row

    duplicate = (
        await db.execute(
            select(func.count(Booking.id)).where(
                Booking.session_id == session_id,
                Booking.payment_status.in_(SEAT_HOLDING_STATUSES),
                *owned_by(purchaser),
            )
        )
    ).scalar_one()

    booked = await count_active_bookings(db, session_id)

    if duplicate:
        return CapacityDecision(False, "You already have a booking for this session", booked, capacity, version)
    if booked >= capacity:
        return CapacityDecision(
            False,
            f"Session is full. Maximum {capacity} players allowed",
            booked,
            capacity,
            version,
        )
    return CapacityDecision(True, None, booked, capacity, version)
