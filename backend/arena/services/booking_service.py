"""
Booking service with concurrency-safe capacity enforcement.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two purchasers try to take the last player slot of a session at the same
  time. Both count N-1 active bookings, both insert. Result: overbooking.

Solution:
  Every booking write for a session goes through the session's `version`
  column.

  1. check_capacity reads (max_players, version) and counts active bookings
  2. UPDATE vr_sessions SET version = version + 1
     WHERE id = :session_id AND version = :seen_version
  3. If rows_affected == 0 another booking for the same session committed
     in between: roll back, re-run the check, retry
  4. Otherwise insert the booking and commit. The version bump and the
     insert commit together, so any writer that read the old version fails
     step 2.

  Retries are bounded by BOOKING_MAX_RETRY_ATTEMPTS; after that the caller
  gets a conflict and can try again.

Session status (pending/started/completed) is never read from the stored
column; responses derive it from start/end time (see BookingResponse).
"""

import time
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.config import get_settings
from arena.core.exceptions import ConflictError, ForbiddenError, NotFoundError, TransactionError, ValidationError
from arena.core.logging import get_logger
from arena.core.metrics import booking_latency, record_booking_attempt
from arena.core.security import CurrentUser
from arena.domain.enums import BookingPaymentStatus
from arena.domain.purchaser import Purchaser, generate_reference
from arena.domain.session_status import as_utc
from arena.infrastructure.realtime import Broadcaster
from arena.models.booking import Booking
from arena.models.vr_session import VRSession
from arena.schemas.booking import BookingCreate
from arena.services import cache_service, notification_service
from arena.services.capacity_service import SEAT_HOLDING_STATUSES, check_capacity, count_active_bookings
from arena.services.notification_service import NotificationMessage
from arena.services.patch import build_update

logger = get_logger(__name__)
settings = get_settings()

USER_UPDATABLE_FIELDS = {
    "machine_type",
    "start_time",
    "end_time",
    "payment_method",
    "session_count",
    "player_count",
    "total_amount",
}
ADMIN_UPDATABLE_FIELDS = USER_UPDATABLE_FIELDS | {"payment_status"}


async def create_booking(
    db: AsyncSession,
    purchaser: Purchaser,
    data: BookingCreate,
    broadcaster: Optional[Broadcaster] = None,
) -> Booking:
    """
    Book a VR session slot with optimistic locking on the session.
    Retries up to BOOKING_MAX_RETRY_ATTEMPTS on version conflicts.
    """
    started = time.perf_counter()
    max_attempts = settings.BOOKING_MAX_RETRY_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        decision = await check_capacity(db, data.session_id, purchaser)
        if not decision.allowed:
            record_booking_attempt("conflict")
            logger.warning(
                "booking_rejected",
                session_id=data.session_id,
                reason=decision.reason,
                booked=decision.booked,
                capacity=decision.capacity,
            )
            raise ConflictError(decision.reason)

        update_result = await db.execute(
            update(VRSession)
            .where(VRSession.id == data.session_id, VRSession.version == decision.version)
            .values(version=VRSession.version + 1)
        )

        if update_result.rowcount == 0:
            record_booking_attempt("retry")
            logger.info(
                "booking_retry",
                session_id=data.session_id,
                attempt=attempt,
                reason="version_conflict",
            )
            await db.rollback()
            if attempt == max_attempts:
                raise ConflictError("Booking failed due to high demand. Please try again.")
            continue

        booking = Booking(
            session_id=data.session_id,
            machine_type=data.machine_type,
            start_time=data.start_time,
            end_time=data.end_time,
            payment_method=data.payment_method.value,
            session_count=data.session_count,
            player_count=data.player_count,
            total_amount=data.total_amount,
            payment_status=BookingPaymentStatus.PENDING.value,
            booking_reference=generate_reference("GUEST") if purchaser.is_guest else None,
            **purchaser.columns(),
        )
        db.add(booking)
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            record_booking_attempt("error")
            logger.error("booking_commit_failed", session_id=data.session_id, error=str(e))
            raise TransactionError("Failed to create booking", detail=str(e))
        await db.refresh(booking)

        record_booking_attempt("success")
        booking_latency.observe(time.perf_counter() - started)
        logger.info(
            "booking_created",
            booking_id=booking.id,
            user_id=purchaser.user_id,
            guest=purchaser.is_guest,
            session_id=data.session_id,
            attempt=attempt,
        )

        await _after_write(
            db,
            booking,
            "booking.created",
            broadcaster,
            NotificationMessage(
                type="booking_created",
                subject="Booking received",
                message=f"Booking #{booking.id} for {booking.machine_type} has been created.",
                link=f"/bookings/{booking.id}",
            ),
        )
        return booking

    raise ConflictError("Booking failed due to high demand. Please try again.")


async def _after_write(
    db: AsyncSession,
    booking: Booking,
    event: str,
    broadcaster: Optional[Broadcaster],
    message: Optional[NotificationMessage] = None,
) -> None:
    """Post-commit side effects; none of them can fail the booking write."""
    if message is not None:
        await notification_service.dispatch(db, message, user_id=booking.user_id)
    if broadcaster is not None:
        await broadcaster.publish(
            event,
            {
                "booking_id": booking.id,
                "session_id": booking.session_id,
                "payment_status": booking.payment_status,
            },
        )
    await cache_service.invalidate_availability_cache()


async def _get_booking_for(db: AsyncSession, booking_id: int, user: CurrentUser) -> Booking:
    booking = await db.get(Booking, booking_id)
    if booking is None or (not user.is_admin and booking.user_id != user.id):
        raise NotFoundError("Booking not found")
    return booking


async def get_booking(db: AsyncSession, booking_id: int, user: CurrentUser) -> Booking:
    return await _get_booking_for(db, booking_id, user)


async def get_booking_by_reference(db: AsyncSession, reference: str, email: str) -> Booking:
    """Guest lookup: the reference alone is not enough, the email must match."""
    result = await db.execute(
        select(Booking).where(Booking.booking_reference == reference, Booking.guest_email == email)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def list_all_bookings(db: AsyncSession, payment_status: Optional[str] = None) -> list[Booking]:
    query = select(Booking)
    if payment_status:
        query = query.where(Booking.payment_status == payment_status)
    result = await db.execute(query.order_by(Booking.start_time.desc(), Booking.id.desc()))
    return list(result.scalars().all())


async def update_booking(
    db: AsyncSession,
    booking_id: int,
    user: CurrentUser,
    patch: dict,
    broadcaster: Optional[Broadcaster] = None,
) -> Booking:
    booking = await _get_booking_for(db, booking_id, user)

    start = patch.get("start_time", booking.start_time)
    end = patch.get("end_time", booking.end_time)
    if as_utc(end) <= as_utc(start):
        raise ValidationError("end_time must be after start_time")

    allowed = ADMIN_UPDATABLE_FIELDS if user.is_admin else USER_UPDATABLE_FIELDS
    if "payment_status" in patch and not user.is_admin:
        raise ForbiddenError("Only admins can change the payment status")

    await db.execute(
        build_update(Booking, patch, Booking.id == booking_id, allowed=allowed)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(VRSession).where(VRSession.id == booking.session_id).values(version=VRSession.version + 1)
    )
    await db.commit()
    await db.refresh(booking)

    logger.info("booking_updated", booking_id=booking_id, fields=sorted(patch), by_admin=user.is_admin)
    await _after_write(db, booking, "booking.updated", broadcaster)
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user: CurrentUser,
    broadcaster: Optional[Broadcaster] = None,
) -> Booking:
    """Cancel a booking; its player slot is released immediately."""
    booking = await _get_booking_for(db, booking_id, user)

    if booking.payment_status == BookingPaymentStatus.CANCELLED.value:
        raise ValidationError("Booking is already cancelled")

    booking.payment_status = BookingPaymentStatus.CANCELLED.value
    await db.execute(
        update(VRSession).where(VRSession.id == booking.session_id).values(version=VRSession.version + 1)
    )
    await db.commit()
    await db.refresh(booking)

    logger.info("booking_cancelled", booking_id=booking.id, user_id=user.id, session_id=booking.session_id)
    await _after_write(
        db,
        booking,
        "booking.cancelled",
        broadcaster,
        NotificationMessage(
            type="booking_cancelled",
            subject="Booking cancelled",
            message=f"Booking #{booking.id} has been cancelled.",
            link=f"/bookings/{booking.id}",
        ),
    )
    return booking


async def delete_booking(
    db: AsyncSession,
    booking_id: int,
    broadcaster: Optional[Broadcaster] = None,
) -> None:
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")

    await db.execute(delete(Booking).where(Booking.id == booking_id))
    await db.commit()
    logger.info("booking_deleted", booking_id=booking_id)

    if broadcaster is not None:
        await broadcaster.publish("booking.deleted", {"booking_id": booking_id})
    await cache_service.invalidate_availability_cache()


async def get_availability(db: AsyncSession, session_id: int, day: date) -> dict:
    """
    Session capacity plus the seat-holding bookings that start on `day` (UTC).
    Cached in Redis; every booking write invalidates it.
    """
    cached = await cache_service.get_cached_availability(session_id, day.isoformat())
    if cached is not None:
        return cached

    session = await db.get(VRSession, session_id)
    if session is None:
        raise NotFoundError(f"VR session {session_id} not found")

    day_start = datetime.combine(day, dt_time.min, tzinfo=timezone.utc)
    result = await db.execute(
        select(Booking)
        .where(
            Booking.session_id == session_id,
            Booking.payment_status.in_(SEAT_HOLDING_STATUSES),
            Booking.start_time >= day_start,
            Booking.start_time < day_start + timedelta(days=1),
        )
        .order_by(Booking.start_time)
    )
    bookings = list(result.scalars().all())
    booked = await count_active_bookings(db, session_id)

    data = {
        "session_id": session_id,
        "day": day.isoformat(),
        "capacity": session.max_players,
        "booked": booked,
        "available": max(session.max_players - booked, 0),
        "slots": [
            {
                "booking_id": b.id,
                "start_time": as_utc(b.start_time).isoformat(),
                "end_time": as_utc(b.end_time).isoformat(),
                "player_count": b.player_count,
            }
            for b in bookings
        ],
    }
    await cache_service.set_cached_availability(session_id, day.isoformat(), data)
    return data
