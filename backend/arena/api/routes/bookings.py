"""
Booking endpoints with concurrency-safe capacity enforcement.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.security import CurrentUser, get_current_user, get_optional_user, require_admin
from arena.db.session import get_db
from arena.infrastructure.realtime import Broadcaster, get_broadcaster
from arena.schemas.booking import AvailabilityResponse, BookingCreate, BookingResponse, BookingUpdate
from arena.schemas.common import ApiResponse, resolve_purchaser
from arena.services import booking_service

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=ApiResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """
    Book a VR session slot, as the signed-in user or as a guest.

    Capacity is enforced under an optimistic lock on the session; concurrent
    bookings for the same session are retried before a conflict is returned.
    """
    purchaser = resolve_purchaser(user, booking_data.guest)
    booking = await booking_service.create_booking(db, purchaser, booking_data, broadcaster)
    return ApiResponse(message="Booking created successfully", data=BookingResponse.from_booking(booking))


@router.get("/", response_model=ApiResponse[list[BookingResponse]])
async def list_user_bookings(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bookings = await booking_service.get_user_bookings(db, user.id)
    return ApiResponse(data=[BookingResponse.from_booking(b) for b in bookings])


@router.get("/all", response_model=ApiResponse[list[BookingResponse]])
async def list_all_bookings(
    payment_status: Optional[str] = Query(default=None),
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    bookings = await booking_service.list_all_bookings(db, payment_status)
    return ApiResponse(data=[BookingResponse.from_booking(b) for b in bookings])


@router.get("/availability/{session_id}", response_model=ApiResponse[AvailabilityResponse])
async def get_availability(
    session_id: int,
    day: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    data = await booking_service.get_availability(db, session_id, day)
    return ApiResponse(data=AvailabilityResponse.model_validate(data))


@router.get("/reference/{reference}", response_model=ApiResponse[BookingResponse])
async def get_guest_booking(
    reference: str,
    email: EmailStr = Query(...),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking_by_reference(db, reference, email)
    return ApiResponse(data=BookingResponse.from_booking(booking))


@router.get("/{booking_id}", response_model=ApiResponse[BookingResponse])
async def get_booking(
    booking_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking(db, booking_id, user)
    return ApiResponse(data=BookingResponse.from_booking(booking))


@router.patch("/{booking_id}", response_model=ApiResponse[BookingResponse])
async def update_booking(
    booking_id: int,
    patch: BookingUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    booking = await booking_service.update_booking(
        db, booking_id, user, patch.model_dump(exclude_unset=True, exclude_none=True), broadcaster
    )
    return ApiResponse(message="Booking updated successfully", data=BookingResponse.from_booking(booking))


@router.post("/{booking_id}/cancel", response_model=ApiResponse[BookingResponse])
async def cancel_booking(
    booking_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Cancel a booking and release its player slot."""
    booking = await booking_service.cancel_booking(db, booking_id, user, broadcaster)
    return ApiResponse(message="Booking cancelled successfully", data=BookingResponse.from_booking(booking))


@router.delete("/{booking_id}", response_model=ApiResponse)
async def delete_booking(
    booking_id: int,
    _: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    await booking_service.delete_booking(db, booking_id, broadcaster)
    return ApiResponse(message="Booking deleted successfully")
