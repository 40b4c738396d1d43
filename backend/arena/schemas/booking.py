"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from arena.domain.enums import BookingPaymentMethod, BookingPaymentStatus, SessionStatus
from arena.domain.session_status import as_utc, derive_session_status
from arena.schemas.common import GuestContactIn


class BookingCreate(BaseModel):
    session_id: int
    machine_type: str = Field(..., min_length=1, max_length=100)
    start_time: datetime
    end_time: datetime
    payment_method: BookingPaymentMethod = BookingPaymentMethod.ONLINE
    session_count: int = Field(default=1, gt=0)
    player_count: int = Field(default=1, gt=0)
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    guest: Optional[GuestContactIn] = None

    @model_validator(mode="after")
    def check_time_window(self):
        if as_utc(self.end_time) <= as_utc(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class BookingUpdate(BaseModel):
    """Partial update; payment_status is honoured for admins only."""

    machine_type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    payment_method: Optional[BookingPaymentMethod] = None
    session_count: Optional[int] = Field(default=None, gt=0)
    player_count: Optional[int] = Field(default=None, gt=0)
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    payment_status: Optional[BookingPaymentStatus] = None


class BookingResponse(BaseModel):
    id: int
    user_id: Optional[int]
    session_id: int
    machine_type: str
    start_time: datetime
    end_time: datetime
    payment_status: str
    session_status: SessionStatus
    payment_method: str
    session_count: int
    player_count: int
    total_amount: Decimal
    is_guest: bool
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    booking_reference: Optional[str] = None
    payment_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_booking(cls, booking, now: Optional[datetime] = None) -> "BookingResponse":
        """Build the response with session_status derived from the clock."""
        response = cls.model_validate(booking)
        response.session_status = derive_session_status(
            now or datetime.now(timezone.utc), booking.start_time, booking.end_time
        )
        return response


class BookedSlot(BaseModel):
    booking_id: int
    start_time: datetime
    end_time: datetime
    player_count: int


class AvailabilityResponse(BaseModel):
    session_id: int
    day: date
    capacity: int
    booked: int
    available: int
    slots: list[BookedSlot]
