"""
Booking of a VR session time slot by a user or a guest.

Key design decisions:
- At most one pending/paid booking per (user, session) is enforced by the
  booking writer under the session's optimistic lock, not by a constraint,
  because cancelled bookings must not block a new one
- session_status is stored for reporting only; reads always derive it from
  start/end time
- payment_id points at the Payment created for online checkout
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)

from arena.db.base import Base, TimestampMixin
from arena.domain.enums import BookingPaymentMethod, BookingPaymentStatus, SessionStatus, values


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    session_id = Column(Integer, ForeignKey("vr_sessions.id"), nullable=False, index=True)
    machine_type = Column(String(100), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    payment_status = Column(String(20), nullable=False, default=BookingPaymentStatus.PENDING.value)
    session_status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=BookingPaymentMethod.ONLINE.value)
    session_count = Column(Integer, nullable=False, default=1)
    player_count = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)

    # Guest bookings
    is_guest = Column(Boolean, nullable=False, default=False)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True, index=True)
    guest_phone = Column(String(50), nullable=True)
    booking_reference = Column(String(64), nullable=True, unique=True)

    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)

    __table_args__ = (
        CheckConstraint(f"payment_status IN ({values(BookingPaymentStatus)})", name="check_booking_payment_status"),
        CheckConstraint(f"session_status IN ({values(SessionStatus)})", name="check_booking_session_status"),
        CheckConstraint("end_time > start_time", name="check_booking_time_window"),
        CheckConstraint("player_count > 0", name="check_booking_player_count_positive"),
        Index("ix_bookings_session_payment_status", "session_id", "payment_status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, session={self.session_id}, payment_status={self.payment_status})>"
