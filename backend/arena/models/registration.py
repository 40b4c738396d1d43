"""
Tournament and event registrations (user or guest).
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String

from arena.db.base import Base, TimestampMixin
from arena.domain.enums import PaymentOption, RegistrationPaymentStatus, RegistrationStatus


class RegistrationMixin:
    status = Column(String(20), nullable=False, default=RegistrationStatus.REGISTERED.value)
    payment_status = Column(String(20), nullable=False, default=RegistrationPaymentStatus.PENDING.value)
    payment_option = Column(String(20), nullable=False, default=PaymentOption.ONLINE.value)

    is_guest = Column(Boolean, nullable=False, default=False)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)
    registration_reference = Column(String(64), nullable=True, unique=True)


class TournamentRegistration(Base, RegistrationMixin, TimestampMixin):
    __tablename__ = "tournament_registrations"

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)

    @property
    def target_id(self) -> int:
        return self.tournament_id


class EventRegistration(Base, RegistrationMixin, TimestampMixin):
    __tablename__ = "event_registrations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)

    @property
    def target_id(self) -> int:
        return self.event_id
