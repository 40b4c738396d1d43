"""
Payment attempts and the webhook delivery ledger.

A Payment binds one provider object (checkout session or payment intent) to
one domain entity through (user_id, entity_type, entity_id). It is created
pending and moved to a terminal status by the webhook reconciler.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String

from arena.db.base import Base, TimestampMixin
from arena.domain.enums import EntityType, PaymentStatus, values


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Integer, nullable=False)
    payment_intent_id = Column(String(255), nullable=True, unique=True)
    checkout_session_id = Column(String(255), nullable=True, unique=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="usd")
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    connected_account_id = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint(f"entity_type IN ({values(EntityType)})", name="check_payment_entity_type"),
        CheckConstraint(f"status IN ({values(PaymentStatus)})", name="check_payment_status"),
        CheckConstraint("amount > 0", name="check_payment_amount_positive"),
        # Lookup used by the webhook reconciler
        Index("ix_payments_entity_status", "entity_type", "entity_id", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, {self.entity_type}:{self.entity_id}, status={self.status})>"


class ProcessedWebhookEvent(Base, TimestampMixin):
    """One row per provider event id that has been applied."""

    __tablename__ = "processed_webhook_events"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(255), nullable=False, unique=True)
    event_type = Column(String(100), nullable=False)
    result = Column(String(20), nullable=False)
