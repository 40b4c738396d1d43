"""
Catalog rows referenced by order items, cart items and registrations.
Catalog management lives elsewhere; this service only reads them.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String

from arena.db.base import Base, TimestampMixin


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class Tournament(Base, TimestampMixin):
    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    entry_fee = Column(Numeric(10, 2), nullable=False, default=0)
    start_date = Column(DateTime(timezone=True), nullable=True)
    max_participants = Column(Integer, nullable=True)


class VenueEvent(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    ticket_price = Column(Numeric(10, 2), nullable=False, default=0)
    event_date = Column(DateTime(timezone=True), nullable=True)
