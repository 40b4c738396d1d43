"""
VR session (bookable experience) with a player capacity.

`version` is an optimistic-lock counter: every booking write for the session
bumps it with a conditional UPDATE, so a capacity check and the insert that
follows it cannot interleave with another booking for the same session.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, Numeric, String

from arena.db.base import Base, TimestampMixin


class VRSession(Base, TimestampMixin):
    __tablename__ = "vr_sessions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    max_players = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("max_players > 0", name="check_max_players_positive"),
    )

    def __repr__(self) -> str:
        return f"<VRSession(id={self.id}, name={self.name}, max_players={self.max_players})>"
