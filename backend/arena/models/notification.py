from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from arena.db.base import Base, TimestampMixin


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    delivery_method = Column(String(20), nullable=False, default="push")
    link = Column(String(500), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
