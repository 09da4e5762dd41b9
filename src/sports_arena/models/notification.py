"""Persisted user notifications."""

from sqlalchemy import Column, String, DateTime, Boolean, Text, ForeignKey, Index, JSON
from .base import Base, new_id, utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notification_user_read", "user_id", "is_read"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("id", new_id())
        kwargs.setdefault("is_read", False)
        kwargs.setdefault("data", {})
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "data": self.data or {},
            "read": self.is_read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.type}')>"
