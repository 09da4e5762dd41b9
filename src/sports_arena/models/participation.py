"""
Participation of a user in a competition.

At most one non-rejected participation may exist per (competition, user).
The partial unique index below is what actually guarantees it under
concurrent requests.
"""

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index, JSON, text
from sqlalchemy.orm import relationship
from .base import Base, new_id, utcnow
from .enums import ParticipationStatus

ACTIVE_PARTICIPATION_CLAUSE = text("status != 'rejected'")


class Participation(Base):
    __tablename__ = "participations"

    id = Column(String(36), primary_key=True, default=new_id)
    competition_id = Column(String(36), ForeignKey("competitions.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=ParticipationStatus.PENDING.value)
    team_data = Column(JSON)
    message = Column(Text)
    response_message = Column(Text)

    reviewed_by = Column(String(36))
    reviewed_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    competition = relationship("Competition", back_populates="participations")

    __table_args__ = (
        Index(
            "uq_participations_active",
            "competition_id",
            "user_id",
            unique=True,
            postgresql_where=ACTIVE_PARTICIPATION_CLAUSE,
            sqlite_where=ACTIVE_PARTICIPATION_CLAUSE,
        ),
        Index("idx_participation_competition_status", "competition_id", "status"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("id", new_id())
        kwargs.setdefault("status", ParticipationStatus.PENDING.value)

        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)

        super().__init__(**kwargs)

    @property
    def is_active(self) -> bool:
        return self.status != ParticipationStatus.REJECTED.value

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "competition_id": self.competition_id,
            "user_id": self.user_id,
            "status": self.status,
            "team_data": self.team_data,
            "message": self.message,
            "response_message": self.response_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return (
            f"<Participation(id={self.id}, competition_id={self.competition_id}, "
            f"user_id={self.user_id}, status='{self.status}')>"
        )
