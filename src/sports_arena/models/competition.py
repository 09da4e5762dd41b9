"""
Competition models for sports competitions.

A competition moves through DRAFT -> OPEN -> CLOSED -> IN_PROGRESS ->
COMPLETED, or to CANCELLED. Every status change is recorded as a
StatusTransition row.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from .base import Base, new_id, utcnow, as_utc
from .enums import CompetitionCategory, CompetitionStatus

SYSTEM_ACTOR = "system"


class Competition(Base):
    """
    Sports competition organized by a single organizer.

    The organizer reference is set at creation and never changes.
    """
    __tablename__ = "competitions"

    # Primary fields
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    join_code = Column(String(16), nullable=False, unique=True, index=True)
    organizer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Configuration
    category = Column(String(20), nullable=False, default=CompetitionCategory.OTHER.value)
    venue = Column(String(255))
    address = Column(String(255))
    max_participants = Column(Integer)
    is_public = Column(Boolean, default=True, nullable=False)
    rules = Column(JSON)  # offside, substitution, yellow card, match duration, custom rules

    # Scheduling
    registration_deadline = Column(DateTime(timezone=True))
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True))

    # Competition Status
    status = Column(String(20), nullable=False, default=CompetitionStatus.DRAFT.value, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    participations = relationship("Participation", back_populates="competition", cascade="all, delete-orphan")
    teams = relationship("Team", back_populates="competition", cascade="all, delete-orphan")
    transitions = relationship("StatusTransition", back_populates="competition", cascade="all, delete-orphan")

    def __init__(self, **kwargs):
        kwargs.setdefault("id", new_id())
        kwargs.setdefault("status", CompetitionStatus.DRAFT.value)
        kwargs.setdefault("category", CompetitionCategory.OTHER.value)
        kwargs.setdefault("is_public", True)
        kwargs.setdefault("rules", {})

        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)

        super().__init__(**kwargs)

    def is_registration_open(self, now) -> bool:
        """Registrations are accepted while OPEN and before the deadline."""
        if self.status != CompetitionStatus.OPEN.value:
            return False
        deadline = as_utc(self.registration_deadline)
        return deadline is None or now < deadline

    def __repr__(self):
        return f"<Competition(id={self.id}, name='{self.name}', status='{self.status}')>"


class StatusTransition(Base):
    """Audit record of one competition status change."""
    __tablename__ = "status_transitions"

    id = Column(String(36), primary_key=True, default=new_id)
    competition_id = Column(String(36), ForeignKey("competitions.id"), nullable=False, index=True)
    old_status = Column(String(20), nullable=False)
    new_status = Column(String(20), nullable=False)
    reason = Column(String(255))
    triggered_by = Column(String(36), nullable=False, default=SYSTEM_ACTOR)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    competition = relationship("Competition", back_populates="transitions")

    __table_args__ = (
        Index("idx_transition_competition_time", "competition_id", "timestamp"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("id", new_id())
        kwargs.setdefault("triggered_by", SYSTEM_ACTOR)
        kwargs.setdefault("timestamp", utcnow())
        super().__init__(**kwargs)

    def __repr__(self):
        return (
            f"<StatusTransition(competition_id={self.competition_id}, "
            f"{self.old_status}->{self.new_status})>"
        )
