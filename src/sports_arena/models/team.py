"""
Teams and players.

A team belongs to one competition and has exactly one captain; only the
captain may change the roster.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base, new_id, utcnow


class Team(Base):
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=new_id)
    competition_id = Column(String(36), ForeignKey("competitions.id"), nullable=False, index=True)
    captain_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text)
    logo_url = Column(String(512))
    colors = Column(String(64))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    competition = relationship("Competition", back_populates="teams")
    players = relationship("Player", back_populates="team", cascade="all, delete-orphan",
                           order_by="Player.name")

    __table_args__ = (
        UniqueConstraint("competition_id", "captain_id", name="uq_teams_competition_captain"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("id", new_id())

        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)

        super().__init__(**kwargs)

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}', captain_id={self.captain_id})>"


class Player(Base):
    __tablename__ = "players"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    age = Column(Integer)
    position = Column(String(50))
    number = Column(Integer)
    photo_url = Column(String(512))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    team = relationship("Team", back_populates="players")

    def __init__(self, **kwargs):
        kwargs.setdefault("id", new_id())

        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)

        super().__init__(**kwargs)

    def __repr__(self):
        return f"<Player(id={self.id}, name='{self.name}', team_id={self.team_id})>"
