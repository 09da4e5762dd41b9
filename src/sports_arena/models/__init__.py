"""
Sports Arena Database Models

This package contains all SQLAlchemy models for the sports arena:
- User: Accounts with unique email and phone number
- Competition: Competitions and their status transitions
- Participation: Registrations of users in competitions
- Team/Player: Rosters managed by team captains
- Notification: Messages delivered to users
"""

from .base import Base
from .enums import (
    UserRole,
    CompetitionCategory,
    CompetitionStatus,
    ParticipationStatus,
    NotificationType,
)
from .user import User
from .competition import Competition, StatusTransition
from .participation import Participation
from .team import Team, Player
from .notification import Notification

__all__ = [
    "Base",
    "UserRole",
    "CompetitionCategory",
    "CompetitionStatus",
    "ParticipationStatus",
    "NotificationType",
    "User",
    "Competition",
    "StatusTransition",
    "Participation",
    "Team",
    "Player",
    "Notification"
]
