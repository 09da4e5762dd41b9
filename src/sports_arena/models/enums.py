"""Enumerations stored as plain strings in the database."""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    ORGANIZER = "ORGANIZER"
    PARTICIPANT = "PARTICIPANT"


class CompetitionCategory(str, Enum):
    FOOTBALL = "FOOTBALL"
    BASKETBALL = "BASKETBALL"
    VOLLEYBALL = "VOLLEYBALL"
    HANDBALL = "HANDBALL"
    TENNIS = "TENNIS"
    MARACANA = "MARACANA"
    OTHER = "OTHER"


class CompetitionStatus(str, Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ParticipationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    PARTICIPATION_ACCEPTED = "PARTICIPATION_ACCEPTED"
    PARTICIPATION_REJECTED = "PARTICIPATION_REJECTED"
    NEW_PARTICIPATION_REQUEST = "NEW_PARTICIPATION_REQUEST"
    COMPETITION_UPDATE = "COMPETITION_UPDATE"
    COMPETITION_START = "COMPETITION_START"
    SYSTEM_NOTIFICATION = "SYSTEM_NOTIFICATION"
    WELCOME = "WELCOME"
