from .registry import ParticipationRegistry
from .roster import RosterManager

__all__ = [
    "ParticipationRegistry",
    "RosterManager"
]
