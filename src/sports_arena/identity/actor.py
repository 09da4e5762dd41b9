"""The authenticated caller, as supplied by the auth layer."""

from dataclasses import dataclass
from typing import Optional

from sports_arena.models.enums import UserRole


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: UserRole
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_organizer(self) -> bool:
        return self.role == UserRole.ORGANIZER

    @classmethod
    def from_token(cls, payload: dict) -> "Actor":
        return cls(
            user_id=payload["user_id"],
            role=UserRole(payload["role"]),
            email=payload.get("email"),
        )
