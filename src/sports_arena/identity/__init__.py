from .actor import Actor
from .guard import IdentityGuard
from .passwords import PasswordHasher

__all__ = [
    "Actor",
    "IdentityGuard",
    "PasswordHasher"
]
