from passlib.context import CryptContext

from sports_arena.config import config


class PasswordHasher:
    """One-way bcrypt hashing of user passwords."""

    def __init__(self, rounds: int = None):
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds or config.bcrypt_rounds,
        )

    def hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        return self.pwd_context.verify(plain_password, hashed_password)
