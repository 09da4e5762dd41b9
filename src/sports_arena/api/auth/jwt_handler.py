from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import JWTError, jwt
from sports_arena.config import config


class InvalidTokenError(Exception):
    pass


class JWTHandler:
    """Issues and checks the HS256 bearer tokens carrying the caller's id and role."""

    algorithm = "HS256"

    def __init__(self, secret_key: Optional[str] = None, expire_minutes: Optional[int] = None):
        self.secret_key = secret_key or config.jwt_secret_key
        # FAIL FAST - no token is ever signed with a missing secret
        if not self.secret_key:
            raise ValueError("JWT_SECRET_KEY must be set before serving requests")
        self.access_token_expire_minutes = expire_minutes or config.access_token_expire_minutes

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds."""
        return self.access_token_expire_minutes * 60

    def create_access_token(self, claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        lifetime = expires_delta or timedelta(minutes=self.access_token_expire_minutes)
        payload = {**claims, "exp": datetime.now(timezone.utc) + lifetime}
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def create_user_token(self, user) -> str:
        return self.create_access_token({"user_id": user.id, "email": user.email, "role": user.role})

    def verify_token(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}")
