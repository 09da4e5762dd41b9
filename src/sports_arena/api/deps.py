"""Shared FastAPI dependencies: the authenticated actor and the notifier."""

import logging
from typing import Optional
import redis.asyncio as redis
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sports_arena.api.auth.jwt_handler import JWTHandler, InvalidTokenError
from sports_arena.config import config
from sports_arena.db import get_database
from sports_arena.identity.actor import Actor
from sports_arena.models.enums import UserRole
from sports_arena.monitoring import PerformanceMonitor
from sports_arena.notifications import NotificationManager

logger = logging.getLogger(__name__)

security = HTTPBearer()
jwt_handler = JWTHandler()

_redis_client: Optional[redis.Redis] = None


async def get_current_actor(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Actor:
    """Dependency to get the authenticated caller"""
    try:
        return Actor.from_token(jwt_handler.verify_token(credentials.credentials))
    except (InvalidTokenError, KeyError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return actor


def get_redis_client() -> Optional[redis.Redis]:
    global _redis_client
    if _redis_client is None and config.redis_url:
        _redis_client = redis.from_url(config.redis_url, decode_responses=True)
        logger.info("Redis client created for notification fan-out")
    return _redis_client


async def close_redis_client():
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


async def get_notifier() -> NotificationManager:
    return NotificationManager(await get_database(), redis_client=get_redis_client())


def get_monitor(request: Request) -> Optional[PerformanceMonitor]:
    return getattr(request.app.state, "monitor", None)


async def get_atomic_writes() -> bool:
    """Whether multi-step writes may share one transaction on the configured database."""
    return (await get_database()).supports_transactions
