from typing import Any, Dict
from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sports_arena.api.auth.models import UserCreate, UserLogin, UserResponse, Token
from sports_arena.api.deps import get_current_actor, get_notifier, jwt_handler
from sports_arena.db import get_db_session
from sports_arena.identity import Actor, IdentityGuard
from sports_arena.models.enums import NotificationType
from sports_arena.notifications import NotificationManager

router = APIRouter()


def _token_response(user) -> Token:
    return Token(
        access_token=jwt_handler.create_user_token(user),
        token_type="bearer",
        expires_in=jwt_handler.expires_in,
        user=UserResponse.model_validate(user),
    )


@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db_session),
    notifier: NotificationManager = Depends(get_notifier)
):
    """Register a new organizer or participant and log them in"""
    user = await IdentityGuard(db).register_user(user_data.model_dump(exclude_none=True))

    await notifier.send_user_notification(
        user.id,
        NotificationType.WELCOME.value,
        title="Welcome to Sports Arena",
        message=f"Welcome {user.first_name}! Your account is ready.",
    )
    return _token_response(user)


@router.post("/login", response_model=Token)
async def login(user_data: UserLogin, db: AsyncSession = Depends(get_db_session)):
    """Authenticate user and return JWT token"""
    user = await IdentityGuard(db).authenticate(user_data.email, user_data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _token_response(user)


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Get current user profile"""
    return await IdentityGuard(db).get_user(actor.user_id)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    fields: Dict[str, Any] = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Update the current user's profile; fields outside the allow-list are ignored"""
    return await IdentityGuard(db).update_user(actor.user_id, actor, fields)


@router.post("/validate-phone")
async def validate_phone(
    fields: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session)
):
    """Check whether a phone number is still free in a country before signing up"""
    return await IdentityGuard(db).check_phone(fields.get("phone_number"), fields.get("country_code"))
