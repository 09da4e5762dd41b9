from fastapi import APIRouter, Depends
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sports_arena.api.participations.models import ParticipationResponse, ReviewRequest
from sports_arena.api.deps import get_current_actor, get_notifier, require_admin
from sports_arena.db import get_db_session
from sports_arena.identity import Actor
from sports_arena.participation import ParticipationRegistry

router = APIRouter()


@router.get("/mine")
async def my_participations(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
) -> List[Dict[str, Any]]:
    """The caller's participations with their competitions"""
    return await ParticipationRegistry(db).list_user_participations(actor.user_id)


@router.get("/pending", response_model=List[ParticipationResponse])
async def pending_participations(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Pending requests in the caller's competitions"""
    return await ParticipationRegistry(db).list_pending_for_organizer(actor)


@router.get("/stats")
async def global_stats(
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session)
) -> Dict[str, int]:
    return await ParticipationRegistry(db).get_global_stats()


@router.post("/{participation_id}/approve", response_model=ParticipationResponse)
async def approve_participation(
    participation_id: str,
    review: Optional[ReviewRequest] = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
    notifier=Depends(get_notifier)
):
    registry = ParticipationRegistry(db, notifier=notifier)
    return await registry.review_participation(participation_id, actor, approve=True, message=review.message if review else None)


@router.post("/{participation_id}/reject", response_model=ParticipationResponse)
async def reject_participation(
    participation_id: str,
    review: Optional[ReviewRequest] = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
    notifier=Depends(get_notifier)
):
    registry = ParticipationRegistry(db, notifier=notifier)
    return await registry.review_participation(participation_id, actor, approve=False, message=review.message if review else None)
