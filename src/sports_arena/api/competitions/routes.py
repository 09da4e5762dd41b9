import math
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sports_arena.api.competitions.models import (
    CompetitionCreate, CompetitionUpdate, CompetitionResponse, CompetitionStats,
    UpcomingCompetition, StatusOverride, CancelRequest, TransitionResponse, SweepResponse
)
from sports_arena.api.participations.models import ParticipateRequest, ParticipationResponse, ParticipationCheck
from sports_arena.api.deps import get_atomic_writes, get_current_actor, get_monitor, get_notifier
from sports_arena.competition import CompetitionManager, StatusLifecycleManager
from sports_arena.db import get_db_session
from sports_arena.errors import NotFoundError
from sports_arena.identity import Actor
from sports_arena.models.base import as_utc, utcnow
from sports_arena.models.enums import UserRole
from sports_arena.participation import ParticipationRegistry

router = APIRouter()


def _lifecycle(db, notifier=None, monitor=None, atomic: bool = True) -> StatusLifecycleManager:
    return StatusLifecycleManager(db, notifier=notifier, monitor=monitor, atomic=atomic)


@router.post("", response_model=CompetitionResponse, status_code=status.HTTP_201_CREATED)
async def create_competition(
    competition_data: CompetitionCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Create a new competition in DRAFT status"""
    return await CompetitionManager(db).create_competition(actor, competition_data.model_dump(exclude_none=True))


@router.get("", response_model=List[CompetitionResponse])
async def list_competitions(
    code: Optional[str] = Query(None, description="Look up a public competition by join code"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """List the caller's competitions, or find one by join code"""
    manager = CompetitionManager(db)
    if code:
        competition = await manager.get_by_join_code(code)
        return [competition] if competition else []
    return await manager.list_for_organizer(actor.user_id)


@router.get("/public", response_model=List[CompetitionResponse])
async def list_public_competitions(
    category: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db_session)
):
    """Public competitions open for registration"""
    return await CompetitionManager(db).list_public(category=category, skip=skip, limit=limit)


@router.get("/upcoming", response_model=List[UpcomingCompetition])
async def list_upcoming_competitions(
    limit: int = Query(6, ge=1, le=50),
    db: AsyncSession = Depends(get_db_session)
):
    """Soonest public competitions still taking registrations"""
    now = utcnow()
    registry = ParticipationRegistry(db)
    upcoming = []
    for competition in await CompetitionManager(db).list_upcoming(now=now, limit=limit):
        stats = await registry.get_competition_stats(competition.id)
        upcoming.append({
            **CompetitionResponse.model_validate(competition).model_dump(),
            "participant_count": stats["participant_count"],
            "days_until_start": math.ceil((as_utc(competition.start_date) - now).total_seconds() / 86400),
        })
    return upcoming


@router.post("/update-statuses", response_model=SweepResponse)
async def update_statuses(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
    notifier=Depends(get_notifier),
    monitor=Depends(get_monitor),
    atomic: bool = Depends(get_atomic_writes)
):
    """Run the status sweep now"""
    if actor.role not in (UserRole.ADMIN, UserRole.ORGANIZER):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

    result = await _lifecycle(db, notifier, monitor, atomic).sweep()
    return result.to_dict()


@router.get("/{competition_id}", response_model=CompetitionResponse)
async def get_competition(
    competition_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    competition = await CompetitionManager(db).get_competition(competition_id)
    # Private competitions are only visible to their organizer
    if not competition.is_public and competition.organizer_id != actor.user_id and not actor.is_admin:
        raise NotFoundError("Competition not found")
    return competition


@router.put("/{competition_id}", response_model=CompetitionResponse)
async def update_competition(
    competition_id: str,
    competition_data: CompetitionUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Reschedule or edit a competition; only the fields sent are changed"""
    fields = competition_data.model_dump(exclude_unset=True)
    return await CompetitionManager(db).update_competition(competition_id, actor, fields)


@router.delete("/{competition_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_competition(
    competition_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    await CompetitionManager(db).delete_competition(competition_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{competition_id}/rules", response_model=CompetitionResponse)
async def update_rules(
    competition_id: str,
    rules: Dict[str, Any] = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    return await CompetitionManager(db).update_rules(competition_id, actor, rules)


@router.put("/{competition_id}/status", response_model=CompetitionResponse)
async def override_status(
    competition_id: str,
    override: StatusOverride,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
    notifier=Depends(get_notifier),
    atomic: bool = Depends(get_atomic_writes)
):
    """Set the status directly, bypassing the schedule"""
    return await _lifecycle(db, notifier, atomic=atomic).override_status(
        competition_id, override.status, actor, reason=override.reason
    )


@router.post("/{competition_id}/publish", response_model=CompetitionResponse)
async def publish_competition(
    competition_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
    notifier=Depends(get_notifier),
    atomic: bool = Depends(get_atomic_writes)
):
    return await _lifecycle(db, notifier, atomic=atomic).publish(competition_id, actor)


@router.post("/{competition_id}/cancel", response_model=CompetitionResponse)
async def cancel_competition(
    competition_id: str,
    body: Optional[CancelRequest] = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
    notifier=Depends(get_notifier),
    atomic: bool = Depends(get_atomic_writes)
):
    return await _lifecycle(db, notifier, atomic=atomic).cancel(competition_id, actor, reason=body.reason if body else None)


@router.get("/{competition_id}/transitions", response_model=List[TransitionResponse])
async def get_transitions(
    competition_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Status history of a competition, oldest first"""
    await CompetitionManager(db).get_competition(competition_id)
    return await _lifecycle(db).get_transitions(competition_id)


@router.get("/{competition_id}/stats", response_model=CompetitionStats)
async def get_competition_stats(
    competition_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Participant counts; private competitions read as empty to anyone but their organizer"""
    return await ParticipationRegistry(db).get_competition_stats(competition_id, actor=actor)


@router.post("/{competition_id}/participate", response_model=ParticipationResponse,
             status_code=status.HTTP_201_CREATED)
async def participate(
    competition_id: str,
    body: Optional[ParticipateRequest] = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
    notifier=Depends(get_notifier)
):
    """Ask to take part in a competition"""
    body = body or ParticipateRequest()
    registry = ParticipationRegistry(db, notifier=notifier)
    return await registry.create_participation(
        competition_id, actor.user_id, team_data=body.team_data, message=body.message
    )


@router.get("/{competition_id}/participation", response_model=ParticipationCheck)
async def check_participation(
    competition_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    participating = await ParticipationRegistry(db).check_participation(competition_id, actor.user_id)
    return {"competition_id": competition_id, "participating": participating}
