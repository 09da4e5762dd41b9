from fastapi import APIRouter, Body, Depends, Query, Response, status
from typing import Any, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sports_arena.api.teams.models import PlayerCreate, PlayerResponse, TeamCreate, TeamResponse, TeamUpdate
from sports_arena.api.deps import get_atomic_writes, get_current_actor
from sports_arena.db import get_db_session
from sports_arena.identity import Actor
from sports_arena.participation import RosterManager

router = APIRouter()
players_router = APIRouter()


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    team_data: TeamCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session),
    atomic: bool = Depends(get_atomic_writes)
):
    """Create a team captained by the caller"""
    return await RosterManager(db, atomic=atomic).create_team(
        team_data.competition_id,
        actor,
        team_data.name,
        players=[player.model_dump(exclude_none=True) for player in team_data.players],
        description=team_data.description,
        logo_url=team_data.logo_url,
        colors=team_data.colors,
    )


@router.get("", response_model=List[TeamResponse])
async def list_teams(
    competition_id: str = Query(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    return await RosterManager(db).list_teams(competition_id)


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    return await RosterManager(db).get_team(team_id)


@router.put("/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: str,
    team_data: TeamUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Captain-only team update"""
    return await RosterManager(db).update_team(team_id, actor, team_data.model_dump(exclude_unset=True))


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team(
    team_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    await RosterManager(db).delete_team(team_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{team_id}/players", response_model=PlayerResponse, status_code=status.HTTP_201_CREATED)
async def add_player(
    team_id: str,
    player: PlayerCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    return await RosterManager(db).add_player(team_id, actor, player.model_dump(exclude_none=True))


@players_router.put("/{player_id}", response_model=PlayerResponse)
async def update_player(
    player_id: str,
    fields: Dict[str, Any] = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    """Captain-only player update"""
    return await RosterManager(db).update_player(player_id, actor, fields)


@players_router.delete("/{player_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_player(
    player_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db_session)
):
    await RosterManager(db).delete_player(player_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
