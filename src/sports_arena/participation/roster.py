"""
Team rosters.

Only a team's captain may change the team or its players. Administrators
get no bypass here: a roster belongs to the team, not to the platform.
"""

from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select, delete, func, and_
from sports_arena.errors import ArenaError, DuplicateError, ForbiddenError, NotFoundError, PersistenceError, ValidationError
from sports_arena.identity.actor import Actor
from sports_arena.models.base import is_valid_id, utcnow
from sports_arena.models.competition import Competition
from sports_arena.models.enums import ParticipationStatus
from sports_arena.models.participation import Participation
from sports_arena.models.team import Player, Team
import logging

logger = logging.getLogger(__name__)

PLAYER_FIELDS = frozenset({"name", "age", "position", "number", "photo_url"})

TEAM_FIELDS = ("description", "logo_url", "colors")


def _clean_player_fields(fields: Dict[str, Any], require_name: bool) -> Dict[str, Any]:
    changes = {name: value for name, value in fields.items() if name in PLAYER_FIELDS}

    if require_name or "name" in changes:
        name = changes.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Player name is required", {"field": "name"})
        changes["name"] = name.strip()

    for name in ("age", "number"):
        value = changes.get(name)
        if value is None:
            continue
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValidationError(f"{name} must be a non-negative integer", {"field": name})

    return changes


class RosterManager:
    def __init__(self, db_session: AsyncSession, atomic: bool = True):
        self.db = db_session
        self.atomic = atomic

    async def create_team(self, competition_id: str, actor: Actor, name: str,
                          players: Optional[Iterable[Dict[str, Any]]] = None,
                          **details) -> Team:
        """
        Create a team captained by the actor, with optional initial players.

        The captain must hold an approved participation in the competition
        and may captain a single team there. Team names are unique within a
        competition, ignoring case.
        """
        competition = await self.db.get(Competition, competition_id) if is_valid_id(competition_id) else None
        if not competition:
            raise NotFoundError("Competition not found")

        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Team name is required", {"field": "name"})
        name = name.strip()

        approved = await self.db.scalar(
            select(Participation.id).where(and_(
                Participation.competition_id == competition_id,
                Participation.user_id == actor.user_id,
                Participation.status == ParticipationStatus.APPROVED.value,
            ))
        )
        if approved is None:
            raise ForbiddenError("Only approved participants can create a team")

        player_rows = [_clean_player_fields(player, require_name=True) for player in (players or [])]

        if await self._captain_team_id(competition_id, actor.user_id) is not None:
            raise DuplicateError("You already captain a team in this competition", {"field": "captain_id"})

        if await self._team_name_taken(competition_id, name):
            raise DuplicateError("A team with this name already exists", {"field": "name"})

        team = Team(
            competition_id=competition_id,
            captain_id=actor.user_id,
            name=name,
            **{key: details.get(key) for key in TEAM_FIELDS},
        )
        team_id = team.id
        self.db.add(team)

        if not self.atomic:
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise await self._creation_conflict(competition_id, actor.user_id, name)

        self.db.add_all([Player(team_id=team_id, **row) for row in player_rows])
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if not self.atomic:
                # the team row was committed on its own
                await self._discard_team(team_id)
            raise await self._creation_conflict(competition_id, actor.user_id, name)

        logger.info(f"Created team {team_id} ({name}) with {len(player_rows)} players in competition {competition_id}")
        return await self.get_team(team_id)

    async def update_team(self, team_id: str, actor: Actor, fields: Dict[str, Any]) -> Team:
        """Rename or restyle a team; only its captain may."""
        team = await self._captained_team(team_id, actor)

        changes = {key: value for key, value in fields.items() if key in TEAM_FIELDS}
        if "name" in fields:
            name = fields["name"]
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("Team name is required", {"field": "name"})
            name = name.strip()
            if name.lower() != team.name.lower() and await self._team_name_taken(team.competition_id, name, exclude_team_id=team.id):
                raise DuplicateError("A team with this name already exists", {"field": "name"})
            changes["name"] = name

        for key, value in changes.items():
            setattr(team, key, value)
        team.updated_at = utcnow()

        await self.db.commit()

        logger.info(f"Updated team {team_id} ({', '.join(sorted(changes)) or 'no changes'}) by captain {actor.user_id}")
        return await self.get_team(team.id)

    async def delete_team(self, team_id: str, actor: Actor):
        """Delete a team and its players; only its captain may."""
        team = await self._captained_team(team_id, actor)

        await self._discard_team(team.id)

        logger.info(f"Deleted team {team_id} by captain {actor.user_id}")

    async def add_player(self, team_id: str, actor: Actor, fields: Dict[str, Any]) -> Player:
        team = await self._captained_team(team_id, actor)

        player = Player(team_id=team.id, **_clean_player_fields(fields, require_name=True))
        self.db.add(player)
        await self.db.commit()
        await self.db.refresh(player)

        logger.info(f"Added player {player.id} to team {team.id}")
        return player

    async def update_player(self, player_id: str, actor: Actor, fields: Dict[str, Any]) -> Player:
        """
        Update a player on behalf of the team's captain.

        Raises:
            NotFoundError: Player or its team does not exist
            ForbiddenError: Actor is not the captain, whatever their role
        """
        player = await self._player_for_captain(player_id, actor)

        for name, value in _clean_player_fields(fields, require_name=False).items():
            setattr(player, name, value)
        player.updated_at = utcnow()

        await self.db.commit()
        await self.db.refresh(player)

        logger.info(f"Updated player {player_id} by captain {actor.user_id}")
        return player

    async def delete_player(self, player_id: str, actor: Actor):
        player = await self._player_for_captain(player_id, actor)

        await self.db.delete(player)
        await self.db.commit()

        logger.info(f"Deleted player {player_id} by captain {actor.user_id}")

    async def get_team(self, team_id: str) -> Team:
        team = None
        if is_valid_id(team_id):
            team = await self.db.scalar(
                select(Team)
                .where(Team.id == team_id)
                .options(selectinload(Team.players))
                .execution_options(populate_existing=True)
            )
        if not team:
            raise NotFoundError("Team not found")
        return team

    async def list_teams(self, competition_id: str) -> List[Team]:
        if not is_valid_id(competition_id):
            return []
        result = await self.db.execute(
            select(Team)
            .where(Team.competition_id == competition_id)
            .options(selectinload(Team.players))
            .order_by(Team.name)
        )
        return list(result.scalars().all())

    async def _captain_team_id(self, competition_id: str, user_id: str) -> Optional[str]:
        return await self.db.scalar(
            select(Team.id).where(and_(Team.competition_id == competition_id, Team.captain_id == user_id))
        )

    async def _team_name_taken(self, competition_id: str, name: str,
                               exclude_team_id: Optional[str] = None) -> bool:
        query = select(Team.id).where(and_(
            Team.competition_id == competition_id,
            func.lower(Team.name) == name.lower(),
        ))
        if exclude_team_id:
            query = query.where(Team.id != exclude_team_id)
        return await self.db.scalar(query) is not None

    async def _discard_team(self, team_id: str):
        for statement in (delete(Player).where(Player.team_id == team_id), delete(Team).where(Team.id == team_id)):
            await self.db.execute(statement.execution_options(synchronize_session=False))
        await self.db.commit()

    async def _creation_conflict(self, competition_id: str, user_id: str, name: str) -> ArenaError:
        """Work out which rule a failed team insert ran into."""
        if await self._captain_team_id(competition_id, user_id) is not None:
            return DuplicateError("You already captain a team in this competition", {"field": "captain_id"})
        if await self._team_name_taken(competition_id, name):
            return DuplicateError("A team with this name already exists", {"field": "name"})
        return PersistenceError("Could not store the team and its players")

    async def _captained_team(self, team_id: str, actor: Actor) -> Team:
        team = await self.db.get(Team, team_id, populate_existing=True) if is_valid_id(team_id) else None
        if not team:
            raise NotFoundError("Team not found")
        if team.captain_id != actor.user_id:
            raise ForbiddenError("Only the team captain can change the roster")
        return team

    async def _player_for_captain(self, player_id: str, actor: Actor) -> Player:
        player = await self.db.get(Player, player_id, populate_existing=True) if is_valid_id(player_id) else None
        if not player:
            raise NotFoundError("Player not found")
        team = await self.db.get(Team, player.team_id)
        if not team:
            raise NotFoundError("Team not found")
        if team.captain_id != actor.user_id:
            raise ForbiddenError("Only the team captain can change the roster")
        return player
