from typing import Any, Dict, List, Optional
from datetime import datetime
import secrets
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, delete, and_
from sports_arena.errors import ForbiddenError, MissingFieldsError, NotFoundError, PersistenceError, ValidationError
from sports_arena.identity.actor import Actor
from sports_arena.models.base import as_utc, is_valid_id, utcnow
from sports_arena.models.competition import Competition, StatusTransition
from sports_arena.models.enums import CompetitionCategory, CompetitionStatus, UserRole
from sports_arena.models.participation import Participation
from sports_arena.models.team import Player, Team
import logging

logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH = 8
JOIN_CODE_ATTEMPTS = 5

UPDATABLE_FIELDS = frozenset({
    "name", "description", "category", "venue", "address", "max_participants",
    "is_public", "registration_deadline", "start_date", "end_date",
})

RULE_FIELDS = frozenset({
    "offside_rule", "substitution_rule", "yellow_card_rule", "match_duration", "custom_rules",
})

DATE_FIELDS = ("registration_deadline", "start_date", "end_date")


def generate_join_code() -> str:
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


async def load_owned_competition(db: AsyncSession, competition_id: str, actor: Actor) -> Competition:
    """
    Fetch a competition the actor may manage: its organizer, or any admin.

    Competitions of other organizers are reported as missing.
    """
    if actor.role not in (UserRole.ADMIN, UserRole.ORGANIZER):
        raise ForbiddenError("Only organizers can manage competitions")

    competition = await db.get(Competition, competition_id, populate_existing=True) if is_valid_id(competition_id) else None
    if not competition or (not actor.is_admin and competition.organizer_id != actor.user_id):
        raise NotFoundError("Competition not found")
    return competition


def _check_schedule(start_date: datetime, end_date: Optional[datetime],
                    registration_deadline: Optional[datetime]):
    if end_date is not None and end_date < start_date:
        raise ValidationError("end_date must not be before start_date", {"field": "end_date"})
    if registration_deadline is not None and registration_deadline > start_date:
        raise ValidationError(
            "registration_deadline must not be after start_date",
            {"field": "registration_deadline"},
        )


def _as_date(name: str, value: Any) -> Optional[datetime]:
    if value is not None and not isinstance(value, datetime):
        raise ValidationError(f"{name} must be a date and time", {"field": name})
    return as_utc(value)


def _parse_category(value: Any) -> str:
    try:
        return CompetitionCategory(value or CompetitionCategory.OTHER.value).value
    except ValueError:
        raise ValidationError(f"Unknown competition category: {value}", {"field": "category"})


class CompetitionManager:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create_competition(self, actor: Actor, fields: Dict[str, Any]) -> Competition:
        """Create a DRAFT competition with a fresh join code."""

        if actor.role not in (UserRole.ADMIN, UserRole.ORGANIZER):
            raise ForbiddenError("Only organizers can create competitions")

        missing = [name for name in ("name", "start_date") if not fields.get(name)]
        if missing:
            raise MissingFieldsError(missing)

        dates = {name: _as_date(name, fields.get(name)) for name in DATE_FIELDS}
        _check_schedule(dates["start_date"], dates["end_date"], dates["registration_deadline"])

        for attempt in range(JOIN_CODE_ATTEMPTS):
            competition = Competition(
                name=fields["name"].strip(),
                description=fields.get("description"),
                join_code=generate_join_code(),
                organizer_id=actor.user_id,
                category=_parse_category(fields.get("category")),
                venue=fields.get("venue"),
                address=fields.get("address"),
                max_participants=fields.get("max_participants"),
                is_public=fields.get("is_public", True),
                rules={k: v for k, v in (fields.get("rules") or {}).items() if k in RULE_FIELDS},
                status=CompetitionStatus.DRAFT.value,
                **dates,
            )
            self.db.add(competition)
            try:
                await self.db.commit()
            except IntegrityError:
                # join code collision
                await self.db.rollback()
                logger.warning(f"Join code collision on attempt {attempt + 1}, retrying")
                continue

            await self.db.refresh(competition)
            logger.info(f"Created competition {competition.id} ({competition.name}) for organizer {actor.user_id}")
            return competition

        raise PersistenceError("Could not allocate a unique join code")

    async def get_competition(self, competition_id: str) -> Competition:
        competition = await self.db.get(Competition, competition_id) if is_valid_id(competition_id) else None
        if not competition:
            raise NotFoundError("Competition not found")
        return competition

    async def get_by_join_code(self, join_code: str) -> Optional[Competition]:
        """Look up a public competition by its join code."""
        return await self.db.scalar(
            select(Competition).where(and_(
                Competition.join_code == join_code.strip().upper(),
                Competition.is_public.is_(True),
            ))
        )

    async def list_for_organizer(self, organizer_id: str) -> List[Competition]:
        result = await self.db.execute(
            select(Competition)
            .where(Competition.organizer_id == organizer_id)
            .order_by(Competition.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_public(self, category: Optional[str] = None, skip: int = 0, limit: int = 50) -> List[Competition]:
        """Public competitions currently accepting registrations."""
        query = select(Competition).where(and_(
            Competition.is_public.is_(True),
            Competition.status == CompetitionStatus.OPEN.value,
        ))
        if category:
            query = query.where(Competition.category == _parse_category(category))

        result = await self.db.execute(
            query.order_by(Competition.start_date).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def list_upcoming(self, now: Optional[datetime] = None, limit: int = 6) -> List[Competition]:
        """Public OPEN competitions that have not started and still take registrations, soonest first."""
        now = now or utcnow()
        result = await self.db.execute(
            select(Competition)
            .where(and_(
                Competition.is_public.is_(True),
                Competition.status == CompetitionStatus.OPEN.value,
            ))
            .order_by(Competition.start_date)
        )
        upcoming = [
            competition for competition in result.scalars().all()
            if as_utc(competition.start_date) > now and competition.is_registration_open(now)
        ]
        return upcoming[:limit]

    async def update_competition(self, competition_id: str, actor: Actor, fields: Dict[str, Any]) -> Competition:
        """
        Update the editable fields of a competition.

        The organizer, join code and status are not editable here and are
        silently ignored.
        """
        competition = await load_owned_competition(self.db, competition_id, actor)

        changes = {name: value for name, value in fields.items() if name in UPDATABLE_FIELDS}
        if "category" in changes:
            changes["category"] = _parse_category(changes["category"])
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("name cannot be empty", {"field": "name"})
        if "start_date" in changes and not changes["start_date"]:
            raise ValidationError("start_date cannot be empty", {"field": "start_date"})
        if "is_public" in changes and changes["is_public"] is None:
            raise ValidationError("is_public cannot be empty", {"field": "is_public"})
        for name in DATE_FIELDS:
            if name in changes:
                changes[name] = _as_date(name, changes[name])

        _check_schedule(
            changes.get("start_date", as_utc(competition.start_date)),
            changes.get("end_date", as_utc(competition.end_date)),
            changes.get("registration_deadline", as_utc(competition.registration_deadline)),
        )

        for name, value in changes.items():
            setattr(competition, name, value)
        competition.updated_at = utcnow()

        await self.db.commit()
        await self.db.refresh(competition)

        logger.info(f"Updated competition {competition_id} ({', '.join(sorted(changes)) or 'no changes'})")
        return competition

    async def update_rules(self, competition_id: str, actor: Actor, rules: Dict[str, Any]) -> Competition:
        """Replace the given rule entries; admins may edit any competition's rules."""
        competition = await load_owned_competition(self.db, competition_id, actor)

        merged = dict(competition.rules or {})
        merged.update({name: value for name, value in rules.items() if name in RULE_FIELDS})
        competition.rules = merged
        competition.updated_at = utcnow()

        await self.db.commit()
        await self.db.refresh(competition)

        logger.info(f"Updated rules of competition {competition_id} by {actor.user_id}")
        return competition

    async def delete_competition(self, competition_id: str, actor: Actor):
        competition = await load_owned_competition(self.db, competition_id, actor)

        team_ids = select(Team.id).where(Team.competition_id == competition.id)
        statements = [
            delete(Player).where(Player.team_id.in_(team_ids)),
            delete(Team).where(Team.competition_id == competition.id),
            delete(Participation).where(Participation.competition_id == competition.id),
            delete(StatusTransition).where(StatusTransition.competition_id == competition.id),
            delete(Competition).where(Competition.id == competition.id),
        ]
        for statement in statements:
            await self.db.execute(statement.execution_options(synchronize_session=False))
        await self.db.commit()

        logger.info(f"Deleted competition {competition_id} by {actor.user_id}")
