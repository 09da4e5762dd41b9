from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import select, func, and_, or_
from sports_arena.errors import DuplicateParticipationError, ForbiddenError, NotFoundError, ValidationError
from sports_arena.identity.actor import Actor
from sports_arena.models.base import is_valid_id, utcnow
from sports_arena.models.competition import Competition
from sports_arena.models.enums import CompetitionStatus, NotificationType, ParticipationStatus, UserRole
from sports_arena.models.participation import Participation
import logging

logger = logging.getLogger(__name__)

EMPTY_STATS = {"participant_count": 0, "pending_count": 0}


class ParticipationRegistry:
    """
    Registrations of users in competitions.

    A user holds at most one pending or approved participation per
    competition. The lookup before insert gives a precise error; the partial
    unique index on the participations table settles concurrent requests.
    """

    def __init__(self, db_session: AsyncSession, notifier=None):
        self.db = db_session
        self.notifier = notifier

    async def create_participation(self, competition_id: str, user_id: str,
                                   team_data: Optional[Dict[str, Any]] = None,
                                   message: Optional[str] = None) -> Participation:
        """
        Register a user in a competition.

        Raises:
            NotFoundError: Unknown competition
            ValidationError: Competition not accepting registrations, or full
            DuplicateParticipationError: User already registered
        """
        competition = await self.db.get(Competition, competition_id) if is_valid_id(competition_id) else None
        if not competition:
            raise NotFoundError("Competition not found")

        if not competition.is_registration_open(utcnow()):
            raise ValidationError(
                "Competition is not accepting registrations",
                {"competition_id": competition_id, "status": competition.status},
            )

        if await self._active_participation(competition_id, user_id) is not None:
            raise DuplicateParticipationError(competition_id, user_id)

        if competition.max_participants:
            taken = await self.db.scalar(
                select(func.count(Participation.id)).where(and_(
                    Participation.competition_id == competition_id,
                    Participation.status != ParticipationStatus.REJECTED.value,
                ))
            )
            if taken >= competition.max_participants:
                raise ValidationError(
                    "Competition is full",
                    {"competition_id": competition_id, "max_participants": competition.max_participants},
                )

        participation = Participation(
            competition_id=competition_id,
            user_id=user_id,
            team_data=team_data,
            message=message,
        )
        self.db.add(participation)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateParticipationError(competition_id, user_id)

        await self.db.refresh(participation)
        logger.info(f"User {user_id} registered in competition {competition_id}")

        await self._notify(
            competition.organizer_id,
            NotificationType.NEW_PARTICIPATION_REQUEST,
            title="New participation request",
            message=f"A new participant asked to join \"{competition.name}\".",
            data={"competition_id": competition_id, "participation_id": participation.id},
        )
        return participation

    async def check_participation(self, competition_id: str, user_id: str) -> bool:
        """True when the user holds a pending or approved participation."""
        if not is_valid_id(competition_id) or not is_valid_id(user_id):
            return False
        return await self._active_participation(competition_id, user_id) is not None

    async def review_participation(self, participation_id: str, actor: Actor, approve: bool,
                                   message: Optional[str] = None) -> Participation:
        """Approve or reject a pending participation as the competition's organizer."""
        participation = await self.db.get(Participation, participation_id) if is_valid_id(participation_id) else None
        if not participation:
            raise NotFoundError("Participation not found")

        competition = await self.db.get(Competition, participation.competition_id)
        if actor.role not in (UserRole.ADMIN, UserRole.ORGANIZER):
            raise ForbiddenError("Only organizers can review participations")
        if not competition or (not actor.is_admin and competition.organizer_id != actor.user_id):
            raise NotFoundError("Participation not found")

        if participation.status != ParticipationStatus.PENDING.value:
            raise ValidationError(
                f"Participation already {participation.status}",
                {"status": participation.status},
            )

        new_status = ParticipationStatus.APPROVED if approve else ParticipationStatus.REJECTED
        participation.status = new_status.value
        participation.response_message = message
        participation.reviewed_by = actor.user_id
        participation.reviewed_at = utcnow()
        participation.updated_at = participation.reviewed_at

        await self.db.commit()
        await self.db.refresh(participation)

        logger.info(f"Participation {participation_id} {new_status.value} by {actor.user_id}")

        if approve:
            notification_type = NotificationType.PARTICIPATION_ACCEPTED
            text = f"Your participation in \"{competition.name}\" has been accepted."
        else:
            notification_type = NotificationType.PARTICIPATION_REJECTED
            text = f"Your participation in \"{competition.name}\" has been rejected."
        if message:
            text = f"{text} {message}"

        await self._notify(
            participation.user_id,
            notification_type,
            title="Participation reviewed",
            message=text,
            data={"competition_id": competition.id, "participation_id": participation.id},
        )
        return participation

    async def list_user_participations(self, user_id: str) -> List[Dict[str, Any]]:
        """A user's participations with the competition they belong to."""
        result = await self.db.execute(
            select(Participation, Competition)
            .join(Competition, Competition.id == Participation.competition_id)
            .where(Participation.user_id == user_id)
            .order_by(Participation.created_at.desc())
        )
        return [
            {
                **participation.to_record(),
                "competition": {
                    "id": competition.id,
                    "name": competition.name,
                    "status": competition.status,
                    "start_date": competition.start_date.isoformat() if competition.start_date else None,
                },
            }
            for participation, competition in result.all()
        ]

    async def list_pending_for_organizer(self, actor: Actor) -> List[Participation]:
        query = (
            select(Participation)
            .join(Competition, Competition.id == Participation.competition_id)
            .where(Participation.status == ParticipationStatus.PENDING.value)
        )
        if not actor.is_admin:
            query = query.where(Competition.organizer_id == actor.user_id)

        result = await self.db.execute(query.order_by(Participation.created_at))
        return list(result.scalars().all())

    async def get_competition_stats(self, competition_id: str, actor: Optional[Actor] = None) -> Dict[str, int]:
        """
        Approved and pending participation counts for a competition.

        Never raises: malformed identifiers and storage errors both yield zeros.
        When an actor is given, private competitions they do not organize
        count as empty.
        """
        if not is_valid_id(competition_id):
            return dict(EMPTY_STATS)

        query = (
            select(Participation.status, func.count(Participation.id))
            .where(Participation.competition_id == competition_id)
            .group_by(Participation.status)
        )
        if actor is not None and not actor.is_admin:
            query = query.join(Competition, Competition.id == Participation.competition_id).where(
                or_(Competition.is_public.is_(True), Competition.organizer_id == actor.user_id)
            )

        try:
            result = await self.db.execute(query)
            counts = {status: count for status, count in result.all()}
        except SQLAlchemyError as e:
            logger.error(f"Error getting stats for competition {competition_id}: {e}")
            await self.db.rollback()
            return dict(EMPTY_STATS)

        return {
            "participant_count": counts.get(ParticipationStatus.APPROVED.value, 0),
            "pending_count": counts.get(ParticipationStatus.PENDING.value, 0),
        }

    async def get_global_stats(self) -> Dict[str, int]:
        try:
            total_competitions = await self.db.scalar(select(func.count(Competition.id)))
            total_participations = await self.db.scalar(select(func.count(Participation.id)))
            open_competitions = await self.db.scalar(
                select(func.count(Competition.id)).where(Competition.status == CompetitionStatus.OPEN.value)
            )
        except SQLAlchemyError as e:
            logger.error(f"Error getting global stats: {e}")
            await self.db.rollback()
            return {"total_competitions": 0, "total_participations": 0, "open_competitions": 0}

        return {
            "total_competitions": total_competitions or 0,
            "total_participations": total_participations or 0,
            "open_competitions": open_competitions or 0,
        }

    async def _active_participation(self, competition_id: str, user_id: str) -> Optional[Participation]:
        return await self.db.scalar(
            select(Participation).where(and_(
                Participation.competition_id == competition_id,
                Participation.user_id == user_id,
                Participation.status != ParticipationStatus.REJECTED.value,
            ))
        )

    async def _notify(self, user_id: str, notification_type: NotificationType, title: str,
                      message: str, data: Dict[str, Any]):
        if self.notifier is None:
            return
        try:
            await self.notifier.send_user_notification(user_id, notification_type.value, title, message, data)
        except Exception as e:
            logger.error(f"Failed to send {notification_type.value} notification to {user_id}: {e}")
