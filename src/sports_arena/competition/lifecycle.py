"""
Competition status lifecycle.

Statuses only move forward along DRAFT -> OPEN -> CLOSED -> IN_PROGRESS ->
COMPLETED, or to CANCELLED by an explicit organizer/admin action. The
time-driven part lives in ``compute_statuses``, a pure function over
competition snapshots; ``StatusLifecycleManager`` persists what it computes.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, update, and_
from sports_arena.competition.manager import load_owned_competition
from sports_arena.errors import NotFoundError, PersistenceError, ValidationError
from sports_arena.identity.actor import Actor
from sports_arena.models.base import as_utc, utcnow
from sports_arena.models.competition import Competition, StatusTransition, SYSTEM_ACTOR
from sports_arena.models.enums import CompetitionStatus, NotificationType, ParticipationStatus
from sports_arena.models.participation import Participation
import logging

logger = logging.getLogger(__name__)

SWEEPABLE_STATUSES = (
    CompetitionStatus.OPEN,
    CompetitionStatus.CLOSED,
    CompetitionStatus.IN_PROGRESS,
)

TRANSITION_REASONS = {
    (CompetitionStatus.DRAFT, CompetitionStatus.OPEN): "Competition published",
    (CompetitionStatus.OPEN, CompetitionStatus.CLOSED): "Registration closed",
    (CompetitionStatus.OPEN, CompetitionStatus.IN_PROGRESS): "Competition started",
    (CompetitionStatus.CLOSED, CompetitionStatus.IN_PROGRESS): "Competition started",
    (CompetitionStatus.OPEN, CompetitionStatus.COMPLETED): "Competition finished",
    (CompetitionStatus.CLOSED, CompetitionStatus.COMPLETED): "Competition finished",
    (CompetitionStatus.IN_PROGRESS, CompetitionStatus.COMPLETED): "Competition finished",
}


def transition_reason(old_status: CompetitionStatus, new_status: CompetitionStatus) -> str:
    if new_status == CompetitionStatus.CANCELLED:
        return "Competition cancelled"
    return TRANSITION_REASONS.get((old_status, new_status), "Automatic update")


@dataclass(frozen=True)
class CompetitionSnapshot:
    """The fields the lifecycle rules look at, detached from any session."""
    id: str
    status: CompetitionStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    name: str = ""
    organizer_id: Optional[str] = None

    @classmethod
    def from_model(cls, competition: Competition) -> "CompetitionSnapshot":
        return cls(
            id=competition.id,
            status=CompetitionStatus(competition.status),
            start_date=as_utc(competition.start_date),
            end_date=as_utc(competition.end_date),
            registration_deadline=as_utc(competition.registration_deadline),
            name=competition.name,
            organizer_id=competition.organizer_id,
        )


@dataclass
class TransitionRecord:
    competition_id: str
    old_status: CompetitionStatus
    new_status: CompetitionStatus
    timestamp: datetime
    reason: str
    triggered_by: str = SYSTEM_ACTOR

    def to_dict(self) -> dict:
        return {
            "competition_id": self.competition_id,
            "old_status": self.old_status.value,
            "new_status": self.new_status.value,
            "reason": self.reason,
            "triggered_by": self.triggered_by,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class SweepFailure:
    competition_id: str
    old_status: CompetitionStatus
    new_status: CompetitionStatus
    error: str

    def to_dict(self) -> dict:
        return {
            "competition_id": self.competition_id,
            "old_status": self.old_status.value,
            "new_status": self.new_status.value,
            "error": self.error,
        }


@dataclass
class SweepResult:
    checked: int = 0
    applied: List[TransitionRecord] = field(default_factory=list)
    failed: List[SweepFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "updates_count": len(self.applied),
            "updates": [record.to_dict() for record in self.applied],
            "failures": [failure.to_dict() for failure in self.failed],
        }


def _next_status(competition, now: datetime) -> CompetitionStatus:
    """Apply a single time rule, or return the current status."""
    status = CompetitionStatus(competition.status)
    start = as_utc(competition.start_date)
    end = as_utc(competition.end_date)
    deadline = as_utc(competition.registration_deadline)

    if status == CompetitionStatus.OPEN:
        if start is not None and now >= start:
            return CompetitionStatus.IN_PROGRESS
        if deadline is not None and now >= deadline:
            return CompetitionStatus.CLOSED
        return status

    if status == CompetitionStatus.CLOSED:
        if start is not None and now >= start:
            return CompetitionStatus.IN_PROGRESS
        return status

    if status == CompetitionStatus.IN_PROGRESS:
        if end is not None and now >= end:
            return CompetitionStatus.COMPLETED
        return status

    # DRAFT waits for an explicit publish; CANCELLED and COMPLETED are final
    return status


def determine_status(competition, now: datetime) -> CompetitionStatus:
    """Status the competition should have at ``now``, following rules until stable."""
    now = as_utc(now)
    current = CompetitionSnapshot(
        id=competition.id,
        status=CompetitionStatus(competition.status),
        start_date=as_utc(competition.start_date),
        end_date=as_utc(competition.end_date),
        registration_deadline=as_utc(competition.registration_deadline),
    )
    for _ in range(len(CompetitionStatus)):
        next_status = _next_status(current, now)
        if next_status == current.status:
            break
        current = replace(current, status=next_status)
    return current.status


def compute_statuses(now: datetime, competitions: Sequence) -> List[Tuple[str, CompetitionStatus, CompetitionStatus]]:
    """
    Evaluate the time rules for every competition against one instant.

    Args:
        now: Snapshot time used for every comparison
        competitions: Objects exposing id, status, start_date, end_date
            and registration_deadline

    Returns:
        (competition_id, old_status, new_status) for each competition whose
        status must change; unchanged competitions are left out.
    """
    transitions = []
    for competition in competitions:
        old_status = CompetitionStatus(competition.status)
        new_status = determine_status(competition, now)
        if new_status != old_status:
            transitions.append((competition.id, old_status, new_status))
    return transitions


class StatusLifecycleManager:
    """
    Persists competition status transitions.

    The sweep applies the time rules to every live competition; each
    transition is written and committed on its own so that a failure on one
    competition leaves the rest of the batch unaffected.
    """

    def __init__(self, db_session: AsyncSession, notifier=None, monitor=None, atomic: bool = True):
        self.db = db_session
        self.notifier = notifier
        self.monitor = monitor
        self.atomic = atomic

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Recompute and persist the status of every live competition."""
        now = as_utc(now) or utcnow()
        if self.monitor is not None:
            with self.monitor.timer("status_sweep"):
                return await self._sweep(now)
        return await self._sweep(now)

    async def _sweep(self, now: datetime) -> SweepResult:
        logger.info(f"Starting competition status sweep at {now.isoformat()}")

        result = await self.db.execute(
            select(Competition).where(
                Competition.status.in_([status.value for status in SWEEPABLE_STATUSES])
            ).execution_options(populate_existing=True)
        )
        snapshots: Dict[str, CompetitionSnapshot] = {
            competition.id: CompetitionSnapshot.from_model(competition)
            for competition in result.scalars().all()
        }

        sweep_result = SweepResult(checked=len(snapshots))

        for competition_id, old_status, new_status in compute_statuses(now, list(snapshots.values())):
            snapshot = snapshots[competition_id]
            try:
                record = await self._apply_transition(
                    snapshot, new_status, now,
                    triggered_by=SYSTEM_ACTOR,
                    expected_status=old_status,
                )
            except PersistenceError as e:
                logger.error(f"Status update failed for competition {competition_id}: {e.message}")
                sweep_result.failed.append(SweepFailure(competition_id, old_status, new_status, e.message))
                continue

            if record is None:
                continue

            sweep_result.applied.append(record)
            logger.info(f"Status updated for {snapshot.name}: {old_status.value} -> {new_status.value}")
            await self._notify(snapshot, record)

        logger.info(
            f"Status sweep finished: {len(sweep_result.applied)} updated, "
            f"{len(sweep_result.failed)} failed, {sweep_result.checked} checked"
        )
        return sweep_result

    async def override_status(self, competition_id: str, new_status, actor: Actor,
                              reason: Optional[str] = None) -> Competition:
        """
        Set a competition's status directly, bypassing the time rules.

        Only the competition's organizer or an admin may do this. A cancelled
        competition stays cancelled.
        """
        try:
            new_status = CompetitionStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown competition status: {new_status}", {"field": "status"})

        competition = await load_owned_competition(self.db, competition_id, actor)
        snapshot = CompetitionSnapshot.from_model(competition)

        if snapshot.status == new_status:
            return competition
        if snapshot.status == CompetitionStatus.CANCELLED:
            raise ValidationError("A cancelled competition cannot change status")

        record = await self._apply_transition(
            snapshot, new_status, utcnow(),
            triggered_by=actor.user_id,
            reason=reason or transition_reason(snapshot.status, new_status),
        )
        if record is None:
            raise NotFoundError("Competition not found")
        await self.db.refresh(competition)

        logger.info(
            f"Status of competition {competition_id} set to {new_status.value} by {actor.user_id}"
        )
        await self._notify(snapshot, record)
        return competition

    async def publish(self, competition_id: str, actor: Actor) -> Competition:
        competition = await load_owned_competition(self.db, competition_id, actor)
        if competition.status != CompetitionStatus.DRAFT.value:
            raise ValidationError("Only draft competitions can be published")
        return await self.override_status(competition_id, CompetitionStatus.OPEN, actor)

    async def cancel(self, competition_id: str, actor: Actor, reason: Optional[str] = None) -> Competition:
        competition = await load_owned_competition(self.db, competition_id, actor)
        if competition.status == CompetitionStatus.COMPLETED.value:
            raise ValidationError("A completed competition cannot be cancelled")
        return await self.override_status(competition_id, CompetitionStatus.CANCELLED, actor, reason=reason)

    async def get_transitions(self, competition_id: str) -> List[StatusTransition]:
        result = await self.db.execute(
            select(StatusTransition)
            .where(StatusTransition.competition_id == competition_id)
            .order_by(StatusTransition.timestamp)
        )
        return list(result.scalars().all())

    async def _apply_transition(self, snapshot: CompetitionSnapshot, new_status: CompetitionStatus,
                                now: datetime, triggered_by: str,
                                expected_status: Optional[CompetitionStatus] = None,
                                reason: Optional[str] = None) -> Optional[TransitionRecord]:
        """
        Write one status change and its transition record.

        With ``expected_status`` the update only applies if the stored status
        still matches; None is returned when it no longer does.
        """
        conditions = [Competition.id == snapshot.id]
        if expected_status is not None:
            conditions.append(Competition.status == expected_status.value)

        record = TransitionRecord(
            competition_id=snapshot.id,
            old_status=snapshot.status,
            new_status=new_status,
            timestamp=now,
            reason=reason or transition_reason(snapshot.status, new_status),
            triggered_by=triggered_by,
        )

        try:
            result = await self.db.execute(
                update(Competition)
                .where(and_(*conditions))
                .values(status=new_status.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                logger.info(f"Competition {snapshot.id} changed since it was read, skipping")
                return None

            if not self.atomic:
                await self.db.commit()

            self.db.add(StatusTransition(
                competition_id=record.competition_id,
                old_status=record.old_status.value,
                new_status=record.new_status.value,
                reason=record.reason,
                triggered_by=record.triggered_by,
                timestamp=record.timestamp,
            ))
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Could not persist status of competition {snapshot.id}: {e}") from e

        return record

    async def _notify(self, snapshot: CompetitionSnapshot, record: TransitionRecord):
        if self.notifier is None:
            return

        try:
            result = await self.db.execute(
                select(Participation.user_id).where(and_(
                    Participation.competition_id == snapshot.id,
                    Participation.status != ParticipationStatus.REJECTED.value,
                ))
            )
            recipients = [snapshot.organizer_id] + list(result.scalars().all())

            notification_type = (
                NotificationType.COMPETITION_START
                if record.new_status == CompetitionStatus.IN_PROGRESS
                else NotificationType.COMPETITION_UPDATE
            )
            await self.notifier.send_competition_event(
                snapshot.id,
                notification_type.value,
                title=f"{snapshot.name}: {record.reason}",
                message=(
                    f"The competition \"{snapshot.name}\" moved from "
                    f"{record.old_status.value} to {record.new_status.value}."
                ),
                recipients=[user_id for user_id in recipients if user_id],
                data=record.to_dict(),
            )
        except Exception as e:
            logger.error(f"Failed to notify status change of competition {snapshot.id}: {e}")
