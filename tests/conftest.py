"""Shared fixtures: a throwaway SQLite database per test and model factories."""

import os

# Must be set before sports_arena.config is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-sports-arena-suite")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import timedelta

import pytest

from sports_arena.db import close_database, configure_database
from sports_arena.identity import Actor, IdentityGuard, PasswordHasher
from sports_arena.models import Competition, Participation, UserRole
from sports_arena.models.base import utcnow
from sports_arena.models.enums import CompetitionStatus, ParticipationStatus
from sports_arena.notifications import NotificationManager

ALL_ROLES = (UserRole.ADMIN, UserRole.ORGANIZER, UserRole.PARTICIPANT)
PASSWORD = "correct-horse-battery"


@pytest.fixture
async def database(tmp_path):
    database = await configure_database(f"sqlite+aiosqlite:///{tmp_path / 'arena.db'}")
    await database.create_tables()
    yield database
    await close_database()


@pytest.fixture
async def session(database):
    async with database.async_session() as session:
        yield session


@pytest.fixture
def notifier(database):
    return NotificationManager(database)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def fetch(database):
    """Load a row through a fresh session, bypassing any identity map."""
    async def _fetch(model, object_id):
        async with database.async_session() as fresh:
            return await fresh.get(model, object_id)
    return _fetch


@pytest.fixture
def make_user(session, hasher):
    counter = {"n": 0}

    async def _make_user(role=UserRole.PARTICIPANT, **fields):
        counter["n"] += 1
        data = {
            "email": f"user{counter['n']}@example.org",
            "password": PASSWORD,
            "first_name": "Test",
            "last_name": f"User{counter['n']}",
            "role": role.value,
        }
        data.update(fields)
        return await IdentityGuard(session, hasher).register_user(data, allowed_roles=ALL_ROLES)

    return _make_user


def actor_for(user) -> Actor:
    return Actor(user_id=user.id, role=UserRole(user.role), email=user.email)


@pytest.fixture
def make_competition(session):
    async def _make_competition(organizer, status=CompetitionStatus.OPEN, **fields):
        now = utcnow()
        data = {
            "name": "Spring Cup",
            "join_code": f"C{os.urandom(4).hex().upper()}",
            "organizer_id": organizer.id,
            "start_date": now + timedelta(days=7),
            "registration_deadline": now + timedelta(days=5),
            "status": status.value,
        }
        data.update(fields)
        competition = Competition(**data)
        session.add(competition)
        await session.commit()
        await session.refresh(competition)
        return competition

    return _make_competition


@pytest.fixture
def make_participation(session):
    async def _make_participation(competition, user, status=ParticipationStatus.PENDING):
        participation = Participation(
            competition_id=competition.id,
            user_id=user.id,
            status=status.value,
        )
        session.add(participation)
        await session.commit()
        await session.refresh(participation)
        return participation

    return _make_participation
