from datetime import datetime, timedelta, timezone

import pytest

from conftest import actor_for
from sports_arena.competition import CompetitionManager
from sports_arena.competition import manager as manager_module
from sports_arena.errors import ForbiddenError, MissingFieldsError, NotFoundError, PersistenceError, ValidationError
from sports_arena.models import Competition, Participation, Player, Team, UserRole
from sports_arena.models.enums import CompetitionStatus, ParticipationStatus

START = datetime(2027, 3, 1, 9, 0, tzinfo=timezone.utc)


def competition_fields(**overrides):
    fields = {
        "name": "  Coupe du Quartier ",
        "category": "FOOTBALL",
        "start_date": START,
        "registration_deadline": START - timedelta(days=2),
        "end_date": START + timedelta(days=1),
        "rules": {"match_duration": 40, "offside_rule": False, "favourite_colour": "blue"},
    }
    fields.update(overrides)
    return fields


class TestCreate:

    async def test_creates_draft_with_join_code(self, session, make_user):
        organizer = await make_user(UserRole.ORGANIZER)

        competition = await CompetitionManager(session).create_competition(
            actor_for(organizer), competition_fields()
        )

        assert competition.status == "DRAFT"
        assert competition.name == "Coupe du Quartier"
        assert competition.organizer_id == organizer.id
        assert len(competition.join_code) == 8
        assert competition.rules == {"match_duration": 40, "offside_rule": False}

    async def test_participants_cannot_create(self, session, make_user):
        participant = await make_user()

        with pytest.raises(ForbiddenError):
            await CompetitionManager(session).create_competition(actor_for(participant), competition_fields())

    async def test_required_fields(self, session, make_user):
        organizer = await make_user(UserRole.ORGANIZER)

        with pytest.raises(MissingFieldsError) as exc_info:
            await CompetitionManager(session).create_competition(actor_for(organizer), {"name": ""})

        assert exc_info.value.fields == ["name", "start_date"]

    async def test_end_before_start(self, session, make_user):
        organizer = await make_user(UserRole.ORGANIZER)

        with pytest.raises(ValidationError):
            await CompetitionManager(session).create_competition(
                actor_for(organizer), competition_fields(end_date=START - timedelta(hours=1))
            )

    async def test_deadline_after_start(self, session, make_user):
        organizer = await make_user(UserRole.ORGANIZER)

        with pytest.raises(ValidationError):
            await CompetitionManager(session).create_competition(
                actor_for(organizer), competition_fields(registration_deadline=START + timedelta(hours=1))
            )

    async def test_unknown_category(self, session, make_user):
        organizer = await make_user(UserRole.ORGANIZER)

        with pytest.raises(ValidationError):
            await CompetitionManager(session).create_competition(
                actor_for(organizer), competition_fields(category="CURLING")
            )

    async def test_join_code_collision_is_retried(self, session, make_user, make_competition, monkeypatch):
        organizer = await make_user(UserRole.ORGANIZER)
        await make_competition(organizer, join_code="TAKEN123")
        codes = iter(["TAKEN123", "FRESH456"])
        monkeypatch.setattr(manager_module, "generate_join_code", lambda: next(codes))

        competition = await CompetitionManager(session).create_competition(
            actor_for(organizer), competition_fields()
        )

        assert competition.join_code == "FRESH456"

    async def test_gives_up_after_repeated_collisions(self, session, make_user, make_competition, monkeypatch):
        organizer = await make_user(UserRole.ORGANIZER)
        await make_competition(organizer, join_code="TAKEN123")
        monkeypatch.setattr(manager_module, "generate_join_code", lambda: "TAKEN123")

        with pytest.raises(PersistenceError):
            await CompetitionManager(session).create_competition(actor_for(organizer), competition_fields())


class TestQueries:

    async def test_join_code_lookup_is_public_only(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        await make_competition(organizer, join_code="PUBLIC12")
        await make_competition(organizer, join_code="HIDDEN12", is_public=False)
        manager = CompetitionManager(session)

        assert (await manager.get_by_join_code("public12")).join_code == "PUBLIC12"
        assert await manager.get_by_join_code("HIDDEN12") is None

    async def test_list_public_shows_open_competitions(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        football = await make_competition(organizer, category="FOOTBALL")
        await make_competition(organizer, category="TENNIS")
        await make_competition(organizer, status=CompetitionStatus.DRAFT)
        await make_competition(organizer, is_public=False)
        manager = CompetitionManager(session)

        assert len(await manager.list_public()) == 2
        assert [c.id for c in await manager.list_public(category="FOOTBALL")] == [football.id]

    async def test_list_upcoming(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        now = datetime.now(timezone.utc)
        later = await make_competition(organizer, name="Later", start_date=now + timedelta(days=30),
                                       registration_deadline=now + timedelta(days=25))
        soon = await make_competition(organizer, name="Soon", start_date=now + timedelta(days=3),
                                      registration_deadline=None)
        await make_competition(organizer, name="Closed", registration_deadline=now - timedelta(hours=1))
        await make_competition(organizer, name="Private", is_public=False)
        await make_competition(organizer, name="Draft", status=CompetitionStatus.DRAFT)

        upcoming = await CompetitionManager(session).list_upcoming(now=now)

        assert [c.id for c in upcoming] == [soon.id, later.id]
        assert len(await CompetitionManager(session).list_upcoming(now=now, limit=1)) == 1

    async def test_list_for_organizer(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        other = await make_user(UserRole.ORGANIZER)
        mine = await make_competition(organizer)
        await make_competition(other)

        assert [c.id for c in await CompetitionManager(session).list_for_organizer(organizer.id)] == [mine.id]

    async def test_get_malformed_id(self, session):
        with pytest.raises(NotFoundError):
            await CompetitionManager(session).get_competition("not-an-id")


class TestUpdate:

    async def test_organizer_is_immutable(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        other = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)

        updated = await CompetitionManager(session).update_competition(
            competition.id, actor_for(organizer),
            {"venue": "Stade Municipal", "organizer_id": other.id, "status": "COMPLETED", "join_code": "X"},
        )

        assert updated.venue == "Stade Municipal"
        assert updated.organizer_id == organizer.id
        assert updated.status == "OPEN"
        assert updated.join_code == competition.join_code

    async def test_schedule_checked_against_stored_dates(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)

        with pytest.raises(ValidationError):
            await CompetitionManager(session).update_competition(
                competition.id, actor_for(organizer),
                {"end_date": competition.start_date - timedelta(days=1)},
            )

    async def test_reschedule(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)
        new_start = competition.start_date + timedelta(days=20)

        updated = await CompetitionManager(session).update_competition(
            competition.id, actor_for(organizer), {"start_date": new_start}
        )

        assert updated.start_date.replace(tzinfo=None) == new_start.replace(tzinfo=None)

    async def test_dates_must_be_datetimes(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)

        with pytest.raises(ValidationError) as excinfo:
            await CompetitionManager(session).update_competition(
                competition.id, actor_for(organizer), {"start_date": "2027-04-01T10:00:00"}
            )

        assert excinfo.value.details == {"field": "start_date"}

    async def test_other_organizer_cannot_update(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        other = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)

        with pytest.raises(NotFoundError):
            await CompetitionManager(session).update_competition(competition.id, actor_for(other), {"venue": "X"})

    async def test_rules_merge(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        admin = await make_user(UserRole.ADMIN)
        competition = await make_competition(organizer, rules={"match_duration": 40})

        updated = await CompetitionManager(session).update_rules(
            competition.id, actor_for(admin), {"yellow_card_rule": "2 = suspension", "colour": "red"}
        )

        assert updated.rules == {"match_duration": 40, "yellow_card_rule": "2 = suspension"}


class TestDelete:

    async def test_delete_removes_dependent_rows(
        self, session, make_user, make_competition, make_participation, fetch
    ):
        organizer = await make_user(UserRole.ORGANIZER)
        captain = await make_user()
        competition = await make_competition(organizer)
        participation = await make_participation(competition, captain, ParticipationStatus.APPROVED)
        team = Team(competition_id=competition.id, captain_id=captain.id, name="Lions")
        session.add(team)
        await session.commit()
        player = Player(team_id=team.id, name="Zoe")
        session.add(player)
        await session.commit()

        await CompetitionManager(session).delete_competition(competition.id, actor_for(organizer))

        assert await fetch(Competition, competition.id) is None
        assert await fetch(Participation, participation.id) is None
        assert await fetch(Team, team.id) is None
        assert await fetch(Player, player.id) is None

    async def test_participant_cannot_delete(self, session, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        participant = await make_user()
        competition = await make_competition(organizer)

        with pytest.raises(ForbiddenError):
            await CompetitionManager(session).delete_competition(competition.id, actor_for(participant))
