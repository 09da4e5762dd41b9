from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from sports_arena.api.deps import jwt_handler
from sports_arena.api.main import create_app
from sports_arena.models import Competition, Participation, User, UserRole
from sports_arena.models.base import utcnow
from sports_arena.models.enums import ParticipationStatus
from sports_arena.participation import ParticipationRegistry

from conftest import PASSWORD


@pytest.fixture
async def client(database):
    app = create_app(rate_limit=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def auth(user):
    return {"Authorization": f"Bearer {jwt_handler.create_user_token(user)}"}


async def signup(client, email="amina@example.org", **fields):
    payload = {
        "email": email,
        "password": PASSWORD,
        "first_name": "Amina",
        "last_name": "Diallo",
    }
    payload.update(fields)
    return await client.post("/api/v1/auth/signup", json=payload)


async def count(database, model):
    async with database.async_session() as session:
        return await session.scalar(select(func.count(model.id)))


class TestAuth:

    async def test_signup_login_profile(self, client):
        response = await signup(client, phone_number="06 12 34 56 78")
        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["phone_number"] == "0612345678"

        response = await client.post(
            "/api/v1/auth/login", json={"email": "amina@example.org", "password": PASSWORD}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = await client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["email"] == "amina@example.org"

    async def test_signup_sends_welcome(self, client):
        token = (await signup(client)).json()["access_token"]

        response = await client.get("/api/v1/notifications", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["unread_count"] == 1
        assert response.json()["notifications"][0]["type"] == "WELCOME"

    async def test_duplicate_signup_conflicts(self, client, database):
        await signup(client)

        response = await signup(client, email="AMINA@example.org")

        assert response.status_code == 409
        assert response.json()["field"] == "email"
        assert await count(database, User) == 1

    async def test_missing_fields(self, client):
        response = await client.post("/api/v1/auth/signup", json={"email": "x@example.org"})

        assert response.status_code == 400
        assert response.json()["fields"] == ["password", "first_name", "last_name"]

    async def test_wrong_password(self, client):
        await signup(client)

        response = await client.post(
            "/api/v1/auth/login", json={"email": "amina@example.org", "password": "nope-nope-nope"}
        )

        assert response.status_code == 401

    async def test_profile_update_ignores_role(self, client):
        token = (await signup(client)).json()["access_token"]

        response = await client.put(
            "/api/v1/auth/profile",
            json={"city": "Lyon", "role": "ADMIN"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert response.json()["city"] == "Lyon"
        assert response.json()["role"] == "PARTICIPANT"

    async def test_profile_rejects_non_text_phone(self, client):
        token = (await signup(client)).json()["access_token"]

        response = await client.put(
            "/api/v1/auth/profile",
            json={"phone_number": 612345678},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 400
        assert response.json()["field"] == "phone_number"

    async def test_validate_phone(self, client):
        await signup(client, phone_number="06 12 34 56 78")

        response = await client.post("/api/v1/auth/validate-phone", json={"phone_number": "0612345678"})
        assert response.status_code == 200
        assert response.json() == {"phone_number": "0612345678", "country_code": "FR", "exists": True}

        response = await client.post(
            "/api/v1/auth/validate-phone", json={"phone_number": "0612345678", "country_code": "be"}
        )
        assert response.json()["exists"] is False

        response = await client.post("/api/v1/auth/validate-phone", json={})
        assert response.status_code == 400
        assert response.json()["fields"] == ["phone_number"]

    async def test_invalid_token(self, client):
        response = await client.get("/api/v1/auth/profile", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401

    async def test_missing_token(self, client):
        response = await client.get("/api/v1/auth/profile")

        # HTTPBearer answers 403 on older FastAPI releases
        assert response.status_code in (401, 403)


class TestCompetitionFlow:

    async def test_create_publish_participate(self, client, database, make_user):
        organizer = await make_user(UserRole.ORGANIZER)
        player = await make_user()
        start = utcnow() + timedelta(days=10)

        response = await client.post(
            "/api/v1/competitions",
            json={
                "name": "Summer Five-a-side",
                "category": "FOOTBALL",
                "start_date": start.isoformat(),
                "registration_deadline": (start - timedelta(days=3)).isoformat(),
            },
            headers=auth(organizer),
        )
        assert response.status_code == 201
        competition = response.json()
        assert competition["status"] == "DRAFT"

        response = await client.post(
            f"/api/v1/competitions/{competition['id']}/publish", headers=auth(organizer)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "OPEN"

        url = f"/api/v1/competitions/{competition['id']}/participate"
        response = await client.post(url, json={"message": "We are ready"}, headers=auth(player))
        assert response.status_code == 201
        participation = response.json()
        assert participation["status"] == "pending"

        response = await client.post(url, headers=auth(player))
        assert response.status_code == 409

        async with database.async_session() as session:
            active = await session.scalar(
                select(func.count(Participation.id)).where(Participation.user_id == player.id)
            )
        assert active == 1

        response = await client.get(
            f"/api/v1/competitions/{competition['id']}/participation", headers=auth(player)
        )
        assert response.json()["participating"] is True

        response = await client.post(
            f"/api/v1/participations/{participation['id']}/approve", headers=auth(organizer)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        response = await client.get(f"/api/v1/competitions/{competition['id']}/stats", headers=auth(player))
        assert response.json() == {"participant_count": 1, "pending_count": 0}

        response = await client.get(
            f"/api/v1/competitions/{competition['id']}/transitions", headers=auth(organizer)
        )
        assert [t["new_status"] for t in response.json()] == ["OPEN"]

    async def test_participants_cannot_create(self, client, make_user):
        participant = await make_user()

        response = await client.post(
            "/api/v1/competitions",
            json={"name": "Pickup", "start_date": (utcnow() + timedelta(days=1)).isoformat()},
            headers=auth(participant),
        )

        assert response.status_code == 403

    async def test_stats_for_malformed_id(self, client, make_user):
        user = await make_user()

        response = await client.get("/api/v1/competitions/not-an-id/stats", headers=auth(user))

        assert response.status_code == 200
        assert response.json() == {"participant_count": 0, "pending_count": 0}

    async def test_private_stats_hidden(self, client, make_user, make_competition, make_participation):
        organizer = await make_user(UserRole.ORGANIZER)
        stranger = await make_user()
        competition = await make_competition(organizer, is_public=False)
        await make_participation(competition, await make_user(), ParticipationStatus.APPROVED)
        url = f"/api/v1/competitions/{competition.id}/stats"

        assert (await client.get(url)).status_code in (401, 403)
        assert (await client.get(url, headers=auth(stranger))).json() == {"participant_count": 0, "pending_count": 0}
        assert (await client.get(url, headers=auth(organizer))).json() == {"participant_count": 1, "pending_count": 0}

    async def test_reschedule(self, client, make_user, make_competition, fetch):
        organizer = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)
        new_start = utcnow() + timedelta(days=20)
        url = f"/api/v1/competitions/{competition.id}"

        response = await client.put(
            url,
            json={"start_date": new_start.isoformat(), "registration_deadline": (new_start - timedelta(days=2)).isoformat()},
            headers=auth(organizer),
        )

        assert response.status_code == 200
        stored = await fetch(Competition, competition.id)
        assert stored.start_date.replace(tzinfo=None) == new_start.replace(tzinfo=None)

        response = await client.put(
            url, json={"end_date": (new_start - timedelta(days=1)).isoformat()}, headers=auth(organizer)
        )
        assert response.status_code == 400
        assert response.json()["field"] == "end_date"

        response = await client.put(url, json={"start_date": "next tuesday"}, headers=auth(organizer))
        assert response.status_code == 422

    async def test_upcoming(self, client, make_user, make_competition, make_participation):
        organizer = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)
        await make_competition(organizer, is_public=False)
        await make_participation(competition, await make_user(), ParticipationStatus.APPROVED)

        response = await client.get("/api/v1/competitions/upcoming")

        assert response.status_code == 200
        body = response.json()
        assert [c["id"] for c in body] == [competition.id]
        assert body[0]["participant_count"] == 1
        assert body[0]["days_until_start"] == 7

    async def test_unknown_competition(self, client, make_user):
        user = await make_user()

        response = await client.get("/api/v1/competitions/not-an-id", headers=auth(user))

        assert response.status_code == 404

    async def test_private_competition_hidden(self, client, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        stranger = await make_user()
        competition = await make_competition(organizer, is_public=False)

        assert (await client.get(f"/api/v1/competitions/{competition.id}", headers=auth(stranger))).status_code == 404
        assert (await client.get(f"/api/v1/competitions/{competition.id}", headers=auth(organizer))).status_code == 200

    async def test_public_listing(self, client, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)

        response = await client.get("/api/v1/competitions/public")

        assert [c["id"] for c in response.json()] == [competition.id]

    async def test_update_statuses_requires_organizer(self, client, make_user):
        participant = await make_user()

        response = await client.post("/api/v1/competitions/update-statuses", headers=auth(participant))

        assert response.status_code == 403

    async def test_update_statuses(self, client, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(
            organizer,
            start_date=utcnow() - timedelta(minutes=5),
            registration_deadline=utcnow() - timedelta(days=1),
        )

        response = await client.post("/api/v1/competitions/update-statuses", headers=auth(organizer))

        assert response.status_code == 200
        body = response.json()
        assert body["updates_count"] == 1
        assert body["updates"][0]["competition_id"] == competition.id
        assert body["updates"][0]["new_status"] == "IN_PROGRESS"
        assert body["failures"] == []

    async def test_delete(self, client, make_user, make_competition):
        organizer = await make_user(UserRole.ORGANIZER)
        competition = await make_competition(organizer)

        response = await client.delete(f"/api/v1/competitions/{competition.id}", headers=auth(organizer))
        assert response.status_code == 204

        response = await client.get(f"/api/v1/competitions/{competition.id}", headers=auth(organizer))
        assert response.status_code == 404


class TestTeams:

    async def test_captain_builds_roster_admin_cannot_edit(
        self, client, make_user, make_competition, make_participation
    ):
        organizer = await make_user(UserRole.ORGANIZER)
        captain = await make_user()
        admin = await make_user(UserRole.ADMIN)
        competition = await make_competition(organizer)
        await make_participation(competition, captain, ParticipationStatus.APPROVED)

        response = await client.post(
            "/api/v1/teams",
            json={"competition_id": competition.id, "name": "Les Lions", "players": [{"name": "Zoe", "number": 9}]},
            headers=auth(captain),
        )
        assert response.status_code == 201
        team = response.json()
        player_id = team["players"][0]["id"]

        response = await client.put(f"/api/v1/players/{player_id}", json={"number": 7}, headers=auth(admin))
        assert response.status_code == 403

        response = await client.put(f"/api/v1/players/{player_id}", json={"number": 7}, headers=auth(captain))
        assert response.status_code == 200
        assert response.json()["number"] == 7

        response = await client.delete(f"/api/v1/players/{player_id}", headers=auth(captain))
        assert response.status_code == 204


    async def test_captain_updates_and_deletes_team(
        self, client, make_user, make_competition, make_participation
    ):
        organizer = await make_user(UserRole.ORGANIZER)
        captain = await make_user()
        stranger = await make_user()
        competition = await make_competition(organizer)
        await make_participation(competition, captain, ParticipationStatus.APPROVED)
        team = (await client.post(
            "/api/v1/teams", json={"competition_id": competition.id, "name": "Les Lions"}, headers=auth(captain)
        )).json()
        url = f"/api/v1/teams/{team['id']}"

        assert (await client.put(url, json={"name": "Hijacked"}, headers=auth(stranger))).status_code == 403

        response = await client.put(url, json={"name": "Les Aigles", "colors": "blue"}, headers=auth(captain))
        assert response.status_code == 200
        assert response.json()["name"] == "Les Aigles"

        assert (await client.delete(url, headers=auth(captain))).status_code == 204
        assert (await client.get(url, headers=auth(captain))).status_code == 404


class TestOperations:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_security_headers(self, client):
        response = await client.get("/")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Process-Time" in response.headers

    async def test_admin_metrics(self, client, make_user):
        admin = await make_user(UserRole.ADMIN)
        participant = await make_user()
        await client.get("/health")

        assert (await client.get("/api/v1/admin/metrics", headers=auth(participant))).status_code == 403

        response = await client.get("/api/v1/admin/metrics", headers=auth(admin))
        assert response.status_code == 200
        assert response.json()["GET /health"]["count"] >= 1

    async def test_storage_errors_become_503(self, client, make_user, monkeypatch):
        user = await make_user()

        async def broken(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        monkeypatch.setattr(ParticipationRegistry, "list_user_participations", broken)

        response = await client.get("/api/v1/participations/mine", headers=auth(user))

        assert response.status_code == 503


async def test_signup_is_rate_limited(database):
    app = create_app(rate_limit=True)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        statuses = [
            (await signup(client, email=f"user{n}@example.org")).status_code
            for n in range(4)
        ]

    assert statuses == [201, 201, 201, 429]
