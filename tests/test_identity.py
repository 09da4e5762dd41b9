import pytest
from sqlalchemy import func, select

from conftest import PASSWORD, actor_for
from sports_arena.errors import (
    DuplicateEmailError,
    DuplicatePhoneError,
    MissingFieldsError,
    NotFoundError,
    ValidationError,
)
from sports_arena.identity import Actor, IdentityGuard
from sports_arena.models import User, UserRole


def signup_fields(**overrides):
    fields = {
        "email": "amina@example.org",
        "password": PASSWORD,
        "first_name": "Amina",
        "last_name": "Diallo",
    }
    fields.update(overrides)
    return fields


async def user_count(session):
    return await session.scalar(select(func.count(User.id)))


class TestRegisterUser:

    async def test_registers_participant(self, session, hasher):
        user = await IdentityGuard(session, hasher).register_user(
            signup_fields(phone_number="06 12 34 56 78", city="Lyon")
        )

        assert user.role == "PARTICIPANT"
        assert user.phone_number == "0612345678"
        assert user.country_code == "FR"
        assert user.city == "Lyon"
        assert user.password_hash != PASSWORD
        assert hasher.verify(PASSWORD, user.password_hash)

    async def test_missing_fields_are_listed(self, session, hasher):
        with pytest.raises(MissingFieldsError) as exc_info:
            await IdentityGuard(session, hasher).register_user({"email": "x@example.org", "first_name": " "})

        assert exc_info.value.fields == ["password", "first_name", "last_name"]
        assert await user_count(session) == 0

    async def test_duplicate_email_keeps_one_account(self, session, hasher):
        guard = IdentityGuard(session, hasher)
        await guard.register_user(signup_fields())

        with pytest.raises(DuplicateEmailError):
            await guard.register_user(signup_fields(email="AMINA@example.org", first_name="Other"))

        assert await user_count(session) == 1

    async def test_duplicate_email_caught_by_storage(self, session, hasher, monkeypatch):
        guard = IdentityGuard(session, hasher)
        await guard.register_user(signup_fields())

        # The lookup misses once, as it would for a request racing the first insert
        original = IdentityGuard.email_exists
        calls = {"n": 0}

        async def racing_lookup(self, email):
            calls["n"] += 1
            if calls["n"] == 1:
                return False
            return await original(self, email)

        monkeypatch.setattr(IdentityGuard, "email_exists", racing_lookup)

        with pytest.raises(DuplicateEmailError):
            await guard.register_user(signup_fields())

        assert await user_count(session) == 1

    async def test_duplicate_phone_in_same_country(self, session, hasher):
        guard = IdentityGuard(session, hasher)
        await guard.register_user(signup_fields(phone_number="0612345678", country_code="fr"))

        with pytest.raises(DuplicatePhoneError):
            await guard.register_user(signup_fields(email="b@example.org", phone_number="06 12 34 56 78"))

    async def test_same_phone_in_other_country_is_allowed(self, session, hasher):
        guard = IdentityGuard(session, hasher)
        await guard.register_user(signup_fields(phone_number="0612345678", country_code="FR"))

        user = await guard.register_user(
            signup_fields(email="b@example.org", phone_number="0612345678", country_code="SN")
        )

        assert user.country_code == "SN"

    async def test_email_checked_before_phone(self, session, hasher):
        guard = IdentityGuard(session, hasher)
        await guard.register_user(signup_fields(phone_number="0612345678"))

        with pytest.raises(DuplicateEmailError):
            await guard.register_user(signup_fields(phone_number="0612345678"))

    async def test_short_password(self, session, hasher):
        with pytest.raises(ValidationError):
            await IdentityGuard(session, hasher).register_user(signup_fields(password="short"))

    async def test_admin_cannot_sign_up(self, session, hasher):
        with pytest.raises(ValidationError):
            await IdentityGuard(session, hasher).register_user(signup_fields(role="ADMIN"))

    async def test_category_kept_for_organizers_only(self, session, hasher):
        guard = IdentityGuard(session, hasher)

        organizer = await guard.register_user(
            signup_fields(role="ORGANIZER", competition_category="FOOTBALL")
        )
        participant = await guard.register_user(
            signup_fields(email="p@example.org", competition_category="FOOTBALL")
        )

        assert organizer.competition_category == "FOOTBALL"
        assert participant.competition_category is None


class TestUpdateUser:

    async def test_allow_listed_fields_only(self, session, hasher, make_user):
        user = await make_user()
        original_email = user.email

        updated = await IdentityGuard(session, hasher).update_user(
            user.id, actor_for(user),
            {"bio": "Left back", "email": "new@example.org", "role": "ADMIN", "password_hash": "x"},
        )

        assert updated.bio == "Left back"
        assert updated.email == original_email
        assert updated.role == "PARTICIPANT"

    async def test_phone_change_checked_for_uniqueness(self, session, hasher, make_user):
        await make_user(phone_number="0700000000")
        user = await make_user()

        with pytest.raises(DuplicatePhoneError):
            await IdentityGuard(session, hasher).update_user(
                user.id, actor_for(user), {"phone_number": "0700000000"}
            )

    async def test_keeping_own_phone_is_fine(self, session, hasher, make_user):
        user = await make_user(phone_number="0700000000")

        updated = await IdentityGuard(session, hasher).update_user(
            user.id, actor_for(user), {"phone_number": "07 00 00 00 00", "city": "Dakar"}
        )

        assert updated.city == "Dakar"

    async def test_other_users_profile_is_hidden(self, session, hasher, make_user):
        user = await make_user()
        other = await make_user()

        with pytest.raises(NotFoundError):
            await IdentityGuard(session, hasher).update_user(user.id, actor_for(other), {"bio": "hacked"})

    async def test_admin_may_update_any_profile(self, session, hasher, make_user):
        user = await make_user()
        admin = await make_user(UserRole.ADMIN)

        updated = await IdentityGuard(session, hasher).update_user(user.id, actor_for(admin), {"city": "Rabat"})

        assert updated.city == "Rabat"

    async def test_names_cannot_be_blank(self, session, hasher, make_user):
        user = await make_user()

        with pytest.raises(ValidationError):
            await IdentityGuard(session, hasher).update_user(user.id, actor_for(user), {"first_name": ""})


    @pytest.mark.parametrize("field", ["phone_number", "country_code", "city"])
    async def test_non_text_values_name_the_field(self, session, hasher, make_user, field):
        user = await make_user()

        with pytest.raises(ValidationError) as excinfo:
            await IdentityGuard(session, hasher).update_user(user.id, actor_for(user), {field: 612345678})

        assert excinfo.value.details == {"field": field}


class TestCheckPhone:

    async def test_taken_and_free_numbers(self, session, hasher, make_user):
        await make_user(phone_number="0700000000", country_code="SN")
        guard = IdentityGuard(session, hasher)

        assert await guard.check_phone("07 00 00 00 00", "sn") == {
            "phone_number": "0700000000", "country_code": "SN", "exists": True,
        }
        assert (await guard.check_phone("0700000000", "CI"))["exists"] is False

    async def test_phone_number_required(self, session, hasher):
        with pytest.raises(MissingFieldsError):
            await IdentityGuard(session, hasher).check_phone("   ", "SN")

    async def test_phone_number_must_be_text(self, session, hasher):
        with pytest.raises(ValidationError) as excinfo:
            await IdentityGuard(session, hasher).check_phone(700000000, "SN")

        assert excinfo.value.details == {"field": "phone_number"}


class TestAuthenticate:

    async def test_valid_credentials(self, session, hasher, make_user):
        user = await make_user(email="login@example.org")

        authenticated = await IdentityGuard(session, hasher).authenticate("Login@Example.org", PASSWORD)

        assert authenticated.id == user.id

    async def test_wrong_password(self, session, hasher, make_user):
        await make_user(email="login@example.org")

        assert await IdentityGuard(session, hasher).authenticate("login@example.org", "wrong-password") is None

    async def test_unknown_email(self, session, hasher):
        assert await IdentityGuard(session, hasher).authenticate("ghost@example.org", PASSWORD) is None


def test_actor_from_token():
    actor = Actor.from_token({"user_id": "u1", "role": "ORGANIZER", "email": "o@example.org"})

    assert actor.is_organizer
    assert not actor.is_admin
    assert actor.role == UserRole.ORGANIZER
