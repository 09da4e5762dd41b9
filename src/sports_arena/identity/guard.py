from typing import Any, Dict, Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, and_
from sports_arena.config import config
from sports_arena.errors import (
    DuplicateEmailError,
    DuplicatePhoneError,
    MissingFieldsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from sports_arena.identity.actor import Actor
from sports_arena.identity.passwords import PasswordHasher
from sports_arena.models.base import is_valid_id, utcnow
from sports_arena.models.enums import CompetitionCategory, UserRole
from sports_arena.models.user import User
import logging

logger = logging.getLogger(__name__)

REQUIRED_SIGNUP_FIELDS = ("email", "password", "first_name", "last_name")

SIGNUP_ROLES = (UserRole.ORGANIZER, UserRole.PARTICIPANT)

PROFILE_FIELDS = (
    "phone_number", "country_code", "date_of_birth", "address",
    "city", "commune", "bio", "photo_url",
)

# Fields a user may change on their own profile. Anything else is dropped.
UPDATABLE_FIELDS = frozenset({
    "first_name", "last_name", "phone_number", "country_code", "address",
    "city", "commune", "bio", "competition_category", "photo_url",
})


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone_number: Optional[str]) -> Optional[str]:
    if not phone_number:
        return None
    return "".join(phone_number.split()) or None


def _check_text_fields(fields: Dict[str, Any], names: Iterable[str]):
    for name in names:
        value = fields.get(name)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{name} must be a string", {"field": name})


def _parse_category(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    try:
        return CompetitionCategory(value).value
    except ValueError:
        raise ValidationError(f"Unknown competition category: {value}", {"field": "competition_category"})


class IdentityGuard:
    """
    Signup and profile updates under the global uniqueness rules.

    The existence checks give precise error messages; the unique constraints
    on the users table are what closes the race between two concurrent
    signups, and their violations are mapped back to the same errors.
    """

    def __init__(self, db_session: AsyncSession, hasher: Optional[PasswordHasher] = None):
        self.db = db_session
        self.hasher = hasher or PasswordHasher()

    async def register_user(self, fields: Dict[str, Any],
                            allowed_roles: Iterable[UserRole] = SIGNUP_ROLES) -> User:
        """Create a user account, enforcing email and phone uniqueness."""

        missing = [
            name for name in REQUIRED_SIGNUP_FIELDS
            if not isinstance(fields.get(name), str) or not fields[name].strip()
        ]
        if missing:
            raise MissingFieldsError(missing)

        password = fields["password"]
        if len(password) < config.min_password_length:
            raise ValidationError(
                f"Password must be at least {config.min_password_length} characters long",
                {"field": "password"},
            )

        try:
            role = UserRole(fields.get("role") or UserRole.PARTICIPANT.value)
        except ValueError:
            raise ValidationError(f"Unknown role: {fields.get('role')}", {"field": "role"})
        if role not in tuple(allowed_roles):
            raise ValidationError(f"Role {role.value} cannot be chosen at signup", {"field": "role"})

        _check_text_fields(fields, ("phone_number", "country_code", "competition_category"))

        email = normalize_email(fields["email"])
        phone_number = normalize_phone(fields.get("phone_number"))
        country_code = (fields.get("country_code") or config.default_country_code).upper()

        if await self.email_exists(email):
            raise DuplicateEmailError(email)

        if phone_number and await self.phone_exists(phone_number, country_code):
            raise DuplicatePhoneError(phone_number, country_code)

        profile = {name: fields.get(name) for name in PROFILE_FIELDS}
        profile["phone_number"] = phone_number
        profile["country_code"] = country_code

        user = User(
            email=email,
            password_hash=self.hasher.hash(password),
            first_name=fields["first_name"].strip(),
            last_name=fields["last_name"].strip(),
            role=role.value,
            competition_category=(
                _parse_category(fields.get("competition_category"))
                if role == UserRole.ORGANIZER else None
            ),
            **profile,
        )

        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise await self._duplicate_from_conflict(email, phone_number, country_code)

        await self.db.refresh(user)

        logger.info(f"Registered {role.value.lower()} user {user.id}")
        return user

    async def update_user(self, user_id: str, actor: Actor, fields: Dict[str, Any]) -> User:
        """Apply the allow-listed profile fields; other keys are ignored."""

        # Other users' profiles are reported as missing
        if actor.user_id != user_id and not actor.is_admin:
            raise NotFoundError("User not found")

        user = await self.get_user(user_id)

        changes = {name: value for name, value in fields.items() if name in UPDATABLE_FIELDS}
        dropped = sorted(set(fields) - set(changes))
        if dropped:
            logger.debug(f"Ignoring non-updatable profile fields for {user_id}: {dropped}")

        _check_text_fields(changes, UPDATABLE_FIELDS)

        if "competition_category" in changes:
            if user.role == UserRole.ORGANIZER.value:
                changes["competition_category"] = _parse_category(changes["competition_category"])
            else:
                del changes["competition_category"]

        for name in ("first_name", "last_name"):
            if name in changes and (not changes[name] or not str(changes[name]).strip()):
                raise ValidationError(f"{name} cannot be empty", {"field": name})

        if "phone_number" in changes:
            changes["phone_number"] = normalize_phone(changes["phone_number"])
        if changes.get("country_code"):
            changes["country_code"] = changes["country_code"].upper()

        phone_number = changes.get("phone_number", user.phone_number)
        country_code = changes.get("country_code", user.country_code)
        phone_changed = (phone_number, country_code) != (user.phone_number, user.country_code)
        if phone_number and phone_changed and await self.phone_exists(phone_number, country_code, exclude_user_id=user.id):
            raise DuplicatePhoneError(phone_number, country_code)

        for name, value in changes.items():
            setattr(user, name, value)
        user.updated_at = utcnow()

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicatePhoneError(phone_number, country_code)

        await self.db.refresh(user)

        logger.info(f"Updated profile of user {user_id} ({', '.join(sorted(changes)) or 'no changes'})")
        return user

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, None otherwise."""
        user = await self.db.scalar(select(User).where(User.email == normalize_email(email)))
        if not user or not self.hasher.verify(password, user.password_hash):
            logger.info("Failed login attempt")
            return None
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id) if is_valid_id(user_id) else None
        if not user:
            raise NotFoundError("User not found")
        return user

    async def email_exists(self, email: str) -> bool:
        existing = await self.db.scalar(select(User.id).where(User.email == normalize_email(email)))
        return existing is not None

    async def check_phone(self, phone_number: Any, country_code: Any = None) -> Dict[str, Any]:
        """Tell whether a phone number is already taken in a country, normalized the way signup stores it."""
        fields = {"phone_number": phone_number, "country_code": country_code}
        _check_text_fields(fields, fields)

        phone_number = normalize_phone(phone_number)
        if not phone_number:
            raise MissingFieldsError(["phone_number"])
        country_code = (country_code or config.default_country_code).upper()

        return {
            "phone_number": phone_number,
            "country_code": country_code,
            "exists": await self.phone_exists(phone_number, country_code),
        }

    async def phone_exists(self, phone_number: str, country_code: Optional[str],
                           exclude_user_id: Optional[str] = None) -> bool:
        query = select(User.id).where(and_(
            User.phone_number == phone_number,
            User.country_code == country_code,
        ))
        if exclude_user_id:
            query = query.where(User.id != exclude_user_id)
        return await self.db.scalar(query) is not None

    async def _duplicate_from_conflict(self, email: str, phone_number: Optional[str],
                                       country_code: str) -> Exception:
        """Work out which unique constraint a failed insert ran into."""
        if await self.email_exists(email):
            return DuplicateEmailError(email)
        if phone_number and await self.phone_exists(phone_number, country_code):
            return DuplicatePhoneError(phone_number, country_code)
        return PersistenceError("Could not create user")
