"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these exceptions; the API renders them with the HTTP status
carried by each class.
"""

from typing import Any, Dict, List, Optional


class ArenaError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.message}
        payload.update(self.details)
        return payload


class ValidationError(ArenaError):
    """Missing or malformed input, correctable by the user."""

    status_code = 400


class MissingFieldsError(ValidationError):
    def __init__(self, fields: List[str]):
        self.fields = list(fields)
        super().__init__(
            f"Missing required fields: {', '.join(self.fields)}",
            {"fields": self.fields},
        )


class DuplicateError(ArenaError):
    """A uniqueness rule would be broken."""

    status_code = 409


class DuplicateEmailError(DuplicateError):
    def __init__(self, email: str):
        super().__init__("This email is already in use", {"field": "email"})
        self.email = email


class DuplicatePhoneError(DuplicateError):
    def __init__(self, phone_number: str, country_code: Optional[str]):
        super().__init__(
            "This phone number is already in use",
            {"field": "phone_number", "country_code": country_code},
        )
        self.phone_number = phone_number
        self.country_code = country_code


class DuplicateParticipationError(DuplicateError):
    def __init__(self, competition_id: str, user_id: str):
        super().__init__(
            "User already has an active participation in this competition",
            {"competition_id": competition_id},
        )
        self.competition_id = competition_id
        self.user_id = user_id


class ForbiddenError(ArenaError):
    status_code = 403


class NotFoundError(ArenaError):
    status_code = 404


class PersistenceError(ArenaError):
    """Storage I/O failure. The caller may retry."""

    status_code = 503
