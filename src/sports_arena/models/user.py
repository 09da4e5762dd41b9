"""
User accounts.

Email is globally unique, and so is the (phone_number, country_code) pair.
Both are enforced by the storage layer; the identity guard only turns the
constraint violations into friendly errors.
"""

from sqlalchemy import Column, String, DateTime, Boolean, Text, UniqueConstraint
from .base import Base, new_id, utcnow
from .enums import UserRole


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)

    # Profile
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone_number = Column(String(32))
    country_code = Column(String(8))
    date_of_birth = Column(DateTime(timezone=True))
    address = Column(String(255))
    city = Column(String(100))
    commune = Column(String(100))
    bio = Column(Text)
    photo_url = Column(String(512))

    role = Column(String(20), nullable=False, default=UserRole.PARTICIPANT.value)
    competition_category = Column(String(20))  # organizers only
    is_verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("phone_number", "country_code", name="uq_users_phone_country"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("id", new_id())
        kwargs.setdefault("role", UserRole.PARTICIPANT.value)
        kwargs.setdefault("is_verified", False)

        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)

        super().__init__(**kwargs)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
