from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class CompetitionCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    venue: Optional[str] = None
    address: Optional[str] = None
    max_participants: Optional[int] = Field(None, ge=1)
    is_public: bool = True
    registration_deadline: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    rules: Optional[Dict[str, Any]] = None


class CompetitionUpdate(BaseModel):
    """Editable fields; organizer, join code and status are not accepted here."""
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    venue: Optional[str] = None
    address: Optional[str] = None
    max_participants: Optional[int] = Field(None, ge=1)
    is_public: Optional[bool] = None
    registration_deadline: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class CompetitionResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    join_code: str
    organizer_id: str
    category: str
    venue: Optional[str] = None
    address: Optional[str] = None
    max_participants: Optional[int] = None
    is_public: bool
    rules: Optional[Dict[str, Any]] = None
    registration_deadline: Optional[datetime] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UpcomingCompetition(CompetitionResponse):
    participant_count: int
    days_until_start: int


class StatusOverride(BaseModel):
    status: str
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class TransitionResponse(BaseModel):
    competition_id: str
    old_status: str
    new_status: str
    reason: Optional[str] = None
    triggered_by: str
    timestamp: datetime

    class Config:
        from_attributes = True


class SweepResponse(BaseModel):
    checked: int
    updates_count: int
    updates: List[Dict[str, Any]]
    failures: List[Dict[str, Any]]


class CompetitionStats(BaseModel):
    participant_count: int
    pending_count: int
