from datetime import datetime
from pydantic import BaseModel
from typing import Any, Dict, Optional


class ParticipateRequest(BaseModel):
    team_data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class ReviewRequest(BaseModel):
    message: Optional[str] = None


class ParticipationResponse(BaseModel):
    id: str
    competition_id: str
    user_id: str
    status: str
    team_data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    response_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParticipationCheck(BaseModel):
    competition_id: str
    participating: bool
