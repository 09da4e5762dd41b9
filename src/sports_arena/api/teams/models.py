from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional


class PlayerCreate(BaseModel):
    name: str
    age: Optional[int] = Field(None, ge=0)
    position: Optional[str] = None
    number: Optional[int] = Field(None, ge=0)
    photo_url: Optional[str] = None


class PlayerResponse(BaseModel):
    id: str
    team_id: str
    name: str
    age: Optional[int] = None
    position: Optional[str] = None
    number: Optional[int] = None
    photo_url: Optional[str] = None

    class Config:
        from_attributes = True


class TeamCreate(BaseModel):
    competition_id: str
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    colors: Optional[str] = None
    players: List[PlayerCreate] = []


class TeamUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    colors: Optional[str] = None


class TeamResponse(BaseModel):
    id: str
    competition_id: str
    captain_id: str
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    colors: Optional[str] = None
    created_at: datetime
    players: List[PlayerResponse] = []

    class Config:
        from_attributes = True
