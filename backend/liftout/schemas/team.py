"""Team membership Pydantic schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class MemberResponse(BaseModel):
    id: UUID
    team_id: UUID
    user_id: UUID
    role: str
    status: str
    is_lead: bool
    is_admin: bool
    joined_at: datetime
    left_at: Optional[datetime] = None
    
    model_config = ConfigDict(from_attributes=True)


class MemberCreate(BaseModel):
    user_id: UUID
    role: Optional[str] = None
    is_lead: Optional[bool] = None
    is_admin: bool = False


class MemberUpdate(BaseModel):
    role: Optional[str] = None
    is_lead: Optional[bool] = None
    is_admin: Optional[bool] = None


class RosterDecisionResponse(BaseModel):
    """Result of a roster guard check."""
    allowed: bool
    reason: Optional[str] = None
    code: Optional[str] = None


class LeaveResponse(BaseModel):
    team_id: str
    user_id: str
    team_size: int
    message: str
