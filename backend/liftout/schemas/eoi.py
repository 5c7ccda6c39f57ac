"""Expression-of-interest Pydantic schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class EOICreate(BaseModel):
    """Schema for creating an expression of interest."""
    from_type: str  # team | company
    from_id: UUID
    to_type: str  # team | opportunity
    to_id: UUID
    message: Optional[str] = None
    interest_level: str = "medium"
    specific_role: Optional[str] = None
    timeline: Optional[str] = None
    budget_range: Optional[str] = None


class EOIRespond(BaseModel):
    response: str  # accepted | declined


class EOIResponse(BaseModel):
    """Schema for EOI response. status is evaluated at read time, so it may be 'expired'."""
    id: UUID
    from_type: str
    from_id: UUID
    to_type: str
    to_id: UUID
    message: Optional[str] = None
    interest_level: str
    specific_role: Optional[str] = None
    timeline: Optional[str] = None
    budget_range: Optional[str] = None
    status: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    conversation_id: Optional[str] = None
    
    model_config = ConfigDict(from_attributes=True)
    
    @classmethod
    def from_model(cls, eoi, now: Optional[datetime] = None) -> "EOIResponse":
        response = cls.model_validate(eoi)
        response.status = eoi.effective_status(now)
        return response
