"""Application and offer Pydantic schemas."""
from datetime import datetime, timezone
from typing import Optional, Literal
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Columns store naive UTC; offset-bearing input is converted, naive input is taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ApplicationContent(BaseModel):
    """What a team submits with an application."""
    cover_letter: Optional[str] = None
    proposed_compensation: Optional[int] = Field(None, ge=0)
    proposed_equity: Optional[str] = None
    availability_date: Optional[datetime] = None
    custom_proposal: Optional[str] = None
    team_fit_explanation: Optional[str] = None
    questions_for_company: Optional[str] = None
    attachments: list[str] = []

    @field_validator("availability_date")
    @classmethod
    def availability_in_utc(cls, value):
        return to_naive_utc(value)


class ApplicationCreate(ApplicationContent):
    """Request body for submitting an application."""
    team_id: UUID
    opportunity_id: UUID


class InterviewDetails(BaseModel):
    """Embedded interview sub-record captured when moving to interviewing."""
    scheduled_for: Optional[datetime] = None
    format: Literal["video", "in_person", "phone"] = "video"
    duration_minutes: int = Field(60, gt=0, le=8 * 60)
    participants: list[str] = []
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None


class InterviewFeedback(BaseModel):
    """One interviewer's feedback on the team."""
    interviewer_name: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    strengths: list[str] = []
    concerns: list[str] = []
    recommendation: Literal["proceed", "hold", "reject"]
    notes: Optional[str] = None


class OfferDetails(BaseModel):
    """Terms of an offer. Compensation and start date are mandatory."""
    compensation: int = Field(..., gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    equity_offer: Optional[str] = None
    benefits: list[str] = []
    signing_bonus: Optional[int] = Field(None, ge=0)
    start_date: datetime
    additional_terms: Optional[str] = None
    response_deadline: Optional[datetime] = None

    @field_validator("start_date", "response_deadline")
    @classmethod
    def dates_in_utc(cls, value):
        return to_naive_utc(value)


class TransitionPayload(BaseModel):
    """Optional data accompanying a status transition."""
    rejection_reason: Optional[str] = None
    response_message: Optional[str] = None
    recruiter_notes: Optional[str] = None
    hiring_manager_notes: Optional[str] = None
    interview: Optional[InterviewDetails] = None
    offer: Optional[OfferDetails] = None
    note: Optional[str] = None


class TransitionRequest(BaseModel):
    """Request body for POST /applications/{id}/transition."""
    status: str
    payload: TransitionPayload = TransitionPayload()


class OfferRespondRequest(BaseModel):
    response: str  # accept | decline
    message: Optional[str] = None


class OfferResponse(BaseModel):
    """Schema for offer sub-record response."""
    id: UUID
    application_id: UUID
    compensation: int
    currency: str
    equity_offer: Optional[str] = None
    benefits: list[str] = []
    signing_bonus: Optional[int] = None
    start_date: Optional[datetime] = None
    additional_terms: Optional[str] = None
    response_deadline: Optional[datetime] = None
    status: str
    response_message: Optional[str] = None
    created_at: datetime
    responded_at: Optional[datetime] = None
    
    model_config = ConfigDict(from_attributes=True)


class ApplicationResponse(BaseModel):
    """Schema for application response."""
    id: UUID
    team_id: UUID
    opportunity_id: UUID
    applied_by: UUID
    status: str
    cover_letter: Optional[str] = None
    proposed_compensation: Optional[int] = None
    proposed_equity: Optional[str] = None
    availability_date: Optional[datetime] = None
    custom_proposal: Optional[str] = None
    team_fit_explanation: Optional[str] = None
    questions_for_company: Optional[str] = None
    attachments: list[str] = []
    interview_details: Optional[dict] = None
    interview_feedback: list[dict] = []
    rejection_reason: Optional[str] = None
    response_message: Optional[str] = None
    applied_at: datetime
    reviewed_at: Optional[datetime] = None
    interview_scheduled_at: Optional[datetime] = None
    offer_made_at: Optional[datetime] = None
    final_decision_at: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None
    offer: Optional[OfferResponse] = None
    
    model_config = ConfigDict(from_attributes=True)


class ApplicationResult(BaseModel):
    """Updated application plus a human-readable status message."""
    application: ApplicationResponse
    message: str


class ApplicationEventResponse(BaseModel):
    from_status: Optional[str] = None
    to_status: str
    actor_id: UUID
    note: Optional[str] = None
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class ApplicationStats(BaseModel):
    """Counts by status of applications sent by the user's teams and received by their companies."""
    team_applications: dict[str, int]
    received_applications: dict[str, int]
