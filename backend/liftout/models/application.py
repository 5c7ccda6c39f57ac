from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index, text
import uuid

from liftout.database import Base
from liftout.database_types import GUID, JSON


class ApplicationStatus(str, Enum):
    """Valid states for a team application"""
    SUBMITTED = "submitted"
    REVIEWING = "reviewing"
    INTERVIEWING = "interviewing"
    ACCEPTED = "accepted"  # Offer extended; the team's answer lives on Offer.status
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


# Statuses that occupy the (team, opportunity) slot. Rejected and withdrawn
# applications never block a resubmission.
BLOCKING_STATUSES = (
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.REVIEWING,
    ApplicationStatus.INTERVIEWING,
    ApplicationStatus.ACCEPTED,
)

_BLOCKING_SQL = text(
    "status IN (" + ", ".join(f"'{s.value}'" for s in BLOCKING_STATUSES) + ")"
)


class Application(Base):
    __tablename__ = "applications"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    team_id = Column(GUID, ForeignKey("teams.id"), nullable=False, index=True)
    opportunity_id = Column(GUID, ForeignKey("opportunities.id"), nullable=False, index=True)
    applied_by = Column(GUID, ForeignKey("users.id"), nullable=False)
    
    # State machine
    status = Column(String, nullable=False, default=ApplicationStatus.SUBMITTED.value)
    
    # Application content
    cover_letter = Column(Text, nullable=True)
    proposed_compensation = Column(Integer, nullable=True)
    proposed_equity = Column(String, nullable=True)
    availability_date = Column(DateTime, nullable=True)
    custom_proposal = Column(Text, nullable=True)
    team_fit_explanation = Column(Text, nullable=True)
    questions_for_company = Column(Text, nullable=True)
    attachments = Column(JSON, nullable=False, default=list)
    
    # Embedded interview sub-record
    # Structure: {"scheduled_for": iso, "format": "video", "duration_minutes": 60, "participants": [...], ...}
    interview_details = Column(JSON, nullable=True)
    # Structure: [{"rating": 4, "recommendation": "proceed", "submitted_by": uuid, "submitted_at": iso, ...}]
    interview_feedback = Column(JSON, nullable=False, default=list)
    
    # Company-side notes and responses
    rejection_reason = Column(Text, nullable=True)
    response_message = Column(Text, nullable=True)
    recruiter_notes = Column(Text, nullable=True)
    hiring_manager_notes = Column(Text, nullable=True)
    
    # Timestamps, each written once by the transition that produces it
    applied_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    reviewed_at = Column(DateTime, nullable=True)
    interview_scheduled_at = Column(DateTime, nullable=True)
    offer_made_at = Column(DateTime, nullable=True)
    final_decision_at = Column(DateTime, nullable=True)
    withdrawn_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    
    __table_args__ = (
        # One live application per (team, opportunity); closes races between concurrent submits
        Index(
            'uq_applications_live_pair',
            'team_id',
            'opportunity_id',
            unique=True,
            sqlite_where=_BLOCKING_SQL,
            postgresql_where=_BLOCKING_SQL,
        ),
        Index('idx_applications_opportunity_status', 'opportunity_id', 'status'),
    )
