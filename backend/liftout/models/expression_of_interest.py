from datetime import datetime
from enum import Enum
from typing import Optional
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index
import uuid

from liftout.database import Base
from liftout.database_types import GUID


class EOIStatus(str, Enum):
    """Stored EOI states plus the derived EXPIRED read-time state"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"  # Never stored, see ExpressionOfInterest.effective_status


class PartyType(str, Enum):
    TEAM = "team"
    COMPANY = "company"
    OPPORTUNITY = "opportunity"


class InterestLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExpressionOfInterest(Base):
    __tablename__ = "expressions_of_interest"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    
    # Sender: team | company
    from_type = Column(String, nullable=False)
    from_id = Column(GUID, nullable=False)
    
    # Recipient: team | opportunity
    to_type = Column(String, nullable=False)
    to_id = Column(GUID, nullable=False)
    
    message = Column(Text, nullable=True)
    interest_level = Column(String, nullable=False, default=InterestLevel.MEDIUM.value)
    specific_role = Column(String, nullable=True)
    timeline = Column(String, nullable=True)
    budget_range = Column(String, nullable=True)
    
    status = Column(String, nullable=False, default=EOIStatus.PENDING.value)
    
    created_by = Column(GUID, ForeignKey("users.id"), nullable=False)
    responded_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    
    # Conversation hand-off on acceptance; NULL conversation_id means retry pending
    conversation_id = Column(String, nullable=True)
    conversation_requested_at = Column(DateTime, nullable=True)
    
    __table_args__ = (
        Index('idx_eoi_from', 'from_type', 'from_id', 'status'),
        Index('idx_eoi_to', 'to_type', 'to_id', 'status'),
    )
    
    def effective_status(self, now: Optional[datetime] = None) -> str:
        """Stored status, or EXPIRED for a pending EOI whose expiry has passed."""
        now = now or datetime.utcnow()
        if (
            self.status == EOIStatus.PENDING.value
            and self.expires_at is not None
            and self.expires_at <= now
        ):
            return EOIStatus.EXPIRED.value
        return self.status
