from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
import uuid

from liftout.database import Base
from liftout.database_types import GUID, JSON


class OfferStatus(str, Enum):
    """The receiving team's answer to an extended offer"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Offer(Base):
    __tablename__ = "offers"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    application_id = Column(
        GUID, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    
    # Terms
    compensation = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    equity_offer = Column(String, nullable=True)
    benefits = Column(JSON, nullable=False, default=list)
    signing_bonus = Column(Integer, nullable=True)
    start_date = Column(DateTime, nullable=True)
    additional_terms = Column(Text, nullable=True)
    response_deadline = Column(DateTime, nullable=True)
    
    # Team response
    status = Column(String, nullable=False, default=OfferStatus.PENDING.value)
    response_message = Column(Text, nullable=True)
    
    made_by = Column(GUID, ForeignKey("users.id"), nullable=False)
    responded_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    responded_at = Column(DateTime, nullable=True)
    