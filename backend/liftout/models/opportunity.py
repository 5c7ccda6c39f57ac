from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey
import uuid

from liftout.database import Base
from liftout.database_types import GUID


class OpportunityStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    FILLED = "filled"  # An offer is outstanding or accepted


class OpportunityVisibility(str, Enum):
    PUBLIC = "public"
    CONFIDENTIAL = "confidential"


class Opportunity(Base):
    __tablename__ = "opportunities"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID, ForeignKey("companies.id"), nullable=False, index=True)
    
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=OpportunityStatus.ACTIVE.value)
    visibility = Column(String, nullable=False, default=OpportunityVisibility.PUBLIC.value)
    
    # Denormalized for listing pages
    applications_count = Column(Integer, nullable=False, default=0)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
