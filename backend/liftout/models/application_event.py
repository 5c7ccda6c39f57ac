from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index
import uuid

from liftout.database import Base
from liftout.database_types import GUID


class ApplicationEvent(Base):
    """Append-only status history. Written in the same transaction as the status change."""
    __tablename__ = "application_events"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    application_id = Column(GUID, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False)
    
    from_status = Column(String, nullable=True)  # None for the creation event
    to_status = Column(String, nullable=False)
    actor_id = Column(GUID, ForeignKey("users.id"), nullable=False)
    note = Column(Text, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    __table_args__ = (
        Index('idx_application_events_timeline', 'application_id', 'created_at'),
    )
