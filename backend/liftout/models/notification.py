from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
import uuid

from liftout.database import Base
from liftout.database_types import GUID, JSON


class Notification(Base):
    __tablename__ = "notifications"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    
    type = Column(String, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    read_at = Column(DateTime, nullable=True)
    
    __table_args__ = (
        Index('idx_notifications_inbox', 'user_id', 'created_at'),
    )
