from datetime import datetime
from sqlalchemy import Column, String, DateTime
import uuid

from liftout.database import Base
from liftout.database_types import GUID


class User(Base):
    """
    Local identity record.

    Credentials and sessions belong to the external identity provider; this
    row only anchors memberships, notifications and audit columns.
    """
    __tablename__ = "users"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
