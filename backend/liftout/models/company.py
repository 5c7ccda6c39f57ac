"""Company and company membership models."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid
import enum

from liftout.database import Base
from liftout.database_types import GUID


class CompanyRole(str, enum.Enum):
    """Role of a user inside a hiring company."""
    MEMBER = "member"
    ADMIN = "admin"  # Can extend offers
    OWNER = "owner"  # Can extend offers


class Company(Base):
    __tablename__ = "companies"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    users = relationship("CompanyUser", back_populates="company", cascade="all, delete-orphan")


class CompanyUser(Base):
    __tablename__ = "company_users"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID, ForeignKey("companies.id"), nullable=False)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False, default=CompanyRole.MEMBER.value)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    company = relationship("Company", back_populates="users")
    
    __table_args__ = (
        UniqueConstraint('company_id', 'user_id', name='uq_company_user'),
    )
