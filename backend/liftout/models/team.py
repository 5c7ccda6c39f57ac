from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, UniqueConstraint, Index
from sqlalchemy.orm import relationship
import uuid

from liftout.database import Base
from liftout.database_types import GUID


class MemberRole(str, Enum):
    """Role a user holds inside a team"""
    MEMBER = "member"
    LEAD = "lead"
    ADMIN = "admin"


class MemberStatus(str, Enum):
    """Membership status. Departures flip to INACTIVE, rows are never deleted."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class Team(Base):
    __tablename__ = "teams"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    
    # Denormalized count of ACTIVE members, kept in step with membership changes
    size = Column(Integer, nullable=False, default=0)
    
    created_by = Column(GUID, ForeignKey("users.id"), nullable=False)
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)  # Soft delete
    
    # Relationships
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    
    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class TeamMember(Base):
    __tablename__ = "team_members"
    
    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    team_id = Column(GUID, ForeignKey("teams.id"), nullable=False)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=False)
    
    role = Column(String, nullable=False, default=MemberRole.MEMBER.value)
    status = Column(String, nullable=False, default=MemberStatus.ACTIVE.value)
    is_lead = Column(Boolean, nullable=False, default=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    
    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    left_at = Column(DateTime, nullable=True)
    
    team = relationship("Team", back_populates="members")
    
    __table_args__ = (
        UniqueConstraint('team_id', 'user_id', name='uq_team_member'),
        Index('idx_team_members_active', 'team_id', 'status'),
    )
    
    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE.value
