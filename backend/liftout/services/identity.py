"""
Actor model supplied to every engagement operation.

The identity provider authenticates the user; this module only resolves
which teams and companies that user acts for.
"""
from dataclasses import dataclass, field
from typing import Dict, Union
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.database_types import as_uuid
from liftout.models.company import CompanyUser, CompanyRole
from liftout.models.team import TeamMember, MemberStatus


@dataclass(frozen=True)
class TeamCapacity:
    is_lead: bool = False
    is_admin: bool = False


@dataclass(frozen=True)
class Actor:
    user_id: uuid.UUID
    teams: Dict[uuid.UUID, TeamCapacity] = field(default_factory=dict)
    companies: Dict[uuid.UUID, str] = field(default_factory=dict)
    
    def is_team_member(self, team_id) -> bool:
        return as_uuid(team_id) in self.teams
    
    def can_lead_team(self, team_id) -> bool:
        """Leads and admins act on behalf of the team."""
        capacity = self.teams.get(as_uuid(team_id))
        return capacity is not None and (capacity.is_lead or capacity.is_admin)
    
    def belongs_to_company(self, company_id) -> bool:
        return as_uuid(company_id) in self.companies
    
    def is_company_admin(self, company_id) -> bool:
        role = self.companies.get(as_uuid(company_id))
        return role in (CompanyRole.ADMIN.value, CompanyRole.OWNER.value)


async def load_actor(db: AsyncSession, user_id: Union[str, uuid.UUID]) -> Actor:
    """Build an Actor from the user's active team memberships and company seats."""
    user_id = as_uuid(user_id)
    
    memberships = await db.execute(
        select(TeamMember).where(
            TeamMember.user_id == user_id,
            TeamMember.status == MemberStatus.ACTIVE.value,
        )
    )
    teams = {
        m.team_id: TeamCapacity(is_lead=m.is_lead, is_admin=m.is_admin)
        for m in memberships.scalars().all()
    }
    
    seats = await db.execute(select(CompanyUser).where(CompanyUser.user_id == user_id))
    companies = {seat.company_id: seat.role for seat in seats.scalars().all()}
    
    return Actor(user_id=user_id, teams=teams, companies=companies)
