"""
Team roster guard.

Every membership change that can shrink a team or strip its leadership goes
through this module. The guard is evaluated first-failure-wins:

1. the team creator never leaves (ownership must be transferred first)
2. the sole active lead cannot leave
3. the team cannot drop below settings.min_team_size active members

Member status flip and the cached Team.size update commit together.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.config import settings
from liftout.database_types import as_uuid
from liftout.models.team import Team, TeamMember, MemberRole, MemberStatus
from liftout.models.user import User
from liftout.services.errors import (
    ConflictError,
    CreatorCannotLeaveError,
    ForbiddenError,
    LastLeadError,
    MinimumTeamSizeError,
    NotFoundError,
    RosterError,
    ValidationError,
)
from liftout.services.identity import Actor
from liftout.services.notifications import NotificationEmitter, NotificationType, notify_team, notify_users

logger = logging.getLogger(__name__)

UserId = Union[str, uuid.UUID]


@dataclass(frozen=True)
class RosterDecision:
    """Outcome of a guard check. error is set whenever allowed is False."""
    allowed: bool
    error: Optional[RosterError] = None

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error else None


ALLOWED = RosterDecision(allowed=True)


def evaluate_departure(team: Team, active_members: list[TeamMember], departing: TeamMember) -> RosterDecision:
    """Apply the roster rules to an in-memory snapshot of the team."""
    if departing.user_id == team.created_by:
        return RosterDecision(
            False,
            CreatorCannotLeaveError(
                "The team creator cannot leave. Transfer ownership or delete the team instead."
            ),
        )

    leads = [m for m in active_members if m.is_lead]
    if departing.is_lead and len(leads) == 1:
        return RosterDecision(
            False,
            LastLeadError("This member is the team's only lead. Promote another lead first."),
        )

    remaining = len([m for m in active_members if m.id != departing.id])
    if remaining < settings.min_team_size:
        return RosterDecision(
            False,
            MinimumTeamSizeError(
                f"A team must keep at least {settings.min_team_size} active members "
                f"({remaining} would remain)."
            ),
        )

    return ALLOWED


async def get_team(db: AsyncSession, team_id: UserId, for_update: bool = False) -> Team:
    query = select(Team).where(Team.id == as_uuid(team_id))
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    team = result.scalar_one_or_none()

    if not team or team.is_deleted:
        raise NotFoundError(f"Team {team_id} not found")
    return team


async def _active_members(db: AsyncSession, team_id: uuid.UUID) -> list[TeamMember]:
    result = await db.execute(
        select(TeamMember).where(
            TeamMember.team_id == team_id,
            TeamMember.status == MemberStatus.ACTIVE.value,
        )
    )
    return list(result.scalars().all())


def _find_member(members: list[TeamMember], user_id: uuid.UUID) -> Optional[TeamMember]:
    return next((m for m in members if m.user_id == user_id), None)


def _can_manage(actor: Actor, team: Team) -> bool:
    return actor.user_id == team.created_by or actor.can_lead_team(team.id)


def _resolve_lead(
    role: Optional[str],
    is_lead: Optional[bool],
    current_role: str = MemberRole.MEMBER.value,
) -> tuple[Optional[str], Optional[bool]]:
    """
    Keep role == "lead" and is_lead in agreement.

    Whichever of the two is given decides the other; giving both with
    different meanings is a ValidationError. Returns (None, None) when
    neither is given.
    """
    if role is not None and role not in {r.value for r in MemberRole}:
        raise ValidationError(f"Unknown member role '{role}'")
    if role is not None and is_lead is not None and (role == MemberRole.LEAD.value) != is_lead:
        raise ValidationError(f"Role '{role}' contradicts is_lead={is_lead}")
    if role is not None:
        return role, role == MemberRole.LEAD.value
    if is_lead is None:
        return None, None
    if is_lead:
        return MemberRole.LEAD.value, True
    if current_role == MemberRole.LEAD.value:
        return MemberRole.MEMBER.value, False
    return current_role, False


async def can_leave(db: AsyncSession, team_id: UserId, user_id: UserId) -> RosterDecision:
    """Would user_id be allowed to leave team_id right now?"""
    team = await get_team(db, team_id)
    members = await _active_members(db, team.id)
    departing = _find_member(members, as_uuid(user_id))
    if not departing:
        raise NotFoundError(f"User {user_id} is not an active member of team {team_id}")
    return evaluate_departure(team, members, departing)


async def can_remove(db: AsyncSession, team_id: UserId, user_id: UserId) -> RosterDecision:
    """Removal is held to exactly the same rules as a voluntary departure."""
    return await can_leave(db, team_id, user_id)


async def _apply_departure(
    db: AsyncSession,
    team: Team,
    member: TeamMember,
    active_count: int,
) -> None:
    """Soft-remove the member and shrink the cached size in one transaction."""
    result = await db.execute(
        update(TeamMember)
        .where(
            TeamMember.id == member.id,
            TeamMember.status == MemberStatus.ACTIVE.value,
        )
        .values(status=MemberStatus.INACTIVE.value, left_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(f"Membership of user {member.user_id} changed concurrently")

    await db.execute(
        update(Team)
        .where(Team.id == team.id)
        .values(size=active_count - 1, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(member)
    await db.refresh(team)


async def leave_team(
    db: AsyncSession,
    actor: Actor,
    team_id: UserId,
    emitter: NotificationEmitter,
) -> TeamMember:
    """
    The actor leaves the team.

    Raises:
        NotFoundError: team missing or soft-deleted
        ForbiddenError: actor is not an active member
        CreatorCannotLeaveError / LastLeadError / MinimumTeamSizeError: roster rules
        ConflictError: membership changed concurrently
    """
    try:
        team = await get_team(db, team_id, for_update=True)
        members = await _active_members(db, team.id)
        member = _find_member(members, actor.user_id)
        if not member:
            raise ForbiddenError("You are not an active member of this team")

        decision = evaluate_departure(team, members, member)
        if not decision.allowed:
            raise decision.error

        await _apply_departure(db, team, member, len(members))
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"User {actor.user_id} left team {team.id} (size now {team.size})",
        extra={"team_id": str(team.id), "user_id": str(actor.user_id)},
    )

    await notify_team(
        db,
        emitter,
        team.id,
        NotificationType.MEMBER_LEFT,
        {"team_id": str(team.id), "user_id": str(actor.user_id), "team_size": team.size},
    )
    return member


async def remove_member(
    db: AsyncSession,
    actor: Actor,
    team_id: UserId,
    user_id: UserId,
    emitter: NotificationEmitter,
) -> TeamMember:
    """Creator, lead or admin removes another member, subject to the same roster rules."""
    user_id = as_uuid(user_id)
    try:
        team = await get_team(db, team_id, for_update=True)
        if not _can_manage(actor, team):
            raise ForbiddenError("Only the team creator, leads or admins can remove members")

        if user_id == actor.user_id:
            raise ValidationError("Use leave to remove yourself from a team")

        members = await _active_members(db, team.id)
        member = _find_member(members, user_id)
        if not member:
            raise NotFoundError(f"User {user_id} is not an active member of team {team.id}")

        decision = evaluate_departure(team, members, member)
        if not decision.allowed:
            raise decision.error

        await _apply_departure(db, team, member, len(members))
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {user_id} removed from team {team.id} by {actor.user_id}")

    payload = {"team_id": str(team.id), "user_id": str(user_id), "removed_by": str(actor.user_id)}
    await notify_users(emitter, [user_id], NotificationType.MEMBER_REMOVED, payload)
    await notify_team(db, emitter, team.id, NotificationType.MEMBER_REMOVED, payload)
    return member


async def change_member_role(
    db: AsyncSession,
    actor: Actor,
    team_id: UserId,
    user_id: UserId,
    role: Optional[str] = None,
    is_lead: Optional[bool] = None,
    is_admin: Optional[bool] = None,
) -> TeamMember:
    """Update a member's role flags. Demoting the only active lead is refused."""
    user_id = as_uuid(user_id)
    try:
        team = await get_team(db, team_id, for_update=True)
        if not _can_manage(actor, team):
            raise ForbiddenError("Only the team creator, leads or admins can change member roles")

        members = await _active_members(db, team.id)
        member = _find_member(members, user_id)
        if not member:
            raise NotFoundError(f"User {user_id} is not an active member of team {team.id}")

        role, is_lead = _resolve_lead(role, is_lead, member.role)

        if is_lead is False and member.is_lead and len([m for m in members if m.is_lead]) == 1:
            raise LastLeadError("Cannot demote the team's only lead. Promote another lead first.")

        if role is not None:
            member.role = role
        if is_lead is not None:
            member.is_lead = is_lead
        if is_admin is not None:
            member.is_admin = is_admin

        await db.commit()
        await db.refresh(member)
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"Member {user_id} of team {team.id} updated by {actor.user_id}: "
        f"role={member.role} is_lead={member.is_lead} is_admin={member.is_admin}"
    )
    return member


async def add_member(
    db: AsyncSession,
    actor: Actor,
    team_id: UserId,
    user_id: UserId,
    role: Optional[str] = None,
    is_lead: Optional[bool] = None,
    is_admin: bool = False,
) -> TeamMember:
    """Add a user to the team, reactivating a past membership when one exists."""
    user_id = as_uuid(user_id)
    try:
        team = await get_team(db, team_id, for_update=True)
        if not _can_manage(actor, team):
            raise ForbiddenError("Only the team creator, leads or admins can add members")

        role, is_lead = _resolve_lead(role, is_lead)
        if role is None:
            role, is_lead = MemberRole.MEMBER.value, False

        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")

        result = await db.execute(
            select(TeamMember).where(TeamMember.team_id == team.id, TeamMember.user_id == user_id)
        )
        member = result.scalar_one_or_none()

        if member and member.is_active:
            raise ConflictError(f"User {user_id} is already an active member of this team")

        active_count = len(await _active_members(db, team.id))

        if member:
            member.status = MemberStatus.ACTIVE.value
            member.joined_at = datetime.utcnow()
            member.left_at = None
        else:
            member = TeamMember(team_id=team.id, user_id=user_id)
            db.add(member)
        member.role = role
        member.is_lead = is_lead
        member.is_admin = is_admin

        team.size = active_count + 1

        await db.commit()
        await db.refresh(member)
        await db.refresh(team)
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {user_id} joined team {team.id} (size now {team.size})")
    return member
