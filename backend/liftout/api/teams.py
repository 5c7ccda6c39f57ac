"""
Team roster API endpoints.
Leaving, removal and role changes all pass the roster guard.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.database import get_db
from liftout.api.auth import get_actor
from liftout.services import roster
from liftout.services.errors import ForbiddenError
from liftout.services.identity import Actor
from liftout.services.notifications import NotificationEmitter, get_notification_emitter
from liftout.schemas.team import (
    LeaveResponse,
    MemberCreate,
    MemberResponse,
    MemberUpdate,
    RosterDecisionResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{team_id}/leave", response_model=LeaveResponse)
async def leave_team(
    team_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """
    Leave a team.
    
    Refused with 422 when the caller created the team, is its only lead,
    or the team would drop below the minimum size.
    """
    member = await roster.leave_team(db, actor, team_id, emitter)
    team = await roster.get_team(db, team_id)
    return LeaveResponse(
        team_id=str(team.id),
        user_id=str(member.user_id),
        team_size=team.size,
        message=f"You have left {team.name}.",
    )


@router.get("/{team_id}/members/{user_id}/can-leave", response_model=RosterDecisionResponse)
async def can_leave(
    team_id: UUID,
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Dry-run of the roster guard for one member. Visible to the team's own members."""
    if not actor.is_team_member(team_id):
        raise ForbiddenError("Only team members can check roster decisions")
    decision = await roster.can_leave(db, team_id, user_id)
    return RosterDecisionResponse(
        allowed=decision.allowed,
        reason=decision.reason,
        code=decision.error.code if decision.error else None,
    )


@router.post("/{team_id}/members", response_model=MemberResponse, status_code=201)
async def add_member(
    team_id: UUID,
    request: MemberCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return await roster.add_member(
        db, actor, team_id, request.user_id, request.role, request.is_lead, request.is_admin
    )


@router.patch("/{team_id}/members/{user_id}", response_model=MemberResponse)
async def change_member_role(
    team_id: UUID,
    user_id: UUID,
    request: MemberUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return await roster.change_member_role(
        db, actor, team_id, user_id, role=request.role, is_lead=request.is_lead, is_admin=request.is_admin
    )


@router.delete("/{team_id}/members/{user_id}", response_model=MemberResponse)
async def remove_member(
    team_id: UUID,
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    return await roster.remove_member(db, actor, team_id, user_id, emitter)
