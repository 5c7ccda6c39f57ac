"""
Notification emitter for engagement lifecycle events.

Delivery is fire-and-forget and at-most-once: emitters are invoked only
after the primary transaction has committed, every call is bounded by
settings.collaborator_timeout_seconds, and failures are logged and dropped.
"""
import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from liftout import database
from liftout.config import settings
from liftout.models.company import CompanyUser
from liftout.models.notification import Notification
from liftout.models.team import TeamMember, MemberStatus

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_STATUS_CHANGED = "application_status_changed"
    APPLICATION_WITHDRAWN = "application_withdrawn"
    OFFER_MADE = "offer_made"
    OFFER_RESPONDED = "offer_responded"
    EOI_RECEIVED = "eoi_received"
    EOI_RESPONDED = "eoi_responded"
    MEMBER_LEFT = "member_left"
    MEMBER_REMOVED = "member_removed"


class NotificationEmitter:
    """Contract: emit(user_id, type, payload). Implementations may raise; callers use safe_emit."""
    
    async def emit(self, user_id: uuid.UUID, type: NotificationType, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LogNotificationEmitter(NotificationEmitter):
    """Dev mode: write notifications to the log only."""
    
    async def emit(self, user_id, type, payload):
        logger.info(f"[DEV MODE] Notification to {user_id}: {type.value} {payload}")


class OutboxNotificationEmitter(NotificationEmitter):
    """Persist notifications to the notifications table in a dedicated session."""
    
    async def emit(self, user_id, type, payload):
        async with database.AsyncSessionLocal() as session:
            session.add(Notification(user_id=user_id, type=type.value, payload=payload))
            await session.commit()


def get_notification_emitter() -> NotificationEmitter:
    """FastAPI dependency selecting the emitter configured by NOTIFICATION_MODE."""
    if settings.notification_mode == "log":
        return LogNotificationEmitter()
    return OutboxNotificationEmitter()


async def safe_emit(
    emitter: NotificationEmitter,
    user_id: uuid.UUID,
    type: NotificationType,
    payload: Dict[str, Any],
) -> bool:
    """Emit one notification; never raises. Returns False if it was dropped."""
    try:
        await asyncio.wait_for(
            emitter.emit(user_id, type, payload),
            timeout=settings.collaborator_timeout_seconds,
        )
        return True
    except asyncio.TimeoutError:
        logger.warning(f"Notification {type.value} to {user_id} timed out, dropped")
    except Exception as e:
        logger.error(f"Notification {type.value} to {user_id} failed, dropped: {e}", exc_info=True)
    return False


async def notify_users(
    emitter: NotificationEmitter,
    user_ids: Iterable[uuid.UUID],
    type: NotificationType,
    payload: Dict[str, Any],
) -> int:
    """Fan out to each user. Returns how many deliveries were handed off successfully."""
    delivered = 0
    for user_id in dict.fromkeys(user_ids):
        if await safe_emit(emitter, user_id, type, payload):
            delivered += 1
    return delivered


async def team_recipients(
    db: AsyncSession,
    team_id: uuid.UUID,
    leads_only: bool = False,
    exclude: Optional[uuid.UUID] = None,
) -> list[uuid.UUID]:
    """Active members of a team, optionally only leads/admins."""
    query = select(TeamMember).where(
        TeamMember.team_id == team_id,
        TeamMember.status == MemberStatus.ACTIVE.value,
    )
    result = await db.execute(query)
    members = result.scalars().all()
    if leads_only:
        members = [m for m in members if m.is_lead or m.is_admin]
    return [m.user_id for m in members if m.user_id != exclude]


async def company_recipients(db: AsyncSession, company_id: uuid.UUID) -> list[uuid.UUID]:
    result = await db.execute(select(CompanyUser).where(CompanyUser.company_id == company_id))
    return [seat.user_id for seat in result.scalars().all()]


async def notify_team(
    db: AsyncSession,
    emitter: NotificationEmitter,
    team_id: uuid.UUID,
    type: NotificationType,
    payload: Dict[str, Any],
    exclude: Optional[uuid.UUID] = None,
) -> int:
    try:
        recipients = await team_recipients(db, team_id, exclude=exclude)
    except Exception as e:
        logger.error(f"Could not resolve recipients for team {team_id}: {e}", exc_info=True)
        return 0
    return await notify_users(emitter, recipients, type, payload)


async def notify_company(
    db: AsyncSession,
    emitter: NotificationEmitter,
    company_id: uuid.UUID,
    type: NotificationType,
    payload: Dict[str, Any],
) -> int:
    try:
        recipients = await company_recipients(db, company_id)
    except Exception as e:
        logger.error(f"Could not resolve recipients for company {company_id}: {e}", exc_info=True)
        return 0
    return await notify_users(emitter, recipients, type, payload)
