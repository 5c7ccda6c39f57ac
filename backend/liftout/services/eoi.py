"""
Expression-of-interest channel between teams and companies.

Allowed pairings are team → opportunity and company → team. An EOI is
answered at most once; "expired" is derived from expires_at at read time
and never written. Accepting an EOI asks the Conversation Service to open a
thread between both parties. That request is best effort: an accepted EOI
with no conversation_id is picked up again by retry_pending_conversations.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.config import settings
from liftout.database_types import as_uuid
from liftout.models.expression_of_interest import ExpressionOfInterest, EOIStatus, PartyType, InterestLevel
from liftout.models.opportunity import Opportunity
from liftout.models.team import Team
from liftout.schemas.eoi import EOICreate
from liftout.services.conversations import ConversationService
from liftout.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from liftout.services.identity import Actor
from liftout.services.notifications import (
    NotificationEmitter,
    NotificationType,
    company_recipients,
    get_notification_emitter,
    notify_users,
    team_recipients,
)

logger = logging.getLogger(__name__)

ALLOWED_PAIRINGS = {
    (PartyType.TEAM.value, PartyType.OPPORTUNITY.value),
    (PartyType.COMPANY.value, PartyType.TEAM.value),
}

EOI_RESPONSES = {EOIStatus.ACCEPTED.value, EOIStatus.DECLINED.value}


@dataclass(frozen=True)
class ConversationRequested:
    """Event sent to the Conversation Service when an EOI is accepted."""
    from_id: uuid.UUID
    to_id: uuid.UUID
    eoi_id: uuid.UUID

    @property
    def origin_ref(self) -> str:
        return f"eoi:{self.eoi_id}"


def _is_live(now: datetime):
    """SQL filter for pending EOIs that have not expired."""
    return and_(
        ExpressionOfInterest.status == EOIStatus.PENDING.value,
        or_(
            ExpressionOfInterest.expires_at.is_(None),
            ExpressionOfInterest.expires_at > now,
        ),
    )


async def _get_live_team(db: AsyncSession, team_id) -> Team:
    team = await db.get(Team, as_uuid(team_id))
    if not team or team.is_deleted:
        raise NotFoundError(f"Team {team_id} not found")
    return team


async def _get_opportunity(db: AsyncSession, opportunity_id) -> Opportunity:
    opportunity = await db.get(Opportunity, as_uuid(opportunity_id))
    if not opportunity:
        raise NotFoundError(f"Opportunity {opportunity_id} not found")
    return opportunity


async def get_eoi(db: AsyncSession, eoi_id) -> ExpressionOfInterest:
    eoi = await db.get(ExpressionOfInterest, as_uuid(eoi_id))
    if not eoi:
        raise NotFoundError(f"Expression of interest {eoi_id} not found")
    return eoi


async def party_users(db: AsyncSession, party_type: str, party_id: uuid.UUID, leads_only: bool = False) -> list[uuid.UUID]:
    """Users acting for one side of an EOI."""
    if party_type == PartyType.TEAM.value:
        return await team_recipients(db, party_id, leads_only=leads_only)
    if party_type == PartyType.COMPANY.value:
        return await company_recipients(db, party_id)
    opportunity = await db.get(Opportunity, party_id)
    if not opportunity:
        return []
    return await company_recipients(db, opportunity.company_id)


async def _notify_party(
    db: AsyncSession,
    emitter: NotificationEmitter,
    party_type: str,
    party_id: uuid.UUID,
    type: NotificationType,
    payload: dict,
) -> int:
    try:
        recipients = await party_users(db, party_type, party_id, leads_only=True)
    except Exception as e:
        logger.error(f"Could not resolve recipients for {party_type} {party_id}: {e}", exc_info=True)
        return 0
    return await notify_users(emitter, recipients, type, payload)


async def create_eoi(
    db: AsyncSession,
    actor: Actor,
    data: EOICreate,
    emitter: Optional[NotificationEmitter] = None,
) -> ExpressionOfInterest:
    """
    Send an expression of interest.

    Raises:
        ValidationError: unsupported pairing or interest level
        ForbiddenError: actor does not act for the sender
        NotFoundError: target missing
        ConflictError: a live EOI between the same parties already exists
    """
    if (data.from_type, data.to_type) not in ALLOWED_PAIRINGS:
        raise ValidationError(
            f"Expressions of interest go team → opportunity or company → team, not "
            f"{data.from_type} → {data.to_type}"
        )

    if data.interest_level not in {level.value for level in InterestLevel}:
        raise ValidationError(f"Unknown interest level '{data.interest_level}'")

    if data.from_type == PartyType.TEAM.value:
        if not actor.can_lead_team(data.from_id):
            raise ForbiddenError("Only team leads or admins can express interest for a team")
        target = await _get_opportunity(db, data.to_id)
        subject = target.title
    else:
        if not actor.belongs_to_company(data.from_id):
            raise ForbiddenError("Only company users can express interest for a company")
        target = await _get_live_team(db, data.to_id)
        subject = target.name

    now = datetime.utcnow()
    existing = await db.execute(
        select(ExpressionOfInterest.id).where(
            ExpressionOfInterest.from_type == data.from_type,
            ExpressionOfInterest.from_id == data.from_id,
            ExpressionOfInterest.to_type == data.to_type,
            ExpressionOfInterest.to_id == data.to_id,
            _is_live(now),
        )
    )
    if existing.first() is not None:
        raise ConflictError("You already have a pending expression of interest for this recipient")

    eoi = ExpressionOfInterest(
        from_type=data.from_type,
        from_id=data.from_id,
        to_type=data.to_type,
        to_id=data.to_id,
        message=data.message,
        interest_level=data.interest_level,
        specific_role=data.specific_role,
        timeline=data.timeline,
        budget_range=data.budget_range,
        status=EOIStatus.PENDING.value,
        created_by=actor.user_id,
        created_at=now,
        expires_at=now + timedelta(days=settings.eoi_ttl_days),
    )

    try:
        db.add(eoi)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(eoi)

    logger.info(f"EOI {eoi.id} sent: {eoi.from_type} {eoi.from_id} → {eoi.to_type} {eoi.to_id}")

    await _notify_party(
        db,
        emitter or get_notification_emitter(),
        eoi.to_type,
        eoi.to_id,
        NotificationType.EOI_RECEIVED,
        {
            "eoi_id": str(eoi.id),
            "from_type": eoi.from_type,
            "from_id": str(eoi.from_id),
            "interest_level": eoi.interest_level,
            "message": eoi.message or f"New expression of interest regarding {subject}",
        },
    )
    return eoi


async def _authorize_recipient(db: AsyncSession, actor: Actor, eoi: ExpressionOfInterest) -> None:
    if eoi.to_type == PartyType.TEAM.value:
        if not actor.can_lead_team(eoi.to_id):
            raise ForbiddenError("Only leads or admins of the receiving team can respond")
        return

    opportunity = await db.get(Opportunity, eoi.to_id)
    if not opportunity or not actor.belongs_to_company(opportunity.company_id):
        raise ForbiddenError("Only users of the receiving company can respond")


async def respond_to_eoi(
    db: AsyncSession,
    actor: Actor,
    eoi_id,
    response: str,
    emitter: Optional[NotificationEmitter] = None,
    conversations: Optional[ConversationService] = None,
) -> ExpressionOfInterest:
    """
    Accept or decline a received EOI.

    Repeating the response the EOI already carries returns it unchanged and
    re-emits nothing.

    Raises:
        NotFoundError: EOI missing
        ForbiddenError: actor is not on the receiving side
        ValidationError: response is not accepted or declined
        InvalidTransitionError: EOI expired or already answered differently
        ConflictError: answered concurrently
    """
    eoi = await get_eoi(db, eoi_id)
    await _authorize_recipient(db, actor, eoi)

    if response not in EOI_RESPONSES:
        raise ValidationError(f"EOI response must be one of {sorted(EOI_RESPONSES)}")

    now = datetime.utcnow()
    current = eoi.effective_status(now)
    if current == response:
        return eoi
    if current != EOIStatus.PENDING.value:
        raise InvalidTransitionError(f"Expression of interest is already {current}")

    try:
        result = await db.execute(
            update(ExpressionOfInterest)
            .where(ExpressionOfInterest.id == eoi.id, _is_live(now))
            .values(status=response, responded_at=now, responded_by=actor.user_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Expression of interest {eoi.id} was answered concurrently")
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(eoi)

    logger.info(f"EOI {eoi.id} {response} by {actor.user_id}")

    await _notify_party(
        db,
        emitter or get_notification_emitter(),
        eoi.from_type,
        eoi.from_id,
        NotificationType.EOI_RESPONDED,
        {"eoi_id": str(eoi.id), "response": response},
    )

    if response == EOIStatus.ACCEPTED.value and conversations is not None:
        await request_conversation(db, eoi, conversations)

    return eoi


async def request_conversation(
    db: AsyncSession,
    eoi: ExpressionOfInterest,
    conversations: ConversationService,
) -> Optional[str]:
    """
    Ask the Conversation Service for a thread between both parties of an accepted EOI.

    Never raises. Returns the conversation id, or None when the request
    failed and is left for retry.
    """
    event = ConversationRequested(from_id=eoi.from_id, to_id=eoi.to_id, eoi_id=eoi.id)
    try:
        participants = await party_users(db, eoi.from_type, eoi.from_id)
        participants += await party_users(db, eoi.to_type, eoi.to_id)
        conversation_id = await asyncio.wait_for(
            conversations.create_conversation(
                list(dict.fromkeys(participants)),
                subject=f"Expression of interest {eoi.id}",
                origin_ref=event.origin_ref,
            ),
            timeout=settings.collaborator_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning(f"Conversation request for {event.origin_ref} timed out, will retry")
        await _mark_requested(db, eoi)
        return None
    except Exception as e:
        logger.warning(f"Conversation request for {event.origin_ref} failed, will retry: {e}")
        await _mark_requested(db, eoi)
        return None

    try:
        await db.execute(
            update(ExpressionOfInterest)
            .where(
                ExpressionOfInterest.id == eoi.id,
                ExpressionOfInterest.conversation_id.is_(None),
            )
            .values(conversation_id=conversation_id, conversation_requested_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(eoi)
    except Exception as e:
        await db.rollback()
        logger.error(f"Could not record conversation {conversation_id} for {event.origin_ref}: {e}", exc_info=True)
        return None

    logger.info(f"Conversation {conversation_id} opened for {event.origin_ref}")
    return conversation_id


async def _mark_requested(db: AsyncSession, eoi: ExpressionOfInterest) -> None:
    try:
        await db.execute(
            update(ExpressionOfInterest)
            .where(ExpressionOfInterest.id == eoi.id)
            .values(conversation_requested_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(eoi)
    except Exception as e:
        await db.rollback()
        logger.error(f"Could not record conversation attempt for eoi:{eoi.id}: {e}", exc_info=True)


async def list_eois(
    db: AsyncSession,
    actor: Actor,
    direction: str = "received",
    skip: int = 0,
    limit: int = 50,
) -> list[ExpressionOfInterest]:
    """EOIs sent by or addressed to the parties the actor acts for, newest first."""
    team_ids = list(actor.teams)
    company_ids = list(actor.companies)

    if direction == "sent":
        conditions = [
            and_(ExpressionOfInterest.from_type == PartyType.TEAM.value, ExpressionOfInterest.from_id.in_(team_ids)),
            and_(ExpressionOfInterest.from_type == PartyType.COMPANY.value, ExpressionOfInterest.from_id.in_(company_ids)),
        ]
    elif direction == "received":
        opportunity_ids = select(Opportunity.id).where(Opportunity.company_id.in_(company_ids))
        conditions = [
            and_(ExpressionOfInterest.to_type == PartyType.TEAM.value, ExpressionOfInterest.to_id.in_(team_ids)),
            and_(
                ExpressionOfInterest.to_type == PartyType.OPPORTUNITY.value,
                ExpressionOfInterest.to_id.in_(opportunity_ids),
            ),
        ]
    else:
        raise ValidationError("direction must be 'sent' or 'received'")

    result = await db.execute(
        select(ExpressionOfInterest)
        .where(or_(*conditions))
        .order_by(ExpressionOfInterest.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


async def retry_pending_conversations(
    db: AsyncSession,
    conversations: ConversationService,
    limit: int = 100,
) -> int:
    """Re-send conversation requests for accepted EOIs that never got a conversation id."""
    result = await db.execute(
        select(ExpressionOfInterest)
        .where(
            ExpressionOfInterest.status == EOIStatus.ACCEPTED.value,
            ExpressionOfInterest.conversation_id.is_(None),
        )
        .order_by(ExpressionOfInterest.responded_at.asc())
        .limit(limit)
    )
    pending = list(result.scalars().all())

    opened = 0
    for eoi in pending:
        if await request_conversation(db, eoi, conversations):
            opened += 1

    if pending:
        logger.info(f"Conversation retry: {opened}/{len(pending)} opened")
    return opened
