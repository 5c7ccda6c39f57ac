"""
Offer sub-lifecycle.

An application in ACCEPTED status carries exactly one Offer. The offer's own
status records the team's answer: accepting leaves the application ACCEPTED,
declining moves it to REJECTED and reopens the opportunity.
"""
import logging
from datetime import datetime
from typing import Optional, Union, Dict, Any

import pydantic
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.database_types import as_uuid
from liftout.models.application import Application, ApplicationStatus
from liftout.models.offer import Offer, OfferStatus
from liftout.models.opportunity import Opportunity, OpportunityStatus
from liftout.schemas.application import OfferDetails
from liftout.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    ValidationError,
)
from liftout.services.identity import Actor
from liftout.services.notifications import (
    NotificationEmitter,
    NotificationType,
    get_notification_emitter,
    notify_company,
    notify_team,
)
from liftout.services.state_machine import (
    compare_and_swap_status,
    get_application,
    get_opportunity,
)

logger = logging.getLogger(__name__)

OFFER_RESPONSES = {"accept", "decline"}


def format_compensation(amount: int, currency: str = "USD") -> str:
    if currency == "USD":
        return f"${amount:,}"
    return f"{amount:,} {currency}"


async def get_offer(db: AsyncSession, application_id) -> Optional[Offer]:
    result = await db.execute(
        select(Offer).where(Offer.application_id == as_uuid(application_id))
    )
    return result.scalar_one_or_none()


def _parse_details(details: Union[OfferDetails, Dict[str, Any]]) -> OfferDetails:
    if isinstance(details, OfferDetails):
        return details
    try:
        return OfferDetails.model_validate(details or {})
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid offer details: {e}")


async def make_offer(
    db: AsyncSession,
    actor: Actor,
    application_id,
    details: Union[OfferDetails, Dict[str, Any]],
    emitter: Optional[NotificationEmitter] = None,
) -> Application:
    """
    Extend an offer to the team behind an interviewing application.

    Moves the application interviewing → accepted, creates the pending Offer
    and marks the opportunity filled, all in one transaction.

    Raises:
        NotFoundError: application or opportunity missing
        ForbiddenError: actor is not an admin or owner of the hiring company
        InvalidTransitionError: application is not interviewing
        ValidationError: offer details invalid
        ConflictError: status changed concurrently
    """
    application = await get_application(db, application_id)
    opportunity = await get_opportunity(db, application.opportunity_id)

    if not actor.is_company_admin(opportunity.company_id):
        raise ForbiddenError("Only company admins can make offers")

    if application.status != ApplicationStatus.INTERVIEWING.value:
        raise InvalidTransitionError(
            f"Offers can only be made on interviewing applications (status is {application.status})"
        )

    offer_details = _parse_details(details)
    now = datetime.utcnow()

    try:
        await compare_and_swap_status(
            db,
            application,
            ApplicationStatus.INTERVIEWING,
            ApplicationStatus.ACCEPTED,
            actor.user_id,
            values={"offer_made_at": now, "final_decision_at": now},
            note=f"Offer: {format_compensation(offer_details.compensation, offer_details.currency)}",
        )

        offer = Offer(
            application_id=application.id,
            compensation=offer_details.compensation,
            currency=offer_details.currency,
            equity_offer=offer_details.equity_offer,
            benefits=offer_details.benefits,
            signing_bonus=offer_details.signing_bonus,
            start_date=offer_details.start_date,
            additional_terms=offer_details.additional_terms,
            response_deadline=offer_details.response_deadline or offer_details.start_date,
            status=OfferStatus.PENDING.value,
            made_by=actor.user_id,
        )
        db.add(offer)

        opportunity.status = OpportunityStatus.FILLED.value

        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(application)
    await db.refresh(offer)

    logger.info(
        f"Offer {offer.id} made on application {application.id}: "
        f"{format_compensation(offer.compensation, offer.currency)}",
        extra={"application_id": str(application.id), "actor_id": str(actor.user_id)},
    )

    await notify_team(
        db,
        emitter or get_notification_emitter(),
        application.team_id,
        NotificationType.OFFER_MADE,
        {
            "application_id": str(application.id),
            "offer_id": str(offer.id),
            "opportunity_title": opportunity.title,
            "message": (
                f"You received an offer for {opportunity.title}: "
                f"{format_compensation(offer.compensation, offer.currency)}"
            ),
        },
    )
    return application


async def respond_to_offer(
    db: AsyncSession,
    actor: Actor,
    application_id,
    response: str,
    message: Optional[str] = None,
    emitter: Optional[NotificationEmitter] = None,
) -> tuple[Application, Offer]:
    """
    The receiving team accepts or declines its pending offer.

    decline: application accepted → rejected, offer declined, opportunity
    reopened. accept: offer accepted, application stays accepted.
    """
    application = await get_application(db, application_id)

    if not actor.can_lead_team(application.team_id):
        raise ForbiddenError("Only team leads or admins can respond to offers")

    if response not in OFFER_RESPONSES:
        raise ValidationError(f"Offer response must be one of {sorted(OFFER_RESPONSES)}")

    offer = await get_offer(db, application.id)
    if application.status != ApplicationStatus.ACCEPTED.value or offer is None:
        raise InvalidTransitionError(f"Application {application.id} has no outstanding offer")
    if offer.status != OfferStatus.PENDING.value:
        raise InvalidTransitionError(f"Offer was already {offer.status}")

    opportunity = await db.get(Opportunity, application.opportunity_id)
    now = datetime.utcnow()
    new_offer_status = OfferStatus.ACCEPTED if response == "accept" else OfferStatus.DECLINED

    try:
        result = await db.execute(
            update(Offer)
            .where(Offer.id == offer.id, Offer.status == OfferStatus.PENDING.value)
            .values(
                status=new_offer_status.value,
                response_message=message,
                responded_by=actor.user_id,
                responded_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Offer {offer.id} was answered concurrently")

        if new_offer_status == OfferStatus.DECLINED:
            # final_decision_at keeps the value stamped when the offer was made
            await compare_and_swap_status(
                db,
                application,
                ApplicationStatus.ACCEPTED,
                ApplicationStatus.REJECTED,
                actor.user_id,
                values={"rejection_reason": message or "Offer declined by team"},
                note="Offer declined",
            )
            if opportunity is not None and opportunity.status == OpportunityStatus.FILLED.value:
                opportunity.status = OpportunityStatus.ACTIVE.value

        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(application)
    await db.refresh(offer)

    if new_offer_status == OfferStatus.ACCEPTED:
        logger.info(
            f"Offer {offer.id} accepted by team {application.team_id}; handing off to integration tracking"
        )
    else:
        logger.info(f"Offer {offer.id} declined by team {application.team_id}")

    if opportunity is not None:
        await notify_company(
            db,
            emitter or get_notification_emitter(),
            opportunity.company_id,
            NotificationType.OFFER_RESPONDED,
            {
                "application_id": str(application.id),
                "offer_id": str(offer.id),
                "response": response,
                "message": message,
            },
        )
    return application, offer
