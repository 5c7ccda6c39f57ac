"""
State machine for team applications.
ALL application status changes must go through this module.
"""
import logging
import uuid
from datetime import datetime
from typing import Optional, Dict, Any, Union

import pydantic
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.database_types import as_uuid
from liftout.models.application import Application, ApplicationStatus
from liftout.models.application_event import ApplicationEvent
from liftout.models.offer import Offer, OfferStatus
from liftout.models.opportunity import Opportunity
from liftout.schemas.application import TransitionPayload
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
    get_notification_emitter,
    notify_company,
    notify_team,
)

# Configure logger
logger = logging.getLogger(__name__)


# Define allowed state transitions
ALLOWED_TRANSITIONS: Dict[ApplicationStatus, list[ApplicationStatus]] = {
    ApplicationStatus.SUBMITTED: [
        ApplicationStatus.REVIEWING,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    ],
    ApplicationStatus.REVIEWING: [
        ApplicationStatus.INTERVIEWING,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    ],
    ApplicationStatus.INTERVIEWING: [ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED],
    ApplicationStatus.ACCEPTED: [],  # Offer extended; only the team's decline moves it (see offers)
    ApplicationStatus.REJECTED: [],  # Terminal state
    ApplicationStatus.WITHDRAWN: [],  # Terminal state
}

# Timestamp written by entering each status (ACCEPTED is stamped by make_offer)
TRANSITION_TIMESTAMPS: Dict[ApplicationStatus, str] = {
    ApplicationStatus.REVIEWING: "reviewed_at",
    ApplicationStatus.INTERVIEWING: "interview_scheduled_at",
    ApplicationStatus.REJECTED: "final_decision_at",
    ApplicationStatus.WITHDRAWN: "withdrawn_at",
}

# Transitions driven by the team; every other one is driven by the company
TEAM_DRIVEN = {ApplicationStatus.WITHDRAWN}

STATUS_MESSAGES: Dict[ApplicationStatus, str] = {
    ApplicationStatus.SUBMITTED: "Application submitted. The company has been notified.",
    ApplicationStatus.REVIEWING: "Application is now under review.",
    ApplicationStatus.INTERVIEWING: "Application moved to the interview stage.",
    ApplicationStatus.ACCEPTED: "Offer extended to the team.",
    ApplicationStatus.REJECTED: "Application was not selected.",
    ApplicationStatus.WITHDRAWN: "Application withdrawn by the team.",
}


def can_transition(from_status: ApplicationStatus, to_status: ApplicationStatus) -> bool:
    """Check if a transition is allowed without touching the database"""
    return to_status in ALLOWED_TRANSITIONS.get(from_status, [])


def parse_status(value: Union[str, ApplicationStatus]) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown application status '{value}'")


def status_message(application: Application, offer: Optional[Offer] = None) -> str:
    """Human-readable message returned alongside every lifecycle operation."""
    if offer is not None and offer.status == OfferStatus.ACCEPTED.value:
        return "Offer accepted by the team. Congratulations!"
    if offer is not None and offer.status == OfferStatus.DECLINED.value:
        return "Offer declined by the team."
    return STATUS_MESSAGES[ApplicationStatus(application.status)]


async def get_application(db: AsyncSession, application_id) -> Application:
    result = await db.execute(
        select(Application).where(Application.id == as_uuid(application_id))
    )
    application = result.scalar_one_or_none()

    if not application:
        raise NotFoundError(f"Application {application_id} not found")
    return application


async def get_opportunity(db: AsyncSession, opportunity_id) -> Opportunity:
    opportunity = await db.get(Opportunity, as_uuid(opportunity_id))
    if not opportunity:
        raise NotFoundError(f"Opportunity {opportunity_id} not found")
    return opportunity


def authorize_transition(
    actor: Actor,
    application: Application,
    opportunity: Opportunity,
    target: ApplicationStatus,
) -> None:
    """
    Role check for a requested transition.

    Runs before any state validation so unauthorized callers never learn
    the application's current status.
    """
    if target in TEAM_DRIVEN:
        if not actor.is_team_member(application.team_id):
            raise ForbiddenError("Only members of the applicant team can withdraw this application")
        return

    if not actor.belongs_to_company(opportunity.company_id):
        raise ForbiddenError("Only users of the hiring company can change this application's status")

    if target == ApplicationStatus.ACCEPTED and not actor.is_company_admin(opportunity.company_id):
        raise ForbiddenError("Only company admins can make offers")


def parse_payload(payload: Union[TransitionPayload, Dict[str, Any], None]) -> TransitionPayload:
    if isinstance(payload, TransitionPayload):
        return payload
    try:
        return TransitionPayload.model_validate(payload or {})
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid transition payload: {e}")


async def compare_and_swap_status(
    db: AsyncSession,
    application: Application,
    expected: ApplicationStatus,
    target: ApplicationStatus,
    actor_id: uuid.UUID,
    values: Optional[Dict[str, Any]] = None,
    note: Optional[str] = None,
) -> None:
    """
    Move the application from expected to target, conditioned on the stored status.

    Adds the history event to the same transaction. Does not commit.

    Raises:
        ConflictError: another writer changed the status first
    """
    result = await db.execute(
        update(Application)
        .where(
            Application.id == application.id,
            Application.status == expected.value,
        )
        .values(status=target.value, updated_at=datetime.utcnow(), **(values or {}))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"Application {application.id} is no longer {expected.value}; re-read it and decide again"
        )

    db.add(ApplicationEvent(
        application_id=application.id,
        from_status=expected.value,
        to_status=target.value,
        actor_id=actor_id,
        note=note,
    ))


async def transition_application(
    db: AsyncSession,
    actor: Actor,
    application_id,
    target_status: Union[str, ApplicationStatus],
    payload: Union[TransitionPayload, Dict[str, Any], None] = None,
    emitter: Optional[NotificationEmitter] = None,
) -> Application:
    """
    Transition an application to a new status with validation.

    Args:
        db: Database session
        actor: Authenticated actor requesting the change
        application_id: ID of the application to transition
        target_status: Requested status
        payload: Optional TransitionPayload (notes, interview details, offer details)
        emitter: Notification emitter for the counterpart party

    Returns:
        Updated Application

    Raises:
        NotFoundError: application or opportunity missing
        ForbiddenError: actor may not drive this transition
        InvalidTransitionError: transition not allowed from the current status
        ValidationError: unknown status or malformed payload
        ConflictError: status changed concurrently
    """
    application = await get_application(db, application_id)
    opportunity = await get_opportunity(db, application.opportunity_id)
    target = parse_status(target_status)

    authorize_transition(actor, application, opportunity, target)

    current = ApplicationStatus(application.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Invalid transition from {current.value} to {target.value}"
        )

    data = parse_payload(payload)

    if target == ApplicationStatus.ACCEPTED:
        if data.offer is None:
            raise ValidationError("Offer details are required to accept an application")
        from liftout.services.offers import make_offer
        return await make_offer(db, actor, application.id, data.offer, emitter=emitter)

    if target == ApplicationStatus.REJECTED and not data.rejection_reason:
        raise ValidationError("Rejection reason is required")

    now = datetime.utcnow()
    values: Dict[str, Any] = {TRANSITION_TIMESTAMPS[target]: now}
    for field in ("rejection_reason", "response_message", "recruiter_notes", "hiring_manager_notes"):
        value = getattr(data, field)
        if value:
            values[field] = value
    if target == ApplicationStatus.INTERVIEWING and data.interview is not None:
        values["interview_details"] = data.interview.model_dump(mode="json")

    try:
        await compare_and_swap_status(
            db,
            application,
            current,
            target,
            actor.user_id,
            values=values,
            note=data.note or data.rejection_reason,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(application)

    log_data = {
        "application_id": str(application.id),
        "from_status": current.value,
        "to_status": target.value,
        "actor_id": str(actor.user_id),
    }
    logger.info(f"Application status transition: {current.value} → {target.value}", extra=log_data)

    await _notify_counterpart(db, application, opportunity, target, emitter or get_notification_emitter())

    return application


async def _notify_counterpart(
    db: AsyncSession,
    application: Application,
    opportunity: Opportunity,
    target: ApplicationStatus,
    emitter: NotificationEmitter,
) -> None:
    """Fire-and-forget notification to the side that did not drive the transition."""
    payload = {
        "application_id": str(application.id),
        "team_id": str(application.team_id),
        "opportunity_id": str(opportunity.id),
        "opportunity_title": opportunity.title,
        "status": target.value,
        "message": application.response_message or application.rejection_reason or STATUS_MESSAGES[target],
    }
    if target in TEAM_DRIVEN:
        await notify_company(db, emitter, opportunity.company_id, NotificationType.APPLICATION_WITHDRAWN, payload)
    else:
        await notify_team(db, emitter, application.team_id, NotificationType.APPLICATION_STATUS_CHANGED, payload)
