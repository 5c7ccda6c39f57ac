"""
Team applications: submission, reads, interview feedback and stats.

Status changes after submission go through services.state_machine.
"""
import logging
from collections import Counter
from datetime import datetime
from typing import Optional, Union, Dict, Any

import pydantic
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.database_types import as_uuid
from liftout.models.application import Application, ApplicationStatus, BLOCKING_STATUSES
from liftout.models.application_event import ApplicationEvent
from liftout.models.opportunity import Opportunity, OpportunityStatus
from liftout.models.team import Team
from liftout.schemas.application import ApplicationContent, InterviewFeedback
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
)
from liftout.services.state_machine import get_application as _load_application, get_opportunity

logger = logging.getLogger(__name__)


def _parse_content(content) -> ApplicationContent:
    if isinstance(content, ApplicationContent):
        return content
    try:
        return ApplicationContent.model_validate(content or {})
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid application content: {e}")


async def submit_application(
    db: AsyncSession,
    actor: Actor,
    team_id,
    opportunity_id,
    content: Union[ApplicationContent, Dict[str, Any], None] = None,
    emitter: Optional[NotificationEmitter] = None,
) -> Application:
    """
    Submit a team's application to an opportunity.

    Raises:
        NotFoundError: team or opportunity missing
        ForbiddenError: actor is not a lead or admin of the team
        ValidationError: opportunity not accepting applications, or bad content
        ConflictError: the team already has a live application for this opportunity
    """
    team_id = as_uuid(team_id)
    opportunity_id = as_uuid(opportunity_id)

    team = await db.get(Team, team_id)
    if not team or team.is_deleted:
        raise NotFoundError(f"Team {team_id} not found")
    opportunity = await get_opportunity(db, opportunity_id)

    if not actor.can_lead_team(team_id):
        raise ForbiddenError("Only team leads or admins can submit applications")

    if opportunity.status != OpportunityStatus.ACTIVE.value:
        raise ValidationError(f"Opportunity is {opportunity.status} and not accepting applications")

    data = _parse_content(content)

    existing = await db.execute(
        select(Application.id).where(
            Application.team_id == team_id,
            Application.opportunity_id == opportunity_id,
            Application.status.in_([s.value for s in BLOCKING_STATUSES]),
        )
    )
    if existing.first() is not None:
        raise ConflictError("Your team already has an active application for this opportunity")

    application = Application(
        team_id=team_id,
        opportunity_id=opportunity_id,
        applied_by=actor.user_id,
        status=ApplicationStatus.SUBMITTED.value,
        **data.model_dump(mode="json", exclude={"availability_date"}),
        availability_date=data.availability_date,
    )

    try:
        db.add(application)
        await db.flush()
        db.add(ApplicationEvent(
            application_id=application.id,
            from_status=None,
            to_status=ApplicationStatus.SUBMITTED.value,
            actor_id=actor.user_id,
        ))
        await db.execute(
            update(Opportunity)
            .where(Opportunity.id == opportunity_id)
            .values(applications_count=Opportunity.applications_count + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except IntegrityError:
        # Lost the race against a concurrent submit; the partial unique index decided
        await db.rollback()
        raise ConflictError("Your team already has an active application for this opportunity")
    except Exception:
        await db.rollback()
        raise
    await db.refresh(application)

    logger.info(
        f"Application {application.id} submitted by team {team_id} for opportunity {opportunity_id}",
        extra={"application_id": str(application.id), "actor_id": str(actor.user_id)},
    )

    await notify_company(
        db,
        emitter or get_notification_emitter(),
        opportunity.company_id,
        NotificationType.APPLICATION_SUBMITTED,
        {
            "application_id": str(application.id),
            "team_id": str(team_id),
            "team_name": team.name,
            "opportunity_id": str(opportunity_id),
            "message": f"{team.name} applied to {opportunity.title}",
        },
    )
    return application


async def get_application(db: AsyncSession, actor: Actor, application_id) -> Application:
    """Visible to members of the applicant team and users of the hiring company."""
    application = await _load_application(db, application_id)
    opportunity = await get_opportunity(db, application.opportunity_id)
    if not (actor.is_team_member(application.team_id) or actor.belongs_to_company(opportunity.company_id)):
        raise ForbiddenError("You do not have access to this application")
    return application


async def list_team_applications(
    db: AsyncSession,
    actor: Actor,
    team_id,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Application]:
    if not actor.is_team_member(team_id):
        raise ForbiddenError("Only team members can list the team's applications")

    query = select(Application).where(Application.team_id == as_uuid(team_id))
    if status:
        query = query.where(Application.status == status)
    query = query.order_by(Application.applied_at.desc()).offset(skip).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_opportunity_applications(
    db: AsyncSession,
    actor: Actor,
    opportunity_id,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Application]:
    opportunity = await get_opportunity(db, opportunity_id)
    if not actor.belongs_to_company(opportunity.company_id):
        raise ForbiddenError("Only users of the hiring company can list its applications")

    query = select(Application).where(Application.opportunity_id == opportunity.id)
    if status:
        query = query.where(Application.status == status)
    query = query.order_by(Application.applied_at.desc()).offset(skip).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def add_interview_feedback(
    db: AsyncSession,
    actor: Actor,
    application_id,
    feedback: Union[InterviewFeedback, Dict[str, Any]],
) -> Application:
    """Append one interviewer's feedback. Only while the application is interviewing."""
    application = await _load_application(db, application_id)
    opportunity = await get_opportunity(db, application.opportunity_id)

    if not actor.belongs_to_company(opportunity.company_id):
        raise ForbiddenError("Only users of the hiring company can add interview feedback")

    if application.status != ApplicationStatus.INTERVIEWING.value:
        raise InvalidTransitionError(
            f"Feedback can only be added while interviewing (status is {application.status})"
        )

    if not isinstance(feedback, InterviewFeedback):
        try:
            feedback = InterviewFeedback.model_validate(feedback)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid interview feedback: {e}")

    entry = feedback.model_dump(mode="json")
    entry["submitted_by"] = str(actor.user_id)
    entry["submitted_at"] = datetime.utcnow().isoformat()

    try:
        # Reassign so the JSON column is flagged dirty
        application.interview_feedback = list(application.interview_feedback or []) + [entry]
        application.updated_at = datetime.utcnow()
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(application)

    logger.info(f"Interview feedback added to application {application.id} by {actor.user_id}")
    return application


async def get_application_history(db: AsyncSession, actor: Actor, application_id) -> list[ApplicationEvent]:
    """Status events in the order they happened."""
    application = await get_application(db, actor, application_id)
    result = await db.execute(
        select(ApplicationEvent)
        .where(ApplicationEvent.application_id == application.id)
        .order_by(ApplicationEvent.created_at.asc())
    )
    return list(result.scalars().all())


async def get_application_stats(db: AsyncSession, actor: Actor) -> dict[str, dict[str, int]]:
    """Counts by status for the actor's teams (sent) and companies (received)."""
    team_counts: Counter = Counter()
    received_counts: Counter = Counter()

    if actor.teams:
        result = await db.execute(
            select(Application.status).where(Application.team_id.in_(list(actor.teams)))
        )
        team_counts.update(row[0] for row in result.all())

    if actor.companies:
        result = await db.execute(
            select(Application.status)
            .join(Opportunity, Opportunity.id == Application.opportunity_id)
            .where(Opportunity.company_id.in_(list(actor.companies)))
        )
        received_counts.update(row[0] for row in result.all())

    def _by_status(counts: Counter) -> dict[str, int]:
        return {s.value: counts.get(s.value, 0) for s in ApplicationStatus}

    return {
        "team_applications": _by_status(team_counts),
        "received_applications": _by_status(received_counts),
    }
