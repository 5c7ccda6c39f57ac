"""
Applications API endpoints.
Submission, status transitions, interview feedback and offers.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.database import get_db
from liftout.models.application import Application
from liftout.api.auth import get_actor
from liftout.services import applications as application_service
from liftout.services import offers as offer_service
from liftout.services.identity import Actor
from liftout.services.notifications import NotificationEmitter, get_notification_emitter
from liftout.services.state_machine import status_message, transition_application
from liftout.schemas.application import (
    ApplicationCreate,
    ApplicationEventResponse,
    ApplicationResponse,
    ApplicationResult,
    ApplicationStats,
    InterviewFeedback,
    OfferDetails,
    OfferRespondRequest,
    OfferResponse,
    TransitionRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def _render(db: AsyncSession, application: Application) -> ApplicationResponse:
    """Serialize an application together with its offer, if one was made."""
    response = ApplicationResponse.model_validate(application)
    offer = await offer_service.get_offer(db, application.id)
    if offer is not None:
        response.offer = OfferResponse.model_validate(offer)
    return response


async def _result(db: AsyncSession, application: Application) -> ApplicationResult:
    offer = await offer_service.get_offer(db, application.id)
    return ApplicationResult(
        application=await _render(db, application),
        message=status_message(application, offer),
    )


# Endpoints
@router.post("/applications", response_model=ApplicationResult, status_code=201)
async def submit_application(
    request: ApplicationCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """
    Submit an application on behalf of a team.
    
    The caller must lead or administer the team. A team can hold only one
    live application per opportunity.
    """
    application = await application_service.submit_application(
        db,
        actor,
        request.team_id,
        request.opportunity_id,
        request.model_dump(exclude={"team_id", "opportunity_id"}),
        emitter=emitter,
    )
    return await _result(db, application)


@router.get("/applications/stats", response_model=ApplicationStats)
async def get_application_stats(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Application counts by status, sent and received."""
    return await application_service.get_application_stats(db, actor)


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    application = await application_service.get_application(db, actor, application_id)
    return await _render(db, application)


@router.get("/applications/{application_id}/history", response_model=list[ApplicationEventResponse])
async def get_application_history(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return await application_service.get_application_history(db, actor, application_id)


@router.post("/applications/{application_id}/transition", response_model=ApplicationResult)
async def transition(
    application_id: UUID,
    request: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """
    Move an application to a new status.
    
    Returns 403 when the caller may not drive the transition, 409 when the
    transition is not allowed from the current status or lost a concurrent
    update, and 422 for an unknown status or incomplete payload.
    """
    application = await transition_application(
        db, actor, application_id, request.status, request.payload, emitter=emitter
    )
    return await _result(db, application)


@router.post("/applications/{application_id}/feedback", response_model=ApplicationResponse)
async def add_interview_feedback(
    application_id: UUID,
    feedback: InterviewFeedback,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    application = await application_service.add_interview_feedback(db, actor, application_id, feedback)
    return await _render(db, application)


@router.post("/applications/{application_id}/offer", response_model=ApplicationResult)
async def make_offer(
    application_id: UUID,
    details: OfferDetails,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """Extend an offer. Company admins and owners only."""
    application = await offer_service.make_offer(db, actor, application_id, details, emitter=emitter)
    return await _result(db, application)


@router.post("/applications/{application_id}/offer/respond", response_model=ApplicationResult)
async def respond_to_offer(
    application_id: UUID,
    request: OfferRespondRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """Accept or decline the team's pending offer. Team leads and admins only."""
    application, _ = await offer_service.respond_to_offer(
        db, actor, application_id, request.response, request.message, emitter=emitter
    )
    return await _result(db, application)


@router.get("/teams/{team_id}/applications", response_model=list[ApplicationResponse])
async def list_team_applications(
    team_id: UUID,
    status: Optional[str] = Query(None, description="Filter by status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    applications = await application_service.list_team_applications(db, actor, team_id, status, skip, limit)
    return [await _render(db, application) for application in applications]


@router.get("/opportunities/{opportunity_id}/applications", response_model=list[ApplicationResponse])
async def list_opportunity_applications(
    opportunity_id: UUID,
    status: Optional[str] = Query(None, description="Filter by status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    applications = await application_service.list_opportunity_applications(
        db, actor, opportunity_id, status, skip, limit
    )
    return [await _render(db, application) for application in applications]
