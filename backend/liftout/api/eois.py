"""
Expressions of interest API endpoints.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from liftout.database import get_db
from liftout.api.auth import get_actor
from liftout.services import eoi as eoi_service
from liftout.services.conversations import ConversationService, get_conversation_service
from liftout.services.identity import Actor
from liftout.services.notifications import NotificationEmitter, get_notification_emitter
from liftout.schemas.eoi import EOICreate, EOIRespond, EOIResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EOIResponse, status_code=201)
async def create_eoi(
    request: EOICreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """
    Express interest in an opportunity (as a team) or in a team (as a company).
    
    Expires after EOI_TTL_DAYS if unanswered.
    """
    eoi = await eoi_service.create_eoi(db, actor, request, emitter=emitter)
    return EOIResponse.from_model(eoi)


@router.get("/", response_model=list[EOIResponse])
async def list_eois(
    direction: str = Query("received", pattern="^(sent|received)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    eois = await eoi_service.list_eois(db, actor, direction, skip, limit)
    return [EOIResponse.from_model(eoi) for eoi in eois]


@router.post("/{eoi_id}/respond", response_model=EOIResponse)
async def respond_to_eoi(
    eoi_id: UUID,
    request: EOIRespond,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
    conversations: ConversationService = Depends(get_conversation_service),
):
    """
    Accept or decline a received expression of interest.
    
    Accepting asks the conversation service to open a thread; if that is
    unavailable the EOI is still accepted and the worker retries later.
    """
    eoi = await eoi_service.respond_to_eoi(
        db, actor, eoi_id, request.response, emitter=emitter, conversations=conversations
    )
    return EOIResponse.from_model(eoi)
