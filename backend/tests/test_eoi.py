"""
Tests for expressions of interest.

Validates:
- Allowed pairings, sender authorization, duplicate live EOIs
- Accepting requests exactly one conversation, even when repeated
- Expiry is derived at read time
- A failed conversation request leaves the EOI accepted and is retried later
"""
import uuid
import pytest
import pytest_asyncio
from datetime import datetime, timedelta

from liftout.config import settings
from liftout.models.expression_of_interest import ExpressionOfInterest, EOIStatus
from liftout.schemas.eoi import EOICreate, EOIResponse
from liftout.services.eoi import (
    ConversationRequested,
    create_eoi,
    list_eois,
    respond_to_eoi,
    retry_pending_conversations,
)
from liftout.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from liftout.services.notifications import NotificationType

from conftest import FakeConversationService


def team_to_opportunity(team, opportunity, **extra) -> EOICreate:
    return EOICreate(from_type="team", from_id=team.id, to_type="opportunity", to_id=opportunity.id, **extra)


def company_to_team(company, team, **extra) -> EOICreate:
    return EOICreate(from_type="company", from_id=company.id, to_type="team", to_id=team.id, **extra)


async def expire(db, eoi):
    eoi.expires_at = datetime.utcnow() - timedelta(minutes=1)
    await db.commit()


@pytest_asyncio.fixture
async def team_eoi(db, team, opportunity, actors, emitter):
    return await create_eoi(
        db,
        actors["creator"],
        team_to_opportunity(team, opportunity, message="We'd love to talk", interest_level="high"),
        emitter=emitter,
    )


@pytest_asyncio.fixture
async def company_eoi(db, team, company, actors, emitter):
    return await create_eoi(
        db,
        actors["recruiter"],
        company_to_team(company, team, specific_role="Payments platform", budget_range="$1.2M-$1.5M"),
        emitter=emitter,
    )


# =============================================================================
# Creation
# =============================================================================

@pytest.mark.asyncio
async def test_team_expresses_interest_in_opportunity(db, team_eoi, company_admin, recruiter, emitter):
    assert team_eoi.status == EOIStatus.PENDING.value
    assert team_eoi.interest_level == "high"
    expected_expiry = team_eoi.created_at + timedelta(days=settings.eoi_ttl_days)
    assert team_eoi.expires_at == expected_expiry
    assert emitter.recipients(NotificationType.EOI_RECEIVED) == {company_admin.id, recruiter.id}


@pytest.mark.asyncio
async def test_company_interest_reaches_team_leads(db, company_eoi, creator, emitter):
    assert company_eoi.specific_role == "Payments platform"
    assert emitter.recipients(NotificationType.EOI_RECEIVED) == {creator.id}


@pytest.mark.asyncio
@pytest.mark.parametrize("from_type,to_type", [
    ("team", "team"),
    ("company", "opportunity"),
    ("opportunity", "team"),
    ("team", "company"),
])
async def test_unsupported_pairings(db, team, actors, emitter, from_type, to_type):
    data = EOICreate(from_type=from_type, from_id=team.id, to_type=to_type, to_id=uuid.uuid4())

    with pytest.raises(ValidationError):
        await create_eoi(db, actors["creator"], data, emitter=emitter)


@pytest.mark.asyncio
async def test_unknown_interest_level(db, team, opportunity, actors, emitter):
    with pytest.raises(ValidationError):
        await create_eoi(db, actors["creator"], team_to_opportunity(team, opportunity, interest_level="urgent"), emitter=emitter)


@pytest.mark.asyncio
async def test_only_leads_speak_for_team(db, team, opportunity, actors, emitter):
    with pytest.raises(ForbiddenError):
        await create_eoi(db, actors["alice"], team_to_opportunity(team, opportunity), emitter=emitter)


@pytest.mark.asyncio
async def test_only_company_users_speak_for_company(db, team, company, actors, emitter):
    with pytest.raises(ForbiddenError):
        await create_eoi(db, actors["creator"], company_to_team(company, team), emitter=emitter)


@pytest.mark.asyncio
async def test_missing_target(db, team, actors, emitter):
    data = EOICreate(from_type="team", from_id=team.id, to_type="opportunity", to_id=uuid.uuid4())

    with pytest.raises(NotFoundError):
        await create_eoi(db, actors["creator"], data, emitter=emitter)


@pytest.mark.asyncio
async def test_duplicate_live_eoi_conflicts_until_expired(db, team_eoi, team, opportunity, actors, emitter):
    with pytest.raises(ConflictError):
        await create_eoi(db, actors["creator"], team_to_opportunity(team, opportunity), emitter=emitter)

    await expire(db, team_eoi)

    again = await create_eoi(db, actors["creator"], team_to_opportunity(team, opportunity), emitter=emitter)
    assert again.id != team_eoi.id


# =============================================================================
# Responding
# =============================================================================

@pytest.mark.asyncio
async def test_accept_requests_one_conversation(db, team_eoi, actors, emitter, conversations):
    accepted = await respond_to_eoi(
        db, actors["recruiter"], team_eoi.id, "accepted", emitter=emitter, conversations=conversations
    )

    assert accepted.status == EOIStatus.ACCEPTED.value
    assert accepted.responded_at is not None
    assert accepted.responded_by == actors["recruiter"].user_id
    assert accepted.conversation_id == f"conv-eoi:{team_eoi.id}"
    assert len(conversations.requests) == 1
    participants, _, origin_ref = conversations.requests[0]
    assert origin_ref == ConversationRequested(team_eoi.from_id, team_eoi.to_id, team_eoi.id).origin_ref
    # Three team members and two company users
    assert len(participants) == 5

    responded = len([s for s in emitter.sent if s[1] == NotificationType.EOI_RESPONDED])

    again = await respond_to_eoi(
        db, actors["admin"], team_eoi.id, "accepted", emitter=emitter, conversations=conversations
    )

    assert again.status == EOIStatus.ACCEPTED.value
    assert len(conversations.requests) == 1
    assert len([s for s in emitter.sent if s[1] == NotificationType.EOI_RESPONDED]) == responded


@pytest.mark.asyncio
async def test_accept_notifies_sender(db, team_eoi, actors, creator, emitter, conversations):
    emitter.sent.clear()

    await respond_to_eoi(db, actors["recruiter"], team_eoi.id, "accepted", emitter=emitter, conversations=conversations)

    assert emitter.recipients(NotificationType.EOI_RESPONDED) == {creator.id}


@pytest.mark.asyncio
async def test_decline_requests_no_conversation(db, company_eoi, actors, emitter, conversations):
    declined = await respond_to_eoi(
        db, actors["creator"], company_eoi.id, "declined", emitter=emitter, conversations=conversations
    )

    assert declined.status == EOIStatus.DECLINED.value
    assert declined.conversation_id is None
    assert conversations.requests == []


@pytest.mark.asyncio
async def test_resolved_eoi_cannot_flip(db, company_eoi, actors, emitter, conversations):
    await respond_to_eoi(db, actors["creator"], company_eoi.id, "declined", emitter=emitter, conversations=conversations)

    with pytest.raises(InvalidTransitionError):
        await respond_to_eoi(db, actors["creator"], company_eoi.id, "accepted", emitter=emitter, conversations=conversations)


@pytest.mark.asyncio
async def test_only_recipient_responds(db, team_eoi, company_eoi, actors, emitter, conversations):
    # Sender side, plain team member and outsider are all refused
    for name, eoi_id in (("creator", team_eoi.id), ("outsider", team_eoi.id), ("alice", company_eoi.id), ("recruiter", company_eoi.id)):
        with pytest.raises(ForbiddenError):
            await respond_to_eoi(db, actors[name], eoi_id, "accepted", emitter=emitter, conversations=conversations)


@pytest.mark.asyncio
async def test_forbidden_before_response_validation(db, team_eoi, actors, emitter):
    with pytest.raises(ForbiddenError):
        await respond_to_eoi(db, actors["outsider"], team_eoi.id, "maybe", emitter=emitter)

    with pytest.raises(ValidationError):
        await respond_to_eoi(db, actors["recruiter"], team_eoi.id, "maybe", emitter=emitter)


@pytest.mark.asyncio
async def test_expired_eoi_cannot_be_answered(db, team_eoi, actors, emitter, conversations):
    await expire(db, team_eoi)

    assert EOIResponse.from_model(team_eoi).status == EOIStatus.EXPIRED.value
    # Expiry is derived; the stored status is untouched
    assert team_eoi.status == EOIStatus.PENDING.value

    with pytest.raises(InvalidTransitionError):
        await respond_to_eoi(db, actors["recruiter"], team_eoi.id, "accepted", emitter=emitter, conversations=conversations)


@pytest.mark.asyncio
async def test_missing_eoi(db, actors, emitter):
    with pytest.raises(NotFoundError):
        await respond_to_eoi(db, actors["recruiter"], uuid.uuid4(), "accepted", emitter=emitter)


# =============================================================================
# Conversation hand-off
# =============================================================================

@pytest.mark.asyncio
async def test_failed_conversation_is_retried(db, team_eoi, actors, emitter):
    broken = FakeConversationService(fail=True)
    eoi_id = team_eoi.id

    accepted = await respond_to_eoi(db, actors["recruiter"], eoi_id, "accepted", emitter=emitter, conversations=broken)

    assert accepted.status == EOIStatus.ACCEPTED.value
    assert accepted.conversation_id is None
    assert accepted.conversation_requested_at is not None

    # Still broken: nothing opened, nothing lost
    assert await retry_pending_conversations(db, broken) == 0
    assert len(broken.requests) == 2

    working = FakeConversationService()
    assert await retry_pending_conversations(db, working) == 1
    assert working.requests[0][2] == f"eoi:{eoi_id}"

    eoi = await db.get(ExpressionOfInterest, eoi_id, populate_existing=True)
    assert eoi.conversation_id == f"conv-eoi:{eoi_id}"
    assert await retry_pending_conversations(db, working) == 0


@pytest.mark.asyncio
async def test_slow_conversation_service_times_out(db, team_eoi, actors, emitter, monkeypatch):
    import asyncio

    class SlowConversationService(FakeConversationService):
        async def create_conversation(self, participant_ids, subject, origin_ref):
            await asyncio.sleep(60)

    monkeypatch.setattr(settings, "collaborator_timeout_seconds", 0.05)

    accepted = await respond_to_eoi(
        db, actors["recruiter"], team_eoi.id, "accepted", emitter=emitter, conversations=SlowConversationService()
    )

    assert accepted.status == EOIStatus.ACCEPTED.value
    assert accepted.conversation_id is None


# =============================================================================
# Listing
# =============================================================================

@pytest.mark.asyncio
async def test_list_sent_and_received(db, team_eoi, company_eoi, actors):
    team_sent = await list_eois(db, actors["creator"], "sent")
    team_received = await list_eois(db, actors["creator"], "received")
    company_received = await list_eois(db, actors["recruiter"], "received")
    outsider_received = await list_eois(db, actors["outsider"], "received")

    assert [e.id for e in team_sent] == [team_eoi.id]
    assert [e.id for e in team_received] == [company_eoi.id]
    assert [e.id for e in company_received] == [team_eoi.id]
    assert outsider_received == []


@pytest.mark.asyncio
async def test_list_reports_expired(db, team_eoi, actors):
    await expire(db, team_eoi)

    listed = await list_eois(db, actors["admin"], "received")

    assert [EOIResponse.from_model(e).status for e in listed] == ["expired"]


@pytest.mark.asyncio
async def test_list_bad_direction(db, actors):
    with pytest.raises(ValidationError):
        await list_eois(db, actors["admin"], "sideways")
