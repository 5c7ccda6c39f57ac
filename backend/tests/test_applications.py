"""
Tests for application submission, reads, feedback and stats.
"""
import pytest
from datetime import datetime
from sqlalchemy.exc import IntegrityError

from liftout.models.application import Application, ApplicationStatus
from liftout.models.opportunity import Opportunity, OpportunityStatus
from liftout.services.applications import (
    add_interview_feedback,
    get_application,
    get_application_stats,
    list_opportunity_applications,
    list_team_applications,
    submit_application,
)
from liftout.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from liftout.services.notifications import NotificationType
from liftout.services.state_machine import transition_application

from conftest import make_team, make_user


# =============================================================================
# Submission
# =============================================================================

@pytest.mark.asyncio
async def test_submit_creates_submitted_application(db, application, opportunity, creator, company_admin, recruiter, emitter):
    assert application.status == ApplicationStatus.SUBMITTED.value
    assert application.applied_by == creator.id
    assert application.cover_letter == "We ship payments systems together."
    assert application.applied_at is not None

    await db.refresh(opportunity)
    assert opportunity.applications_count == 1
    assert emitter.recipients(NotificationType.APPLICATION_SUBMITTED) == {company_admin.id, recruiter.id}


@pytest.mark.asyncio
async def test_availability_date_stored_as_utc(db, team, opportunity, actors, emitter):
    submitted = await submit_application(
        db,
        actors["creator"],
        team.id,
        opportunity.id,
        {"availability_date": "2027-02-01T10:00:00-02:00"},
        emitter=emitter,
    )

    assert submitted.availability_date == datetime(2027, 2, 1, 12, 0)


@pytest.mark.asyncio
async def test_duplicate_live_application_conflicts(db, application, team, opportunity, actors, emitter):
    team_id, opportunity_id = team.id, opportunity.id

    for status in ("reviewing", "interviewing"):
        with pytest.raises(ConflictError):
            await submit_application(db, actors["creator"], team_id, opportunity_id, emitter=emitter)
        await transition_application(db, actors["recruiter"], application.id, status, emitter=emitter)

    with pytest.raises(ConflictError):
        await submit_application(db, actors["creator"], team_id, opportunity_id, emitter=emitter)


@pytest.mark.asyncio
@pytest.mark.parametrize("closing", [
    ("withdrawn", "alice", {}),
    ("rejected", "admin", {"rejection_reason": "Not this time"}),
])
async def test_resubmit_after_terminal_status(db, application, team, opportunity, actors, emitter, closing):
    status, actor_name, payload = closing
    await transition_application(db, actors[actor_name], application.id, status, payload, emitter=emitter)

    second = await submit_application(db, actors["creator"], team.id, opportunity.id, emitter=emitter)

    assert second.id != application.id
    assert second.status == ApplicationStatus.SUBMITTED.value


@pytest.mark.asyncio
async def test_storage_blocks_two_live_rows(db, team, opportunity, creator):
    """The partial unique index rejects a second live row even without the service check"""
    db.add(Application(team_id=team.id, opportunity_id=opportunity.id, applied_by=creator.id))
    await db.commit()

    db.add(Application(team_id=team.id, opportunity_id=opportunity.id, applied_by=creator.id))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


@pytest.mark.asyncio
async def test_storage_allows_live_row_next_to_withdrawn(db, team, opportunity, creator):
    db.add(Application(
        team_id=team.id,
        opportunity_id=opportunity.id,
        applied_by=creator.id,
        status=ApplicationStatus.WITHDRAWN.value,
    ))
    db.add(Application(team_id=team.id, opportunity_id=opportunity.id, applied_by=creator.id))
    await db.commit()


@pytest.mark.asyncio
async def test_plain_member_cannot_submit(db, team, opportunity, actors, emitter):
    with pytest.raises(ForbiddenError):
        await submit_application(db, actors["alice"], team.id, opportunity.id, emitter=emitter)


@pytest.mark.asyncio
async def test_cannot_apply_to_filled_opportunity(db, team, opportunity, actors, emitter):
    opportunity.status = OpportunityStatus.FILLED.value
    await db.commit()

    with pytest.raises(ValidationError):
        await submit_application(db, actors["creator"], team.id, opportunity.id, emitter=emitter)


@pytest.mark.asyncio
async def test_submit_to_missing_opportunity(db, team, actors, emitter):
    import uuid
    with pytest.raises(NotFoundError):
        await submit_application(db, actors["creator"], team.id, uuid.uuid4(), emitter=emitter)


@pytest.mark.asyncio
async def test_negative_compensation_rejected(db, team, opportunity, actors, emitter):
    with pytest.raises(ValidationError):
        await submit_application(
            db, actors["creator"], team.id, opportunity.id, {"proposed_compensation": -5}, emitter=emitter
        )


# =============================================================================
# Reads
# =============================================================================

@pytest.mark.asyncio
async def test_application_visible_to_both_sides_only(db, application, actors):
    for name in ("bob", "recruiter"):
        assert (await get_application(db, actors[name], application.id)).id == application.id

    with pytest.raises(ForbiddenError):
        await get_application(db, actors["outsider"], application.id)


@pytest.mark.asyncio
async def test_list_filters_by_status(db, application, team, opportunity, actors, emitter):
    other = Opportunity(company_id=opportunity.company_id, title="Data Platform Team")
    db.add(other)
    await db.commit()
    await db.refresh(other)
    second = await submit_application(db, actors["creator"], team.id, other.id, emitter=emitter)
    await transition_application(db, actors["recruiter"], second.id, "reviewing", emitter=emitter)

    everything = await list_team_applications(db, actors["alice"], team.id)
    reviewing = await list_team_applications(db, actors["alice"], team.id, status="reviewing")
    received = await list_opportunity_applications(db, actors["recruiter"], opportunity.id)

    assert {a.id for a in everything} == {application.id, second.id}
    assert [a.id for a in reviewing] == [second.id]
    assert [a.id for a in received] == [application.id]

    with pytest.raises(ForbiddenError):
        await list_team_applications(db, actors["recruiter"], team.id)
    with pytest.raises(ForbiddenError):
        await list_opportunity_applications(db, actors["alice"], opportunity.id)


@pytest.mark.asyncio
async def test_stats_count_sent_and_received(db, application, actors, emitter):
    await transition_application(db, actors["recruiter"], application.id, "reviewing", emitter=emitter)

    team_side = await get_application_stats(db, actors["alice"])
    company_side = await get_application_stats(db, actors["admin"])

    assert team_side["team_applications"]["reviewing"] == 1
    assert sum(team_side["received_applications"].values()) == 0
    assert company_side["received_applications"]["reviewing"] == 1
    assert company_side["received_applications"]["submitted"] == 0


# =============================================================================
# Interview feedback
# =============================================================================

FEEDBACK = {
    "interviewer_name": "Dana Chen",
    "rating": 4,
    "strengths": ["system design"],
    "concerns": [],
    "recommendation": "proceed",
}


@pytest.mark.asyncio
async def test_feedback_only_while_interviewing(db, application, actors, emitter):
    with pytest.raises(InvalidTransitionError):
        await add_interview_feedback(db, actors["recruiter"], application.id, FEEDBACK)

    await transition_application(db, actors["recruiter"], application.id, "reviewing", emitter=emitter)
    await transition_application(db, actors["recruiter"], application.id, "interviewing", emitter=emitter)

    result = await add_interview_feedback(db, actors["recruiter"], application.id, FEEDBACK)
    result = await add_interview_feedback(db, actors["admin"], application.id, {**FEEDBACK, "rating": 5})

    assert [f["rating"] for f in result.interview_feedback] == [4, 5]
    assert result.interview_feedback[0]["submitted_by"] == str(actors["recruiter"].user_id)
    assert "submitted_at" in result.interview_feedback[1]


@pytest.mark.asyncio
async def test_team_cannot_add_feedback(db, application, actors):
    with pytest.raises(ForbiddenError):
        await add_interview_feedback(db, actors["creator"], application.id, FEEDBACK)


@pytest.mark.asyncio
async def test_feedback_rating_out_of_range(db, application, actors, emitter):
    await transition_application(db, actors["recruiter"], application.id, "reviewing", emitter=emitter)
    await transition_application(db, actors["recruiter"], application.id, "interviewing", emitter=emitter)

    with pytest.raises(ValidationError):
        await add_interview_feedback(db, actors["recruiter"], application.id, {**FEEDBACK, "rating": 9})


@pytest.mark.asyncio
async def test_second_team_applies_independently(db, application, opportunity, actors, emitter):
    """The live-application guard is per team, not per opportunity"""
    lead = await make_user(db, "lead@other.example")
    mate = await make_user(db, "mate@other.example")
    other_team = await make_team(db, lead, members=[(mate, False)], name="Other Squad")
    from liftout.services.identity import load_actor

    submitted = await submit_application(
        db, await load_actor(db, lead.id), other_team.id, opportunity.id, emitter=emitter
    )

    assert submitted.status == ApplicationStatus.SUBMITTED.value
