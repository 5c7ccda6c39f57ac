"""
Pytest fixtures for testing.
"""
import asyncio
import pytest
import pytest_asyncio
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Import database module BEFORE app to allow override
import liftout.database
from liftout.database import Base
# Import ALL models so Base.metadata knows about all tables
from liftout.models import (
    User,
    Team,
    TeamMember,
    Company,
    CompanyUser,
    Opportunity,
    Application,
)
from liftout.services.identity import load_actor
from liftout.services.notifications import NotificationEmitter, get_notification_emitter
from liftout.services.conversations import ConversationService, get_conversation_service

# Now import app (after we can override database)
from liftout.main import app as fastapi_app


# Test database URL (use in-memory SQLite for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# Collaborator fakes
# =============================================================================

class RecordingEmitter(NotificationEmitter):
    """Keeps every emitted notification in memory."""

    def __init__(self):
        self.sent = []

    async def emit(self, user_id, type, payload):
        self.sent.append((user_id, type, payload))

    def recipients(self, type=None):
        return {user_id for user_id, t, _ in self.sent if type is None or t == type}


class FailingEmitter(NotificationEmitter):
    def __init__(self):
        self.calls = 0

    async def emit(self, user_id, type, payload):
        self.calls += 1
        raise RuntimeError("notification backend down")


class HangingEmitter(NotificationEmitter):
    async def emit(self, user_id, type, payload):
        await asyncio.sleep(60)


class FakeConversationService(ConversationService):
    """Records requests; can be told to fail until further notice."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests = []

    async def create_conversation(self, participant_ids, subject, origin_ref):
        self.requests.append((list(participant_ids), subject, origin_ref))
        if self.fail:
            raise RuntimeError("conversation service unavailable")
        return f"conv-{origin_ref}"


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def conversations() -> FakeConversationService:
    return FakeConversationService()


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.
    Ensures cleanup happens even if test fails.
    """
    # Use StaticPool to keep single connection alive and reuse it
    # This ensures all sessions see the same in-memory database
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Replace the app's engine and sessionmaker so get_db() and the
    # notification outbox use the test database
    original_engine = liftout.database.engine
    original_sessionmaker = liftout.database.AsyncSessionLocal

    liftout.database.engine = test_engine
    liftout.database.AsyncSessionLocal = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    await liftout.database.init_db()

    session = liftout.database.AsyncSessionLocal()

    try:
        yield session
    finally:
        try:
            await session.close()
        except Exception as e:
            print(f"Warning: Failed to close session: {e}")

        try:
            async with test_engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        except Exception as e:
            print(f"Warning: Failed to drop tables: {e}")

        await test_engine.dispose()

        liftout.database.engine = original_engine
        liftout.database.AsyncSessionLocal = original_sessionmaker


# =============================================================================
# People, teams, companies
# =============================================================================

async def make_user(db: AsyncSession, email: str, full_name: str = None) -> User:
    user = User(email=email, full_name=full_name or email.split("@")[0].title())
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_team(db: AsyncSession, creator: User, members=(), name: str = "Platform Squad") -> Team:
    """Team whose creator is its only lead; members are (user, is_lead) pairs."""
    team = Team(name=name, created_by=creator.id, size=1 + len(members))
    db.add(team)
    await db.flush()
    db.add(TeamMember(team_id=team.id, user_id=creator.id, role="lead", is_lead=True))
    for user, is_lead in members:
        db.add(TeamMember(
            team_id=team.id,
            user_id=user.id,
            role="lead" if is_lead else "member",
            is_lead=is_lead,
        ))
    await db.commit()
    await db.refresh(team)
    return team


@pytest_asyncio.fixture
async def creator(db):
    return await make_user(db, "creator@team.example")


@pytest_asyncio.fixture
async def alice(db):
    return await make_user(db, "alice@team.example")


@pytest_asyncio.fixture
async def bob(db):
    return await make_user(db, "bob@team.example")


@pytest_asyncio.fixture
async def outsider(db):
    return await make_user(db, "outsider@elsewhere.example")


@pytest_asyncio.fixture
async def team(db, creator, alice, bob):
    """Three active members: creator (lead), alice, bob."""
    return await make_team(db, creator, members=[(alice, False), (bob, False)])


@pytest_asyncio.fixture
async def company_admin(db):
    return await make_user(db, "admin@acme.example")


@pytest_asyncio.fixture
async def recruiter(db):
    return await make_user(db, "recruiter@acme.example")


@pytest_asyncio.fixture
async def company(db, company_admin, recruiter):
    company = Company(name="Acme Corp")
    db.add(company)
    await db.flush()
    db.add(CompanyUser(company_id=company.id, user_id=company_admin.id, role="admin"))
    db.add(CompanyUser(company_id=company.id, user_id=recruiter.id, role="member"))
    await db.commit()
    await db.refresh(company)
    return company


@pytest_asyncio.fixture
async def opportunity(db, company):
    opportunity = Opportunity(
        company_id=company.id,
        title="Payments Platform Team",
        description="Own the payments platform end to end",
    )
    db.add(opportunity)
    await db.commit()
    await db.refresh(opportunity)
    return opportunity


@pytest_asyncio.fixture
async def actors(db, team, company, creator, alice, bob, company_admin, recruiter, outsider):
    """Actor for every fixture user, keyed by name."""
    return {
        "creator": await load_actor(db, creator.id),
        "alice": await load_actor(db, alice.id),
        "bob": await load_actor(db, bob.id),
        "admin": await load_actor(db, company_admin.id),
        "recruiter": await load_actor(db, recruiter.id),
        "outsider": await load_actor(db, outsider.id),
    }


@pytest_asyncio.fixture
async def application(db, team, opportunity, actors, emitter):
    """A freshly submitted application from team to opportunity."""
    from liftout.services.applications import submit_application
    return await submit_application(
        db,
        actors["creator"],
        team.id,
        opportunity.id,
        {"cover_letter": "We ship payments systems together."},
        emitter=emitter,
    )


# =============================================================================
# HTTP
# =============================================================================

@pytest_asyncio.fixture
async def async_client(db: AsyncSession, emitter, conversations) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing endpoints.

    The db fixture already replaced liftout.database.engine with test engine,
    so all endpoints will automatically use the test database. Collaborators
    are replaced with the in-memory fakes.
    """
    fastapi_app.dependency_overrides[get_notification_emitter] = lambda: emitter
    fastapi_app.dependency_overrides[get_conversation_service] = lambda: conversations
    transport = ASGITransport(app=fastapi_app)

    try:
        async with AsyncClient(
            transport=transport,
            base_url="http://test",
            follow_redirects=True  # Follow 307 redirects for trailing slashes
        ) as client:
            yield client
    finally:
        fastapi_app.dependency_overrides.clear()


def login(client: AsyncClient, user: User) -> AsyncClient:
    """Phase 1: the auth cookie contains just the user_id."""
    client.cookies.set("auth_token", str(user.id))
    return client
