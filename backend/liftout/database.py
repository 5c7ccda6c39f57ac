"""
Async database engine, session factory and declarative base.
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from liftout.config import settings


engine = create_async_engine(settings.database_url, echo=settings.debug)

# Session factory used by request handlers, the worker and the notification outbox
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """FastAPI dependency yielding a session per request."""
    async with AsyncSessionLocal() as session:
        yield session


async def init_db():
    """Create all tables (dev convenience; production uses Alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database engine and connections."""
    await engine.dispose()
