"""
Worker entrypoint for conversation retries.
Re-sends conversation requests for accepted expressions of interest that
never received a conversation id.
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from liftout.config import settings
from liftout.services.conversations import get_conversation_service
from liftout.services.eoi import retry_pending_conversations

logger = logging.getLogger(__name__)


async def worker_main(interval_seconds: float = 0) -> None:
    """Run one retry pass, or keep polling every interval_seconds when it is positive."""
    engine = create_async_engine(settings.database_url, echo=settings.debug)
    async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    conversations = get_conversation_service()
    try:
        while True:
            async with async_session() as db:
                opened = await retry_pending_conversations(db, conversations)
            logger.info(f"Retry pass complete, {opened} conversation(s) opened")
            if interval_seconds <= 0:
                return
            await asyncio.sleep(interval_seconds)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    import sys
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    interval = float(sys.argv[1]) if len(sys.argv) > 1 else 0
    asyncio.run(worker_main(interval))
