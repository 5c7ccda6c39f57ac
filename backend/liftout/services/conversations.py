"""
Client for the external Conversation Service.

Conversation creation is idempotent on origin_ref, so a request that failed
or timed out can simply be sent again.
"""
import logging
import uuid
from typing import Iterable

import aiohttp

from liftout.config import settings

logger = logging.getLogger(__name__)


class ConversationServiceError(Exception):
    """Raised when the conversation service rejects or cannot serve a request"""
    pass


class ConversationService:
    """Contract: create_conversation(participant_ids, subject, origin_ref) -> conversation_id"""

    async def create_conversation(
        self,
        participant_ids: Iterable[uuid.UUID],
        subject: str,
        origin_ref: str,
    ) -> str:
        raise NotImplementedError


class LogConversationService(ConversationService):
    """Dev stub used when no CONVERSATION_SERVICE_URL is configured."""

    async def create_conversation(self, participant_ids, subject, origin_ref):
        conversation_id = str(uuid.uuid5(uuid.NAMESPACE_URL, origin_ref))
        logger.info(
            f"[DEV MODE] Conversation {conversation_id} for {origin_ref}: {subject} "
            f"({len(list(participant_ids))} participants)"
        )
        return conversation_id


class HttpConversationService(ConversationService):
    """POSTs conversation requests to the messaging service."""

    def __init__(self, base_url: str, timeout_s: float):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    async def create_conversation(self, participant_ids, subject, origin_ref):
        url = f"{self.base_url}/conversations"
        body = {
            "participant_ids": [str(p) for p in participant_ids],
            "subject": subject,
            "origin_ref": origin_ref,
        }
        headers = {"Idempotency-Key": origin_ref}
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=body, headers=headers) as resp:
                if resp.status not in (200, 201):
                    text = await resp.text(errors="ignore")
                    raise ConversationServiceError(
                        f"Conversation service returned {resp.status} for {origin_ref}: {text[:200]}"
                    )
                data = await resp.json()

        conversation_id = data.get("id") or data.get("conversation_id")
        if not conversation_id:
            raise ConversationServiceError(f"Conversation service response for {origin_ref} had no id")
        return str(conversation_id)


def get_conversation_service() -> ConversationService:
    """FastAPI dependency selecting the configured conversation backend."""
    if settings.conversation_service_url:
        return HttpConversationService(
            settings.conversation_service_url,
            timeout_s=settings.collaborator_timeout_seconds,
        )
    return LogConversationService()
