"""FastAPI dependencies for the conversation API."""

from functools import lru_cache

from fastapi import Header

from vea.clients.webhook import WebhookCompletionClient
from vea.services.business_data import InMemoryBusinessDataService
from vea.services.conversation import ConversationService
from vea.services.knowledge import KnowledgeBase
from vea.services.persistence import InMemoryMessageStore
from vea.services.session_manager import InMemorySessionManager


@lru_cache
def get_conversation_service() -> ConversationService:
    """Get the process-wide conversation service."""
    return ConversationService(
        knowledge_base=KnowledgeBase(),
        fallback=WebhookCompletionClient(),
        message_store=InMemoryMessageStore(),
    )


@lru_cache
def get_session_manager() -> InMemorySessionManager:
    """Get the process-wide session manager."""
    return InMemorySessionManager()


def get_user_id(x_user_id: str = Header(default=InMemoryBusinessDataService.DEMO_USER_ID, alias="X-User-Id")) -> str:
    """Acting user identity, supplied by the authentication proxy."""
    return x_user_id
