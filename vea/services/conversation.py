"""Conversation service for running turns through the LangGraph turn graph."""

import json
import os
from dataclasses import dataclass, field

from vea.clients.webhook import WebhookCompletionClient
from vea.errors import AssistantError
from vea.functions.registry import FunctionRegistry
from vea.graphs.conversation import ConversationGraphManager, create_initial_state
from vea.graphs.nodes import TurnNodes
from vea.models.messages import ChatMessage
from vea.models.session import ConversationSession
from vea.services.business_data import BusinessDataService, InMemoryBusinessDataService
from vea.services.knowledge import KnowledgeBase
from vea.services.llm import LLMService
from vea.services.media import MediaGateway
from vea.services.persistence import MediaArchiver, MessageStore, PersistenceSink
from vea.services.poller import PollerConfig, VideoPoller
from vea.utils.logging import get_logger

logger = get_logger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OrchestratorConfig:
    """Conversation turn configuration."""

    history_window: int = 5
    reference_image_window: int = 5
    max_message_chars: int = 4000
    use_native_tools: bool = field(default_factory=lambda: _env_flag("VEA_NATIVE_TOOLS", True))


def find_reference_images(
    messages: list[ChatMessage], window: int, attached: list[str] | None = None
) -> list[str]:
    """Images the user attached, or else the ones the user shared in the last ``window`` messages.

    Only user messages count: an image the assistant generated is never
    taken as a reference on its own. The most recent message's images
    come first.
    """
    if attached:
        return list(attached)

    found: list[str] = []
    for message in reversed(messages[-window:] if window > 0 else []):
        if message.role == "user":
            found.extend(message.image_references())

    return list(dict.fromkeys(found))


class ConversationService:
    """Service for handling conversational AI interactions using LangGraph."""

    def __init__(
        self,
        llm_service: LLMService | None = None,
        data_service: BusinessDataService | None = None,
        gateway: MediaGateway | None = None,
        knowledge_base: KnowledgeBase | None = None,
        fallback: WebhookCompletionClient | None = None,
        message_store: MessageStore | None = None,
        archiver: MediaArchiver | None = None,
        config: OrchestratorConfig | None = None,
        poller_config: PollerConfig | None = None,
    ):
        """Initialize conversation service.

        Args:
            llm_service: Language model service
            data_service: Tenant-scoped business data (defaults to seeded demo data)
            gateway: Media generation gateway
            knowledge_base: Optional retrieval augmentation
            fallback: Optional secondary chat backend tried when the model call fails
            message_store: Optional durable message store (writes are best-effort)
            archiver: Optional durable-storage copy step for finished videos
            config: Turn configuration
            poller_config: Video polling configuration
        """
        self.config = config or OrchestratorConfig()
        self.llm_service = llm_service or LLMService()
        self.registry = FunctionRegistry(data_service or InMemoryBusinessDataService())
        self.gateway = gateway or MediaGateway()
        self.knowledge_base = knowledge_base
        self.fallback = fallback
        self.sink = PersistenceSink(message_store)
        self.poller = VideoPoller(self.gateway, config=poller_config, sink=self.sink, archiver=archiver)

        nodes = TurnNodes(
            llm_service=self.llm_service,
            registry=self.registry,
            gateway=self.gateway,
            knowledge_base=self.knowledge_base,
            fallback=self.fallback,
            use_native_tools=self.config.use_native_tools,
        )
        self.graph_manager = ConversationGraphManager(nodes)

        logger.info("ConversationService initialized with LangGraph")

    async def process_message(
        self,
        session: ConversationSession,
        message: str,
        reference_images: list[str] | None = None,
    ) -> ChatMessage:
        """Process a user message and return the assistant reply.

        Both messages are appended to the session. Video replies are handed
        to the poller; the returned message is updated in place as the
        video progresses.

        Args:
            session: Conversation the message belongs to
            message: User's message
            reference_images: Image URIs attached to the message

        Returns:
            The assistant message

        Raises:
            ValueError: If the message is empty or too long
            AssistantError: If neither the model nor the fallback backend produced a reply
        """
        logger.info(f"Processing message for session {session.session_id} {json.dumps(session.as_dict())}")

        self._validate_message(message)

        history = session.recent_messages(self.config.history_window)
        references = find_reference_images(
            session.messages, self.config.reference_image_window, attached=reference_images
        )

        user_message = session.add_message(
            ChatMessage(role="user", content=message, attachments=list(reference_images or []))
        )
        self.sink.save(session.session_id, session.user_id, user_message)

        initial_state = create_initial_state(session, message, history, references)
        result = await self.graph_manager.run_turn(initial_state)

        if result.total_input_tokens:
            logger.info(
                f"Token usage - Input: {result.total_input_tokens}, Output: {result.total_output_tokens}"
            )

        if result.response is None:
            logger.error(f"Turn for session {session.session_id} produced no reply: {result.error}")
            raise AssistantError(result.error or "Failed to get AI response. Please try again.")

        reply = session.add_message(result.response)
        self.sink.save(session.session_id, session.user_id, reply)

        if reply.media_type == "video" and reply.is_generating:
            self.poller.start(session, reply)

        return reply

    def _validate_message(self, message: str) -> None:
        """Validate message size in characters and model tokens.

        Raises:
            ValueError: If the message is empty or exceeds a size limit
        """
        if not message.strip():
            raise ValueError("Message cannot be empty.")

        if len(message) > self.config.max_message_chars:
            raise ValueError(
                f"Your message is too long. Please keep messages under {self.config.max_message_chars} characters."
            )

        self.llm_service.validate_message_tokens(message)

    def add_error_message(self, session: ConversationSession, error: str) -> ChatMessage:
        """Record a failed turn as an inline assistant message so the conversation can continue."""
        message = session.add_message(ChatMessage(role="assistant", content=f"⚠️ {error}"))
        self.sink.save(session.session_id, session.user_id, message)
        return message

    async def shutdown(self) -> None:
        """Cancel outstanding video polls and flush pending writes."""
        await self.poller.cancel_all()
        await self.sink.drain()
