"""Conversation session state."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from vea.models.messages import ChatMessage
from vea.utils.logging import get_logger

logger = get_logger(__name__)

WELCOME_MESSAGE = (
    "Hello! I'm your AI Assistant. I can help you analyze your business data, prioritize tasks, "
    "and provide strategic insights. What would you like to know?"
)


@dataclass
class ConversationSession:
    """Explicit conversation state for one chat session.

    The orchestrator owns ``messages``; the poller only touches the
    messages it was handed.
    """

    session_id: str
    user_id: str
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_dict(self) -> dict[str, Any]:
        """Return the session summary as a dictionary."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "message_count": len(self.messages),
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    def add_message(self, message: ChatMessage) -> ChatMessage:
        """Append a message to the transcript."""
        self.messages.append(message)
        self.update_activity()
        return message

    def add_welcome_message(self) -> ChatMessage:
        """Seed an empty session with the assistant greeting."""
        return self.add_message(ChatMessage(id="welcome", role="assistant", content=WELCOME_MESSAGE))

    def recent_messages(self, count: int) -> list[ChatMessage]:
        """Return up to ``count`` most recent messages."""
        if count <= 0:
            return []
        return self.messages[-count:]

    @property
    def generating_messages(self) -> list[ChatMessage]:
        """Messages with an outstanding video job."""
        return [m for m in self.messages if m.is_generating]
