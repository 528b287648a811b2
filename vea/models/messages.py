"""Conversation transcript data models."""

import re
from datetime import UTC, datetime
from typing import Literal

from cuid2 import cuid_wrapper
from pydantic import BaseModel, Field

cuid = cuid_wrapper()

MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)")


class ChatMessage(BaseModel):
    """One turn in a conversation.

    For video messages ``media_url`` holds the provider task id while
    ``is_generating`` is true and is replaced by a playable URI once the
    poller sees the job succeed.
    """

    id: str = Field(default_factory=lambda: cuid())
    role: Literal["user", "assistant", "system"]
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    media_type: Literal["image", "video"] | None = None
    media_url: str | None = None
    is_generating: bool = False
    progress: int = Field(default=0, ge=0, le=100)
    attachments: list[str] = Field(default_factory=list)

    def image_references(self) -> list[str]:
        """Return attached image URIs followed by markdown images in the content."""
        return [*self.attachments, *MARKDOWN_IMAGE_PATTERN.findall(self.content)]

    def append_notice(self, notice: str) -> None:
        """Append a paragraph to the message content."""
        self.content = f"{self.content}\n\n{notice}" if self.content else notice
