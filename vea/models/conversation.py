"""HTTP request and response models."""

from datetime import datetime

from pydantic import BaseModel, Field

from vea.models.messages import ChatMessage


class ConversationRequest(BaseModel):
    """Request model for conversation endpoint."""

    message: str
    session_id: str | None = None
    reference_images: list[str] | None = Field(
        default=None,
        description="URIs of images attached to this message",
    )


class ConversationResponse(BaseModel):
    """Response model for conversation endpoint."""

    session_id: str
    message: ChatMessage


class TranscriptResponse(BaseModel):
    """Response model for the transcript endpoint."""

    session_id: str
    messages: list[ChatMessage]


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
