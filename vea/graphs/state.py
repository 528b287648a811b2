"""State definitions for the LangGraph conversation turn."""

from typing import Literal

from pydantic import BaseModel, Field

from vea.models.functions import FunctionCallRequest, FunctionResult
from vea.models.messages import ChatMessage


class TurnState(BaseModel):
    """State for one conversation turn.

    The graph never mutates the session transcript; it produces a single
    assistant ``response`` that the caller appends.
    """

    # Turn input
    session_id: str
    user_id: str
    utterance: str
    history: list[ChatMessage] = Field(default_factory=list)
    reference_images: list[str] = Field(default_factory=list)

    # Classification
    intent: Literal["text", "image", "video"] | None = None
    clean_prompt: str | None = None

    # Model round-trip
    agent_reply: str | None = None
    function_call: FunctionCallRequest | None = None
    function_result: FunctionResult | None = None

    # Output
    response: ChatMessage | None = None
    error: str | None = None

    # Token usage tracking
    total_input_tokens: int = 0
    total_output_tokens: int = 0
