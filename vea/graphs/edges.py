"""Edge logic and routing for the conversation turn graph."""

from typing import Literal

from vea.graphs.state import TurnState
from vea.utils.logging import get_logger

logger = get_logger(__name__)


def route_intent(state: TurnState) -> Literal["media", "agent"]:
    """Route media requests to the gateway and everything else to the model."""
    if state.intent in ("image", "video"):
        return "media"
    return "agent"


def route_agent_output(state: TurnState) -> Literal["dispatch", "end"]:
    """Route from the agent node.

    A function call goes to the dispatcher; a plain reply or an error ends the turn.
    """
    if state.error:
        logger.warning(f"Ending turn after agent error: {state.error}")
        return "end"

    if state.function_call:
        return "dispatch"

    return "end"


def route_dispatch_output(state: TurnState) -> Literal["narrate", "end"]:
    """Only successful function results are narrated."""
    if state.function_result and state.function_result.success:
        return "narrate"
    return "end"
