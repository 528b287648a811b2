"""Conversation turn graph implementation."""

from typing import Any

from langgraph.graph import END, StateGraph

from vea.graphs.edges import route_agent_output, route_dispatch_output, route_intent
from vea.graphs.nodes import TurnNodes
from vea.graphs.state import TurnState
from vea.models.messages import ChatMessage
from vea.models.session import ConversationSession
from vea.utils.logging import get_logger

logger = get_logger(__name__)


def create_turn_graph(nodes: TurnNodes):
    """Create the graph for one conversation turn.

    The turn is strictly sequential:
    - classify the utterance
    - media requests go to the gateway and end
    - text requests call the model, which may request a function
    - a requested function is dispatched and, on success, narrated

    Args:
        nodes: Node implementations bound to their services

    Returns:
        Compiled LangGraph workflow
    """
    logger.info("Creating conversation turn graph")

    workflow = StateGraph(TurnState)

    workflow.add_node("classify", nodes.classify_node)
    workflow.add_node("media", nodes.media_node)
    workflow.add_node("agent", nodes.agent_node)
    workflow.add_node("dispatch", nodes.dispatch_node)
    workflow.add_node("narrate", nodes.narrate_node)

    workflow.set_entry_point("classify")

    workflow.add_conditional_edges(
        "classify",
        route_intent,
        {
            "media": "media",
            "agent": "agent",
        },
    )

    workflow.add_edge("media", END)

    workflow.add_conditional_edges(
        "agent",
        route_agent_output,
        {
            "dispatch": "dispatch",
            "end": END,
        },
    )

    workflow.add_conditional_edges(
        "dispatch",
        route_dispatch_output,
        {
            "narrate": "narrate",
            "end": END,
        },
    )

    workflow.add_edge("narrate", END)

    return workflow.compile()


def create_initial_state(
    session: ConversationSession,
    utterance: str,
    history: list[ChatMessage],
    reference_images: list[str] | None = None,
) -> TurnState:
    """Create the initial state for a turn.

    Args:
        session: Conversation the turn belongs to
        utterance: The user's message
        history: Prior messages sent to the model, oldest first
        reference_images: Image URIs attached to or recently shared before the utterance

    Returns:
        Initial TurnState
    """
    return TurnState(
        session_id=session.session_id,
        user_id=session.user_id,
        utterance=utterance,
        history=history,
        reference_images=reference_images or [],
    )


class TurnResult:
    """Outcome of one graph run."""

    def __init__(self, result: dict[str, Any]):
        response = result.get("response")
        self.response: ChatMessage | None = ChatMessage.model_validate(response) if response is not None else None
        self.error: str | None = result.get("error")
        self.intent: str | None = result.get("intent")
        self.total_input_tokens: int = result.get("total_input_tokens", 0)
        self.total_output_tokens: int = result.get("total_output_tokens", 0)


class ConversationGraphManager:
    """Manager class for conversation graph operations."""

    def __init__(self, nodes: TurnNodes):
        """Initialize the conversation graph manager.

        Args:
            nodes: Node implementations bound to their services
        """
        self.graph = create_turn_graph(nodes)

    async def run_turn(self, initial_state: TurnState) -> TurnResult:
        """Run one turn through the graph.

        Args:
            initial_state: Turn input

        Returns:
            The turn's response (or the error that prevented one) and token usage
        """
        logger.info(f"Running turn for session {initial_state.session_id}")

        config = {
            "configurable": {
                "session_id": initial_state.session_id,
            },
            "recursion_limit": 10,
        }

        result = await self.graph.ainvoke(initial_state.model_dump(), config)
        return TurnResult(result)
