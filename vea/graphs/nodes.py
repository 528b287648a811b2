"""Node implementations for the conversation turn graph."""

import json
from typing import Any

from vea.clients.webhook import WebhookCompletionClient
from vea.errors import VEAError
from vea.functions.directive import from_tool_use, parse_function_call, strip_emphasis
from vea.functions.registry import FunctionRegistry
from vea.graphs.prompts import NARRATE_SYSTEM_PROMPT, build_system_prompt
from vea.graphs.state import TurnState
from vea.models.llm import LLMResponse
from vea.models.messages import ChatMessage
from vea.services.intent import classify
from vea.services.knowledge import KnowledgeBase
from vea.services.llm import LLMService
from vea.services.media import MediaGateway
from vea.utils.logging import get_logger

logger = get_logger(__name__)

EMPTY_REPLY = "I apologize, but I couldn't generate a response. Please try again."

MEDIA_FALLBACK_CAPABILITIES = (
    "I can still help you with:\n"
    "• Business analysis and insights\n"
    "• Task prioritization\n"
    "• Project management advice\n"
    "• Strategic recommendations"
)


def format_function_data(data: Any) -> str:
    """Pretty-print function result data the way it is shown to the model and user."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def media_failure_message(kind: str, error: str) -> str:
    """Text reply for a failed media request that re-offers the other capabilities."""
    if kind == "video":
        intro = f"🎬 I'd love to generate a video for you, but video generation encountered an error: {error}"
    else:
        intro = f"🎨 I'd love to generate an image for you, but image generation encountered an error: {error}"
    return f"{intro}\n\n{MEDIA_FALLBACK_CAPABILITIES}"


def _usage_updates(state: TurnState, response: LLMResponse) -> dict[str, int]:
    return {
        "total_input_tokens": state.total_input_tokens + response.usage.input_tokens,
        "total_output_tokens": state.total_output_tokens + response.usage.output_tokens,
    }


class TurnNodes:
    """Graph nodes bound to the services one conversation turn needs."""

    def __init__(
        self,
        llm_service: LLMService,
        registry: FunctionRegistry,
        gateway: MediaGateway,
        knowledge_base: KnowledgeBase | None = None,
        fallback: WebhookCompletionClient | None = None,
        use_native_tools: bool = True,
    ):
        self.llm_service = llm_service
        self.registry = registry
        self.gateway = gateway
        self.knowledge_base = knowledge_base
        self.fallback = fallback
        self.use_native_tools = use_native_tools

    def _user_message(self, state: TurnState) -> ChatMessage:
        return ChatMessage(role="user", content=state.utterance)

    async def classify_node(self, state: TurnState) -> dict[str, Any]:
        """Classify the utterance as a text, image or video request."""
        intent = classify(state.utterance, has_reference_images=bool(state.reference_images))
        logger.info(f"Classified turn for session {state.session_id} as {intent.kind}")
        return {"intent": intent.kind, "clean_prompt": intent.clean_prompt}

    async def media_node(self, state: TurnState) -> dict[str, Any]:
        """Submit an image or video request and shape the reply.

        Gateway failures become a text reply; they never fail the turn.
        """
        prompt = state.clean_prompt or state.utterance

        if state.intent == "video":
            reference_image = state.reference_images[0] if state.reference_images else None
            result = await self.gateway.generate_video(prompt, reference_image)
            if not result.success:
                return {"response": ChatMessage(role="assistant", content=media_failure_message("video", result.error))}

            return {
                "response": ChatMessage(
                    role="assistant",
                    content=(
                        f'🎬 Generating your video with Veo 3: "{prompt}"\n\n'
                        "This may take 30-90 seconds. I'll update you when it's ready!"
                    ),
                    media_type="video",
                    media_url=result.task_id,
                    is_generating=True,
                    progress=0,
                )
            }

        result = await self.gateway.generate_image(prompt, state.reference_images or None)
        if not result.success:
            return {"response": ChatMessage(role="assistant", content=media_failure_message("image", result.error))}

        return {
            "response": ChatMessage(
                role="assistant",
                content=f'🎨 Here\'s your generated image: "{prompt}"',
                media_type="image",
                media_url=result.url,
            )
        }

    async def agent_node(self, state: TurnState) -> dict[str, Any]:
        """Call the model with the function catalog and detect a function call.

        A native tool-use block takes precedence over a textual directive.
        When the model call fails, the fallback backend answers if configured.
        """
        knowledge_context = ""
        if self.knowledge_base is not None:
            knowledge_context = await self.knowledge_base.retrieve_context(state.utterance)

        system_prompt = build_system_prompt(self.registry.get_descriptors(), knowledge_context)
        tools = self.registry.get_tool_definitions() if self.use_native_tools else None

        try:
            response = await self.llm_service.complete(
                [*state.history, self._user_message(state)],
                system_prompt=system_prompt,
                tools=tools,
            )
        except VEAError as e:
            logger.error(f"Agent model call failed for session {state.session_id}: {e}")
            return await self._fallback_reply(state, e)

        usage = _usage_updates(state, response)
        reply = strip_emphasis(response.text).strip()

        if response.tool_calls:
            tool_call = response.tool_calls[0]
            function_call = from_tool_use(tool_call.name, tool_call.input)
            logger.info(f"Model requested function {function_call.function_name} via tool use")
            agent_reply = f"{reply}\n\n{function_call.as_directive()}" if reply else function_call.as_directive()
            return {"function_call": function_call, "agent_reply": agent_reply, **usage}

        function_call = parse_function_call(reply)
        if function_call:
            logger.info(f"Model requested function {function_call.function_name} via directive")
            return {"function_call": function_call, "agent_reply": reply, **usage}

        return {"response": ChatMessage(role="assistant", content=reply or EMPTY_REPLY), **usage}

    async def _fallback_reply(self, state: TurnState, primary_error: VEAError) -> dict[str, Any]:
        """Answer from the fallback backend, or end the turn with the primary error."""
        if self.fallback is None or not self.fallback.is_configured:
            return {"error": str(primary_error)}

        try:
            reply = await self.fallback.complete(state.utterance, state.session_id)
        except VEAError as e:
            logger.error(f"Fallback backend also failed for session {state.session_id}: {e}")
            return {"error": f"AI service unavailable: {primary_error}"}

        logger.info(f"Answered session {state.session_id} from the fallback backend")
        return {"response": ChatMessage(role="assistant", content=strip_emphasis(reply).strip() or EMPTY_REPLY)}

    async def dispatch_node(self, state: TurnState) -> dict[str, Any]:
        """Execute the requested function as the acting user."""
        call = state.function_call
        result = await self.registry.dispatch(call.function_name, call.parameters, state.user_id)

        if result.success:
            return {"function_result": result}

        return {
            "function_result": result,
            "response": ChatMessage(
                role="assistant",
                content=f"❌ I encountered an error: {result.error}\n\nLet me know if you'd like me to try something else!",
            ),
        }

    async def narrate_node(self, state: TurnState) -> dict[str, Any]:
        """Have the model turn the function result into a conversational reply.

        Falls back to the raw data when the narration call fails.
        """
        name = state.function_call.function_name
        data = format_function_data(state.function_result.data)

        messages = [
            *state.history,
            self._user_message(state),
            ChatMessage(role="assistant", content=state.agent_reply or ""),
            ChatMessage(role="system", content=f"Function {name} returned:\n{data}"),
        ]

        try:
            response = await self.llm_service.complete(messages, system_prompt=NARRATE_SYSTEM_PROMPT)
        except VEAError as e:
            logger.warning(f"Narration of {name} failed, returning raw data: {e}")
            return {"response": ChatMessage(role="assistant", content=f"✅ Here's what I found:\n\n{data}")}

        content = strip_emphasis(response.text).strip()
        if not content:
            content = f"✅ Here's what I found:\n\n{data}"

        return {"response": ChatMessage(role="assistant", content=content), **_usage_updates(state, response)}
