"""LLM service: provider-agnostic completions over the conversation transcript."""

from vea.clients.anthropic import AnthropicClient, AnthropicResponse, AnthropicTool
from vea.models.llm import LLMMessage, LLMResponse, LLMToolDefinition, LLMUsage
from vea.models.messages import ChatMessage
from vea.utils.logging import get_logger

logger = get_logger(__name__)


class LLMService:
    """High-level LLM service used by the conversation graph."""

    def __init__(self, client: AnthropicClient | None = None):
        """Initialize LLM service.

        Args:
            client: Anthropic client (defaults to one configured from the environment)
        """
        self.client = client or AnthropicClient()

    def _convert_anthropic_response(self, anthropic_response: AnthropicResponse) -> LLMResponse:
        """Convert Anthropic response to provider-agnostic LLM response."""
        return LLMResponse(
            content=anthropic_response.content,
            stop_reason=anthropic_response.stop_reason,
            usage=LLMUsage(
                input_tokens=anthropic_response.usage.input_tokens,
                output_tokens=anthropic_response.usage.output_tokens,
                total_tokens=anthropic_response.usage.total_tokens,
            ),
            model=anthropic_response.model,
            provider="anthropic",
        )

    async def complete(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        tools: list[LLMToolDefinition] | None = None,
        **kwargs,
    ) -> LLMResponse:
        """Run one model call over a transcript.

        Args:
            messages: Transcript, oldest first
            system_prompt: System prompt for the call
            tools: Native tool definitions, if the call may request a function
            **kwargs: Provider overrides (model, max_tokens, temperature)

        Returns:
            Provider-agnostic response

        Raises:
            ConfigurationError, ProviderError, ProviderTimeoutError
        """
        llm_messages = [LLMMessage(role=message.role, content=message.content) for message in messages]
        anthropic_tools = (
            [AnthropicTool(name=t.name, description=t.description, input_schema=t.input_schema) for t in tools]
            if tools
            else None
        )

        logger.info(f"Calling LLM with {len(llm_messages)} messages and {len(tools) if tools else 0} tools")
        response = await self.client.create_message(
            messages=llm_messages,
            system_prompt=system_prompt,
            tools=anthropic_tools,
            **kwargs,
        )

        result = self._convert_anthropic_response(response)
        logger.info(
            f"LLM response - stop reason: {result.stop_reason}, "
            f"tokens in/out: {result.usage.input_tokens}/{result.usage.output_tokens}"
        )
        return result

    def validate_message_tokens(self, message: str) -> None:
        """Validate a user message against the client's per-message token limit."""
        self.client.validate_message_tokens(message)
