"""Anthropic API client with rate limiting, truncation and error mapping."""

import asyncio
import os
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import tiktoken
from anthropic import APIConnectionError, APIStatusError, APITimeoutError, AsyncAnthropic
from anthropic.types import ContentBlock as AnthropicContentBlock
from anthropic.types import Message
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from pydantic import BaseModel

from vea.errors import ConfigurationError, ProviderError, ProviderTimeoutError
from vea.models.llm import ContentBlock, LLMMessage, TextBlock, ToolUseBlock
from vea.utils.logging import get_logger

logger = get_logger(__name__)


class AnthropicMessage(BaseModel):
    """Message format for Anthropic API."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


class AnthropicTool(BaseModel):
    """Tool definition for Anthropic API."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class TokenUsage:
    """Token usage information from Anthropic API."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class AnthropicResponse:
    """Structured response from Anthropic API."""

    content: list[ContentBlock]
    stop_reason: str | None
    usage: TokenUsage
    model: str


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = field(default_factory=lambda: os.getenv("VEA_LLM_MODEL", "claude-3-5-sonnet-20241022"))
    max_tokens: int = 1500
    temperature: float = 0.7
    request_timeout: float = 120.0
    use_tiktoken: bool = True

    # Token limits for validation and truncation
    max_message_tokens: int = 2000
    max_conversation_tokens: int = 200000
    token_headroom: int = 2000


class AnthropicRateLimiter:
    """Moving-window rate limiter for requests and tokens."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize the limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Wait until the request fits within the configured limits."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_window(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        if not self.limiter.hit(self.token_limit, token_identifier, cost=max(estimated_tokens, 1)):
            await self._wait_for_window(self.token_limit, token_identifier, "Token")

    async def _wait_for_window(self, limit, identifier: str, label: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        if window_stats:
            wait_time = max(0.0, window_stats.reset_time - time.time())
            if wait_time > 0:
                logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)


class AnthropicClient:
    """Low-level Anthropic API client.

    A missing API key is reported on the first request, not at
    construction, so the service can start without credentials.
    Requests are not retried: a failed or timed-out call is surfaced to
    the caller, who decides whether the user re-submits.
    """

    tokenizer: tiktoken.Encoding | None = None
    api_key: str | None
    config: AnthropicConfig
    rate_limiter: AnthropicRateLimiter = AnthropicRateLimiter()

    def __init__(self, api_key: str | None = None, config: AnthropicConfig | None = None):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration
        """
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.config = config or AnthropicConfig()
        self._client: AsyncAnthropic | None = None
        self.tokenizer = None

        if self.config.use_tiktoken:
            try:
                # Close approximation for Claude
                self.tokenizer = tiktoken.encoding_for_model("gpt-4")
            except Exception:
                logger.warning("tiktoken encoding unavailable, falling back to character estimate")
                self.tokenizer = None

    @property
    def client(self) -> AsyncAnthropic:
        if not self.api_key:
            raise ConfigurationError(
                "The AI assistant is not configured. Set ANTHROPIC_API_KEY in the environment."
            )
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.config.request_timeout,
                max_retries=0,
            )
        return self._client

    async def create_message(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: list[AnthropicTool] | None = None,
        **kwargs,
    ) -> AnthropicResponse:
        """Create a message with Claude API.

        Args:
            messages: Conversation transcript (any roles)
            system_prompt: System prompt for Claude
            tools: Available tools for Claude
            **kwargs: Overrides for model, max_tokens, temperature

        Returns:
            Structured Anthropic response

        Raises:
            ConfigurationError: If no API key is configured
            ProviderError: On non-2xx or malformed responses
            ProviderTimeoutError: If the request exceeds the configured timeout
        """
        client = self.client

        api_messages = self.to_api_messages(messages)
        truncated_messages = self.truncate_conversation(api_messages, system_prompt, tools)
        if not truncated_messages:
            raise ProviderError("Conversation has no user message to send")

        estimated_tokens = self._estimate_tokens(truncated_messages, system_prompt)
        logger.debug(f"Estimated tokens: {estimated_tokens}")
        await self.rate_limiter.check_rate_limit(estimated_tokens)

        request_params: dict[str, Any] = {
            "model": kwargs.get("model", self.config.model),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
            "system": system_prompt,
            "messages": [msg.model_dump() for msg in truncated_messages],
        }
        if tools:
            request_params["tools"] = [tool.model_dump() for tool in tools]

        logger.debug(
            f"Creating message with {len(truncated_messages)} messages, {len(tools) if tools else 0} tools, "
            f"model: {request_params['model']}"
        )

        try:
            response: Message = await client.messages.create(**request_params)
        except APITimeoutError as e:
            logger.error(f"Anthropic request timed out after {self.config.request_timeout}s")
            raise ProviderTimeoutError(
                f"The AI service did not respond within {self.config.request_timeout:.0f} seconds. Please try again."
            ) from e
        except APIStatusError as e:
            logger.error(f"Anthropic API error {e.status_code}: {e.message}")
            raise ProviderError(f"AI service error: {e.message}", status_code=e.status_code) from e
        except APIConnectionError as e:
            logger.error(f"Anthropic connection error: {e}")
            raise ProviderError("AI service error: Connection failed") from e

        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )

        logger.debug(
            f"Response received - Stop reason: {response.stop_reason}, Content blocks: {len(response.content)}"
        )

        return AnthropicResponse(
            content=self._convert_content_blocks(response.content),
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    @staticmethod
    def to_api_messages(messages: list[LLMMessage]) -> list[AnthropicMessage]:
        """Convert a transcript to the alternating user/assistant shape the API accepts.

        System-role transcript entries become user-side notes, consecutive
        turns with the same role are merged and leading assistant turns are
        dropped.
        """
        converted: list[AnthropicMessage] = []
        for message in messages:
            role: Literal["user", "assistant"] = "assistant" if message.role == "assistant" else "user"
            content = message.content
            if message.role == "system":
                text = content if isinstance(content, str) else _blocks_text(content)
                content = f"[System note]\n{text}"

            if not converted and role == "assistant":
                continue

            if converted and converted[-1].role == role:
                previous = converted[-1]
                converted[-1] = AnthropicMessage(role=role, content=_merge_content(previous.content, content))
            else:
                converted.append(AnthropicMessage(role=role, content=content))

        return converted

    def _convert_content_blocks(self, anthropic_content: list[AnthropicContentBlock]) -> list[ContentBlock]:
        """Convert Anthropic content blocks to our ContentBlock types."""
        converted_blocks: list[ContentBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(block)

            if block_dict.get("type") == "text":
                converted_blocks.append(TextBlock.model_validate(block_dict))
            elif block_dict.get("type") == "tool_use":
                converted_blocks.append(ToolUseBlock.model_validate(block_dict))
            else:
                logger.warning(f"Unknown content block type: {block_dict.get('type')}")

        if not converted_blocks:
            raise ProviderError("AI service returned an empty response")

        return converted_blocks

    def _estimate_tokens(self, messages: list[AnthropicMessage], system_prompt: str) -> int:
        """Estimate token count for rate limiting."""
        text_content = system_prompt
        for message in messages:
            text_content += message.content if isinstance(message.content, str) else _blocks_text(message.content)
        return self.estimate_message_tokens(text_content)

    def estimate_message_tokens(self, message: str) -> int:
        """Estimate token count for a single message.

        Args:
            message: Message content

        Returns:
            Estimated token count
        """
        try:
            return len(self.tokenizer.encode(message)) if self.tokenizer else len(message) // 4
        except Exception:
            # Fallback: roughly 4 characters per token
            return len(message) // 4

    def validate_message_tokens(self, message: str) -> None:
        """Validate that a message doesn't exceed token limits.

        Raises:
            ValueError: If message exceeds token limit
        """
        token_count = self.estimate_message_tokens(message)
        if token_count > self.config.max_message_tokens:
            raise ValueError(
                f"Message exceeds token limit: {token_count} tokens > {self.config.max_message_tokens} limit"
            )

    def truncate_conversation(
        self, messages: list[AnthropicMessage], system_prompt: str, tools: list[AnthropicTool] | None = None
    ) -> list[AnthropicMessage]:
        """Truncate conversation from the beginning to fit within token limits.

        Args:
            messages: Conversation messages
            system_prompt: System prompt
            tools: Available tools

        Returns:
            Truncated message list that fits within limits
        """
        if not messages:
            return messages

        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom
        available_tokens -= self.estimate_message_tokens(system_prompt)

        if tools:
            tool_content = "".join(tool.name + tool.description + str(tool.input_schema) for tool in tools)
            available_tokens -= self.estimate_message_tokens(tool_content)

        truncated_messages: list[AnthropicMessage] = []
        current_tokens = 0

        for message in reversed(messages):
            content_text = message.content if isinstance(message.content, str) else _blocks_text(message.content)
            message_tokens = self.estimate_message_tokens(content_text)

            if current_tokens + message_tokens <= available_tokens:
                truncated_messages.insert(0, message)
                current_tokens += message_tokens
            else:
                break

        # The API rejects a transcript that opens with an assistant turn
        while truncated_messages and truncated_messages[0].role == "assistant":
            truncated_messages.pop(0)

        if len(truncated_messages) < len(messages):
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(truncated_messages)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return truncated_messages


def _blocks_text(blocks: list[ContentBlock]) -> str:
    return "".join(block.text for block in blocks if isinstance(block, TextBlock))


def _merge_content(first: str | list[ContentBlock], second: str | list[ContentBlock]) -> str | list[ContentBlock]:
    if isinstance(first, str) and isinstance(second, str):
        return f"{first}\n\n{second}"
    first_blocks = [TextBlock(text=first)] if isinstance(first, str) else list(first)
    second_blocks = [TextBlock(text=second)] if isinstance(second, str) else list(second)
    return first_blocks + second_blocks
