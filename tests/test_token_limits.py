"""Tests for token validation, truncation and Anthropic request handling."""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
from anthropic import APIConnectionError, APIStatusError, APITimeoutError
from anthropic.types import Message

from vea.clients.anthropic import AnthropicClient, AnthropicConfig, AnthropicMessage, AnthropicTool
from vea.errors import ConfigurationError, ProviderError, ProviderTimeoutError
from vea.models.llm import LLMMessage, TextBlock, ToolUseBlock

ANTHROPIC_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def api_message(*content: dict) -> Message:
    return Message.model_validate(
        {
            "id": "msg_1",
            "type": "message",
            "role": "assistant",
            "model": "claude-test",
            "content": list(content),
            "stop_reason": "end_turn",
            "stop_sequence": None,
            "usage": {"input_tokens": 12, "output_tokens": 3},
        }
    )


class TestTokenValidation:
    """Tests for message token validation."""

    @pytest.fixture
    def anthropic_client(self):
        """Create AnthropicClient for testing."""
        config = AnthropicConfig(max_message_tokens=1000)
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "test-key"}):
            client = AnthropicClient(config=config)
            # Mock tokenizer for consistent testing
            client.tokenizer = Mock()
            return client

    def test_validate_message_tokens_within_limit(self, anthropic_client):
        """Test that messages within token limit pass validation."""
        anthropic_client.tokenizer.encode.return_value = ["token"] * 500

        anthropic_client.validate_message_tokens("Short message")

    def test_validate_message_tokens_exceeds_limit(self, anthropic_client):
        """Test that messages exceeding token limit raise ValueError."""
        anthropic_client.tokenizer.encode.return_value = ["token"] * 1500

        with pytest.raises(ValueError, match="Message exceeds token limit"):
            anthropic_client.validate_message_tokens("Very long message")

    def test_validate_message_tokens_fallback_without_tokenizer(self, anthropic_client):
        """Test token validation fallback when tokenizer is unavailable."""
        anthropic_client.tokenizer = None

        # Short message (under 4000 chars = ~1000 tokens) should pass
        anthropic_client.validate_message_tokens("a" * 3000)

        # Long message (over 4000 chars = ~1000 tokens) should fail
        with pytest.raises(ValueError, match="Message exceeds token limit"):
            anthropic_client.validate_message_tokens("a" * 5000)


class TestConversationTruncation:
    """Tests for conversation truncation functionality."""

    @pytest.fixture
    def anthropic_client(self):
        """Create AnthropicClient for testing."""
        config = AnthropicConfig(max_conversation_tokens=10000, token_headroom=1000, max_message_tokens=1000)
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "test-key"}):
            client = AnthropicClient(config=config)
            client.tokenizer = Mock()
            return client

    def test_truncate_conversation_within_limit(self, anthropic_client):
        """Test that conversations within limits are not truncated."""
        anthropic_client.tokenizer.encode.return_value = ["token"] * 100

        messages = [
            AnthropicMessage(role="user", content="Message 1"),
            AnthropicMessage(role="assistant", content="Response 1"),
            AnthropicMessage(role="user", content="Message 2"),
        ]

        result = anthropic_client.truncate_conversation(messages, "System prompt")

        assert result == messages

    def test_truncate_conversation_exceeds_limit(self, anthropic_client):
        """Test that conversations exceeding limits are truncated from beginning."""

        def mock_encode(text):
            if "System prompt" in text:
                return ["token"] * 500
            return ["token"] * 3000

        anthropic_client.tokenizer.encode.side_effect = mock_encode

        messages = [
            AnthropicMessage(role="user", content="Message 1"),
            AnthropicMessage(role="assistant", content="Response 1"),
            AnthropicMessage(role="user", content="Message 2"),
            AnthropicMessage(role="assistant", content="Response 2"),
            AnthropicMessage(role="user", content="Message 3"),
        ]

        result = anthropic_client.truncate_conversation(messages, "System prompt")

        # Two messages fit, but the transcript may not open with the assistant
        assert [m.content for m in result] == ["Message 3"]

    def test_tools_count_against_budget(self, anthropic_client):
        def mock_encode(text):
            if "get_invoices" in text:
                return ["token"] * 6000
            return ["token"] * 1000

        anthropic_client.tokenizer.encode.side_effect = mock_encode
        tools = [AnthropicTool(name="get_invoices", description="List invoices", input_schema={"type": "object"})]
        messages = [
            AnthropicMessage(role="user", content="Message 1"),
            AnthropicMessage(role="assistant", content="Response 1"),
            AnthropicMessage(role="user", content="Message 2"),
        ]

        result = anthropic_client.truncate_conversation(messages, "System prompt", tools)

        assert [m.content for m in result] == ["Message 2"]

    def test_truncate_conversation_empty_messages(self, anthropic_client):
        """Test truncation with empty message list."""
        assert anthropic_client.truncate_conversation([], "System prompt") == []


class TestApiMessages:
    """Tests for transcript conversion."""

    def test_system_notes_become_user_turns(self):
        messages = [
            LLMMessage(role="user", content="How are my finances?"),
            LLMMessage(role="assistant", content="FUNCTION_CALL: get_financial_summary()"),
            LLMMessage(role="system", content='Function get_financial_summary returned:\n{"profit": 33600}'),
        ]

        result = AnthropicClient.to_api_messages(messages)

        assert [m.role for m in result] == ["user", "assistant", "user"]
        assert result[2].content.startswith("[System note]\nFunction get_financial_summary returned:")

    def test_same_role_turns_are_merged(self):
        messages = [
            LLMMessage(role="user", content="First"),
            LLMMessage(role="user", content="Second"),
        ]

        result = AnthropicClient.to_api_messages(messages)

        assert len(result) == 1
        assert result[0].content == "First\n\nSecond"

    def test_leading_assistant_turns_dropped(self):
        """The welcome message cannot open the transcript."""
        messages = [
            LLMMessage(role="assistant", content="Hello! I'm your AI Assistant."),
            LLMMessage(role="user", content="Hi"),
        ]

        result = AnthropicClient.to_api_messages(messages)

        assert [(m.role, m.content) for m in result] == [("user", "Hi")]


class TestCreateMessage:
    """Tests for the Anthropic request and its error mapping."""

    @pytest.fixture
    def anthropic_client(self):
        client = AnthropicClient(api_key="test-key", config=AnthropicConfig(model="claude-test", request_timeout=60))
        client._client = Mock()
        client._client.messages.create = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        with patch.dict("os.environ", {}, clear=True):
            client = AnthropicClient()

        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
            await client.create_message([LLMMessage(role="user", content="Hi")], "System prompt")

    @pytest.mark.asyncio
    async def test_request_and_response(self, anthropic_client):
        anthropic_client._client.messages.create.return_value = api_message(
            {"type": "text", "text": "Let me check."},
            {"type": "tool_use", "id": "toolu_1", "name": "get_tasks", "input": {"status": "todo"}},
        )
        tools = [AnthropicTool(name="get_tasks", description="List tasks", input_schema={"type": "object"})]

        response = await anthropic_client.create_message(
            [LLMMessage(role="user", content="What's on my plate?")], "System prompt", tools
        )

        params = anthropic_client._client.messages.create.call_args.kwargs
        assert params["model"] == "claude-test"
        assert params["system"] == "System prompt"
        assert params["messages"] == [{"role": "user", "content": "What's on my plate?"}]
        assert params["tools"][0]["name"] == "get_tasks"

        assert response.content[0] == TextBlock(text="Let me check.")
        assert response.content[1] == ToolUseBlock(id="toolu_1", name="get_tasks", input={"status": "todo"})
        assert response.usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_timeout(self, anthropic_client):
        anthropic_client._client.messages.create.side_effect = APITimeoutError(request=ANTHROPIC_REQUEST)

        with pytest.raises(ProviderTimeoutError, match="60 seconds"):
            await anthropic_client.create_message([LLMMessage(role="user", content="Hi")], "System prompt")

    @pytest.mark.asyncio
    async def test_status_error(self, anthropic_client):
        anthropic_client._client.messages.create.side_effect = APIStatusError(
            "Overloaded", response=httpx.Response(529, request=ANTHROPIC_REQUEST), body=None
        )

        with pytest.raises(ProviderError) as exc_info:
            await anthropic_client.create_message([LLMMessage(role="user", content="Hi")], "System prompt")

        assert exc_info.value.status_code == 529

    @pytest.mark.asyncio
    async def test_connection_error(self, anthropic_client):
        anthropic_client._client.messages.create.side_effect = APIConnectionError(request=ANTHROPIC_REQUEST)

        with pytest.raises(ProviderError, match="Connection failed"):
            await anthropic_client.create_message([LLMMessage(role="user", content="Hi")], "System prompt")

    @pytest.mark.asyncio
    async def test_empty_content(self, anthropic_client):
        anthropic_client._client.messages.create.return_value = api_message()

        with pytest.raises(ProviderError, match="empty response"):
            await anthropic_client.create_message([LLMMessage(role="user", content="Hi")], "System prompt")

    @pytest.mark.asyncio
    async def test_nothing_to_send(self, anthropic_client):
        with pytest.raises(ProviderError):
            await anthropic_client.create_message([LLMMessage(role="assistant", content="Hello!")], "System prompt")

        anthropic_client._client.messages.create.assert_not_called()
