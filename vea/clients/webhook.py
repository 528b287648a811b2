"""Fallback completion backend reached through a chat webhook (e.g. an n8n workflow).

The webhook takes ``{message, sessionId}`` and answers with a JSON object,
or a list of them, carrying the reply under ``message``, ``output``,
``text`` or ``content``.
"""

import os
from dataclasses import dataclass, field
from typing import Any

import httpx

from vea.errors import ConfigurationError, ProviderError, ProviderTimeoutError
from vea.utils.logging import get_logger

logger = get_logger(__name__)

REPLY_KEYS = ("message", "output", "text", "content")


@dataclass
class WebhookConfig:
    """Fallback webhook configuration."""

    url: str | None = field(default_factory=lambda: os.getenv("VEA_FALLBACK_WEBHOOK_URL"))
    # Workflows behind the webhook may call slow models themselves
    request_timeout: float = field(default_factory=lambda: float(os.getenv("VEA_FALLBACK_TIMEOUT", "300")))

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


def extract_reply(payload: Any) -> str | None:
    """Reply text from a webhook response body."""
    item = payload[0] if isinstance(payload, list) and payload else payload
    if not isinstance(item, dict):
        return None
    for key in REPLY_KEYS:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


class WebhookCompletionClient:
    """Secondary chat backend tried when the primary model call fails."""

    def __init__(self, config: WebhookConfig | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or WebhookConfig()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    async def complete(self, message: str, session_id: str) -> str:
        """Send one utterance to the webhook and return its reply.

        Raises:
            ConfigurationError: If no webhook URL is configured
            ProviderError: On transport errors, non-2xx responses or an empty reply
            ProviderTimeoutError: If the webhook does not answer in time
        """
        if not self.is_configured:
            raise ConfigurationError("Fallback webhook not configured")

        logger.info(f"Calling fallback webhook for session {session_id}")
        async with httpx.AsyncClient(timeout=self.config.request_timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self.config.url, json={"message": message, "sessionId": session_id})
            except httpx.TimeoutException as e:
                raise ProviderTimeoutError("Fallback webhook timed out") from e
            except httpx.HTTPError as e:
                raise ProviderError(f"Fallback webhook connection failed: {e}") from e

        if resp.is_error:
            raise ProviderError(f"Fallback webhook error: {resp.status_code}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderError("Malformed response from fallback webhook") from e

        reply = extract_reply(payload)
        if reply is None:
            raise ProviderError("No response from fallback webhook")
        return reply
