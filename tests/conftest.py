"""Shared test fixtures and fakes."""

import json
from collections.abc import Callable

import httpx
import pytest

from vea.clients.kie import KieClient, KieConfig
from vea.errors import VEAError
from vea.models.llm import LLMResponse, LLMUsage, TextBlock, ToolUseBlock
from vea.services.media import MediaGateway


async def no_sleep(seconds: float) -> None:
    """Sleep replacement that returns immediately."""


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def text_response(text: str) -> LLMResponse:
    return LLMResponse(
        content=[TextBlock(text=text)],
        stop_reason="end_turn",
        model="test-model",
        usage=LLMUsage(input_tokens=10, output_tokens=5, total_tokens=15),
    )


def tool_response(name: str, tool_input: dict, text: str = "") -> LLMResponse:
    content = [TextBlock(text=text)] if text else []
    content.append(ToolUseBlock(id="toolu_1", name=name, input=tool_input))
    return LLMResponse(
        content=content,
        stop_reason="tool_use",
        model="test-model",
        usage=LLMUsage(input_tokens=10, output_tokens=5, total_tokens=15),
    )


class FakeLLMService:
    """Scripted stand-in for LLMService.

    Each call pops the next scripted item; exceptions are raised.
    """

    def __init__(self, *script: LLMResponse | VEAError):
        self.script = list(script)
        self.calls: list[dict] = []

    def validate_message_tokens(self, message: str) -> None:
        pass

    async def complete(self, messages, system_prompt, tools=None, **kwargs) -> LLMResponse:
        self.calls.append({"messages": list(messages), "system_prompt": system_prompt, "tools": tools})
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class KieStub:
    """Routes Kie.ai requests to per-path handlers and records them."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handlers: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def on(self, path: str, *responses: httpx.Response | dict) -> None:
        """Answer requests to a path with the given responses, repeating the last."""
        queue = list(responses)

        def handler(request: httpx.Request) -> httpx.Response:
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, httpx.Response):
                return httpx.Response(item.status_code, content=item.content, headers=item.headers)
            return httpx.Response(200, json=item)

        self.handlers[path] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.handlers.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"code": 404, "msg": "not found"})
        return handler(request)

    def bodies(self, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path and r.content]

    def count(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)


def status_payload(success_flag: int, progress: str = "0.00", urls: list[str] | None = None, error: str | None = None):
    data: dict = {"taskId": "task_1", "successFlag": success_flag, "progress": progress}
    if urls is not None:
        data["response"] = {"resultUrls": urls}
    if error is not None:
        data["errorMessage"] = error
    return {"code": 200, "msg": "success", "data": data}


@pytest.fixture
def kie_stub() -> KieStub:
    return KieStub()


@pytest.fixture
def kie_client(kie_stub) -> KieClient:
    return KieClient(KieConfig(api_key="test-key", base_url="https://kie.test"), transport=httpx.MockTransport(kie_stub))


@pytest.fixture
def gateway(kie_client) -> MediaGateway:
    return MediaGateway(kie_client, sleep=no_sleep)
