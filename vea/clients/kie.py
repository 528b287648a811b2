"""Kie.ai HTTP client for image (4o Image) and video (Veo 3) generation.

Docs: https://docs.kie.ai/
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from vea.errors import ConfigurationError, ProviderError, ProviderTimeoutError, TransientPollError
from vea.models.media import JobStatus, MediaStatus
from vea.utils.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER_API_KEY = "ADD_YOUR_KIE_API_KEY_HERE"

IMAGE_GENERATE_PATH = "/api/v1/gpt4o-image/generate"
IMAGE_STATUS_PATH = "/api/v1/gpt4o-image/record-info"
VIDEO_GENERATE_PATH = "/api/v1/veo/generate"
VIDEO_STATUS_PATH = "/api/v1/veo/record-info"

# Provider limit for images attached to an edit request
MAX_EDIT_IMAGES = 5


@dataclass
class KieConfig:
    """Kie.ai client configuration."""

    api_key: str | None = field(default_factory=lambda: os.getenv("KIE_API_KEY"))
    base_url: str = field(default_factory=lambda: os.getenv("KIE_BASE_URL", "https://api.kie.ai"))
    request_timeout: float = 30.0

    image_size: str = "1:1"
    image_variants: int = 1
    image_poll_max_attempts: int = 15
    image_poll_interval_seconds: float = 10.0

    video_model: str = "veo3"
    video_aspect_ratio: str = "16:9"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_API_KEY


def _as_url(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _first(value: Any) -> str | None:
    if isinstance(value, list) and value:
        return _as_url(value[0])
    return None


def extract_task_id(payload: dict[str, Any]) -> str | None:
    """Task id from a submission response (``{code, msg, data: {taskId}}``)."""
    data = payload.get("data")
    if isinstance(data, dict) and data.get("taskId"):
        return _as_url(data["taskId"])
    return _as_url(payload.get("taskId"))


def extract_direct_url(payload: dict[str, Any]) -> str | None:
    """Result URI when the provider answered synchronously (``{output: [uri]}``)."""
    data = payload.get("data")
    for source in (payload, data if isinstance(data, dict) else {}):
        url = _first(source.get("output"))
        if url:
            return url
    return None


def extract_result_url(task_data: dict[str, Any]) -> str | None:
    """Result URI from a record-info payload.

    The response field has been observed as an object (camel or snake case
    keys), a bare URL string, or a JSON-encoded object. Entries that are
    not strings are ignored.
    """
    response = task_data.get("response")

    if isinstance(response, str):
        if response.startswith("http"):
            return response
        if response.startswith("{"):
            try:
                response = json.loads(response)
            except json.JSONDecodeError:
                logger.warning("Could not parse provider response string")
                return None

    if isinstance(response, dict):
        url = (
            _first(response.get("resultUrls"))
            or _first(response.get("result_urls"))
            or _as_url(response.get("imageUrl"))
            or _as_url(response.get("videoUrl"))
            or _as_url(response.get("url"))
        )
        if url:
            return url

    return _as_url(task_data.get("videoUrl"))


def _parse_progress(value: Any) -> float:
    try:
        progress = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return min(max(progress, 0.0), 1.0)


def parse_status(payload: dict[str, Any]) -> JobStatus:
    """Normalize a record-info response into a JobStatus.

    Raises:
        TransientPollError: If the provider reports an error envelope
        ProviderError: If the task data does not have the documented shape
    """
    if payload.get("code") != 200:
        raise TransientPollError(f"Provider returned code {payload.get('code')}: {payload.get('msg')}")

    task_data = payload.get("data")
    if not isinstance(task_data, dict):
        return JobStatus(status=MediaStatus.PROCESSING)

    status = MediaStatus.from_success_flag(task_data.get("successFlag"))
    try:
        return JobStatus(
            status=status,
            progress=_parse_progress(task_data.get("progress")),
            result_url=extract_result_url(task_data),
            error=task_data.get("errorMessage") if status is MediaStatus.FAILED else None,
        )
    except ValidationError as e:
        logger.warning(f"Unexpected record-info payload: {task_data}")
        raise ProviderError("Malformed response from Kie.ai") from e


class KieClient:
    """Async client for the Kie.ai generation endpoints."""

    def __init__(self, config: KieConfig | None = None, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize Kie.ai client.

        Args:
            config: Client configuration
            transport: Optional httpx transport (used by tests to stub the provider)
        """
        self.config = config or KieConfig()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def _client(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise ConfigurationError("Kie.ai API key not configured")
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.request_timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        async with self._client() as client:
            try:
                resp = await client.request(method, path, **kwargs)
            except httpx.TimeoutException as e:
                raise ProviderTimeoutError(f"Kie.ai request timed out: {path}") from e
            except httpx.HTTPError as e:
                raise ProviderError(f"Kie.ai connection failed: {e}") from e

        if resp.is_error:
            logger.error(f"Kie.ai {method} {path} failed with {resp.status_code}: {resp.text[:500]}")
            raise ProviderError(f"API Error: {resp.status_code}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderError("Malformed response from Kie.ai") from e

        if not isinstance(payload, dict):
            raise ProviderError("Malformed response from Kie.ai")

        logger.debug(f"Kie.ai {method} {path} response: {payload}")
        return payload

    async def submit_image(self, prompt: str, reference_images: list[str] | None = None) -> dict[str, Any]:
        """Submit an image job; reference images switch to the edit variant."""
        body: dict[str, Any] = {
            "prompt": prompt,
            "size": self.config.image_size,
            "nVariants": self.config.image_variants,
            "isEnhance": True,
        }
        if reference_images:
            body["filesUrl"] = reference_images[:MAX_EDIT_IMAGES]

        logger.info(f"Submitting image job ({'edit' if reference_images else 'text-to-image'})")
        return await self._request("POST", IMAGE_GENERATE_PATH, json=body)

    async def image_status(self, task_id: str) -> JobStatus:
        return parse_status(await self._request("GET", IMAGE_STATUS_PATH, params={"taskId": task_id}))

    async def submit_video(self, prompt: str, reference_image: str | None = None) -> dict[str, Any]:
        """Submit a Veo 3 video job; at most one reference image is sent."""
        body: dict[str, Any] = {
            "prompt": prompt,
            "model": self.config.video_model,
            "aspectRatio": self.config.video_aspect_ratio,
            "enableFallback": False,
            "enableTranslation": True,
        }
        if reference_image:
            body["imageUrls"] = [reference_image]

        logger.info(f"Submitting video job (model {self.config.video_model})")
        return await self._request("POST", VIDEO_GENERATE_PATH, json=body)

    async def video_status(self, task_id: str) -> JobStatus:
        return parse_status(await self._request("GET", VIDEO_STATUS_PATH, params={"taskId": task_id}))
