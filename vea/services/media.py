"""Media generation gateway.

Images are treated as slow but boundedly synchronous: when the provider
answers with a task id, the gateway polls it before returning. Videos are
always asynchronous; the caller hands the returned task id to the poller.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Literal

from vea.clients.kie import KieClient, extract_direct_url, extract_task_id
from vea.errors import ConfigurationError, ProviderError, ProviderTimeoutError, VEAError
from vea.models.media import JobStatus, MediaResult, MediaStatus
from vea.utils.logging import get_logger

logger = get_logger(__name__)

IMAGE_NOT_CONFIGURED = "Please add your Kie.ai API key to the .env file (KIE_API_KEY)"
VIDEO_NOT_CONFIGURED = "Video generation is not available. Please add your Kie.ai API key to .env file."

IMAGE_QUALITY_SUFFIX = ", professional quality, high detail, 4k"
VIDEO_QUALITY_SUFFIX = ", smooth motion, cinematic, high quality, professional video"

# Progress at which a missing result URL is worth one more tick
NEAR_COMPLETE_PROGRESS = 0.93


def enhance_prompt(prompt: str, kind: Literal["image", "video"], has_reference: bool = False) -> str:
    """Append the fixed quality suffix for a media type."""
    if kind == "image":
        if has_reference:
            return (
                "Use the attached reference image as the style and composition base. "
                f"{prompt}{IMAGE_QUALITY_SUFFIX}"
            )
        return f"{prompt}{IMAGE_QUALITY_SUFFIX}"

    if has_reference:
        return f"Animate the attached reference image, keeping its style and composition. {prompt}{VIDEO_QUALITY_SUFFIX}"
    return f"{prompt}{VIDEO_QUALITY_SUFFIX}"


class MediaGateway:
    """Submits image and video jobs and normalizes the provider's answers."""

    def __init__(
        self,
        client: KieClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize media gateway.

        Args:
            client: Kie.ai client (defaults to one configured from the environment)
            sleep: Awaitable used between image status checks
        """
        self.client = client or KieClient()
        self._sleep = sleep

    async def generate_image(self, prompt: str, reference_images: list[str] | None = None) -> MediaResult:
        """Generate an image, waiting for the provider within the poll budget.

        Never raises; failures are returned in the result envelope.
        """
        if not self.client.is_configured:
            return MediaResult.failure(IMAGE_NOT_CONFIGURED)

        enhanced = enhance_prompt(prompt, "image", has_reference=bool(reference_images))
        logger.info(f"Generating image: {prompt}")

        try:
            payload = await self.client.submit_image(enhanced, reference_images)

            url = extract_direct_url(payload)
            if url:
                logger.info("Image returned synchronously")
                return MediaResult(success=True, url=url)

            task_id = extract_task_id(payload)
            if not task_id:
                raise ProviderError("No taskId received from Kie.ai")

            logger.info(f"Image task submitted: {task_id}")
            url = await self._wait_for_image(task_id)
            return MediaResult(success=True, url=url, task_id=task_id)
        except VEAError as e:
            logger.error(f"Image generation failed: {e}")
            return MediaResult.failure(str(e))
        except Exception as e:
            logger.exception("Unexpected error during image generation")
            return MediaResult.failure(f"Unexpected error during image generation ({type(e).__name__})")

    async def _wait_for_image(self, task_id: str) -> str:
        """Poll an image task until it yields a URL.

        Raises:
            ProviderError: If the provider reports failure or completes without a URL
            ProviderTimeoutError: If the attempt budget runs out
        """
        max_attempts = self.client.config.image_poll_max_attempts
        interval = self.client.config.image_poll_interval_seconds

        for attempt in range(1, max_attempts + 1):
            await self._sleep(interval)
            logger.debug(f"Checking image task {task_id} (attempt {attempt}/{max_attempts})")

            try:
                status = await self.client.image_status(task_id)
            except ConfigurationError:
                raise
            except VEAError as e:
                logger.warning(f"Image status check failed for {task_id}: {e}")
                continue

            if status.status is MediaStatus.FAILED:
                raise ProviderError(status.error or "Image generation failed")

            # successFlag can lag behind progress
            if status.status is MediaStatus.SUCCESS or status.progress >= 1.0:
                if status.result_url:
                    logger.info(f"Image task {task_id} completed")
                    return status.result_url
                if status.progress >= NEAR_COMPLETE_PROGRESS and attempt < max_attempts - 1:
                    logger.debug(f"Image task {task_id} complete but URL not ready yet")
                    continue
                raise ProviderError("No image URLs in successful response")

            logger.debug(f"Image task {task_id} progress {status.progress:.0%}")

        raise ProviderTimeoutError(
            f"Image generation timed out after {max_attempts * interval:.0f} seconds. TaskId: {task_id}"
        )

    async def generate_video(self, prompt: str, reference_image: str | None = None) -> MediaResult:
        """Submit a video job and return its task id without waiting.

        Never raises; failures are returned in the result envelope.
        """
        if not self.client.is_configured:
            return MediaResult.failure(VIDEO_NOT_CONFIGURED)

        enhanced = enhance_prompt(prompt, "video", has_reference=bool(reference_image))
        logger.info(f"Generating video: {prompt}")

        try:
            payload = await self.client.submit_video(enhanced, reference_image)
        except VEAError as e:
            logger.error(f"Video submission failed: {e}")
            return MediaResult.failure(str(e))

        task_id = extract_task_id(payload)
        if not task_id:
            logger.error(f"No task id in video submission response: {payload}")
            return MediaResult.failure("No task ID in response")

        logger.info(f"Video task submitted: {task_id}")
        return MediaResult(success=True, task_id=task_id)

    async def check_video_status(self, task_id: str) -> JobStatus:
        """Check a video task once.

        Raises:
            ConfigurationError, ProviderError, ProviderTimeoutError, TransientPollError
        """
        return await self.client.video_status(task_id)
