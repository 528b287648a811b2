"""Background completion polling for asynchronous video jobs.

One asyncio task per job. Each tick sleeps a fixed interval, checks the
job once and updates the message it was handed. Failed status checks are
logged and still count against the attempt budget.
"""

import asyncio
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from vea.errors import ConfigurationError, VEAError
from vea.models.media import MediaJob, MediaStatus
from vea.models.messages import ChatMessage
from vea.models.session import ConversationSession
from vea.services.media import MediaGateway
from vea.services.persistence import MediaArchiver, PersistenceSink
from vea.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PollerConfig:
    """Video polling configuration."""

    max_attempts: int = field(default_factory=lambda: int(os.getenv("VEA_VIDEO_POLL_ATTEMPTS", "30")))
    interval_seconds: float = field(default_factory=lambda: float(os.getenv("VEA_VIDEO_POLL_INTERVAL", "10")))

    @property
    def budget_seconds(self) -> float:
        return self.max_attempts * self.interval_seconds


class VideoPoller:
    """Drives video jobs from Polling to Succeeded, Failed or TimedOut."""

    def __init__(
        self,
        gateway: MediaGateway,
        config: PollerConfig | None = None,
        sink: PersistenceSink | None = None,
        archiver: MediaArchiver | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.config = config or PollerConfig()
        self.sink = sink or PersistenceSink()
        self.archiver = archiver
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def start(self, session: ConversationSession, message: ChatMessage) -> asyncio.Task:
        """Start polling the job behind a video placeholder message."""
        if not message.media_url:
            raise ValueError("Video message has no task id to poll")

        job = MediaJob(task_id=message.media_url, kind="video")
        task = asyncio.create_task(self.poll(session, message, job))
        self._tasks[message.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(message.id, None))
        logger.info(f"Started polling video task {job.task_id} for message {message.id}")
        return task

    async def poll(self, session: ConversationSession, message: ChatMessage, job: MediaJob) -> MediaJob:
        """Poll one job until it reaches a terminal state."""
        while job.attempts < self.config.max_attempts:
            await self._sleep(self.config.interval_seconds)
            job.attempts += 1
            logger.debug(f"Checking video task {job.task_id} (attempt {job.attempts}/{self.config.max_attempts})")

            try:
                status = await self.gateway.check_video_status(job.task_id)
            except ConfigurationError as e:
                job.status = MediaStatus.FAILED
                job.error = str(e)
                break
            except VEAError as e:
                logger.warning(f"Status check for video task {job.task_id} failed: {e}")
                continue
            except Exception as e:
                logger.exception(f"Unexpected error checking video task {job.task_id}")
                job.status = MediaStatus.FAILED
                job.error = f"Could not read the video status ({type(e).__name__})"
                break

            job.progress = max(job.progress, status.progress)

            if status.status is MediaStatus.SUCCESS:
                if status.result_url:
                    job.status = MediaStatus.SUCCESS
                    job.result_url = status.result_url
                else:
                    job.status = MediaStatus.FAILED
                    job.error = "Video finished but no video URL was returned"
                break

            if status.status is MediaStatus.FAILED:
                job.status = MediaStatus.FAILED
                job.error = status.error or "Video generation failed"
                break

            message.progress = min(int(job.progress * 100), 99)
            self.sink.save(session.session_id, session.user_id, message)

        self._finish(session, message, job)
        return job

    def _finish(self, session: ConversationSession, message: ChatMessage, job: MediaJob) -> None:
        message.is_generating = False

        if job.status is MediaStatus.SUCCESS:
            message.media_url = job.result_url
            message.progress = 100
            logger.info(f"Video task {job.task_id} completed after {job.attempts} attempt(s)")
            if self.archiver is not None:
                self.sink.run_in_background(self._archive(session, message), f"archive of video {job.task_id}")
        elif job.status is MediaStatus.FAILED:
            message.append_notice(f"❌ Video generation failed: {job.error}")
            logger.error(f"Video task {job.task_id} failed: {job.error}")
        else:
            message.append_notice(
                f"⏱️ Video generation timed out after {self.config.budget_seconds:.0f} seconds. "
                f"TaskId: {job.task_id}. Please try again."
            )
            logger.warning(f"Video task {job.task_id} timed out after {job.attempts} attempts")

        self.sink.save(session.session_id, session.user_id, message)

    async def _archive(self, session: ConversationSession, message: ChatMessage) -> None:
        durable_url = await self.archiver.archive(message.media_url, message)
        if durable_url:
            message.media_url = durable_url
            self.sink.save(session.session_id, session.user_id, message)

    async def cancel_all(self) -> None:
        """Cancel every outstanding poll (application shutdown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(tasks)} video poll(s)")
