"""Tests for background video polling."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import RecordingSleep, no_sleep, status_payload
from vea.clients.kie import VIDEO_STATUS_PATH, KieClient, KieConfig
from vea.models.media import MediaJob, MediaStatus
from vea.models.messages import ChatMessage
from vea.models.session import ConversationSession
from vea.services.media import MediaGateway
from vea.services.persistence import InMemoryMessageStore, PersistenceSink
from vea.services.poller import PollerConfig, VideoPoller


def video_placeholder(task_id: str = "task_1") -> ChatMessage:
    return ChatMessage(
        role="assistant",
        content="🎬 Generating your video...",
        media_type="video",
        media_url=task_id,
        is_generating=True,
    )


@pytest.fixture
def session() -> ConversationSession:
    return ConversationSession(session_id="sess_1", user_id="user_1")


class FakeArchiver:
    def __init__(self, durable_url: str | None):
        self.durable_url = durable_url
        self.archived: list[str] = []

    async def archive(self, url: str, message: ChatMessage) -> str | None:
        self.archived.append(url)
        return self.durable_url


class TestVideoPoller:
    """Tests for the poll state machine."""

    @pytest.mark.asyncio
    async def test_success_replaces_task_id(self, gateway, kie_stub, session):
        """A finished job swaps the task id for the playable URL."""
        kie_stub.on(
            VIDEO_STATUS_PATH,
            status_payload(0, "0.40"),
            status_payload(1, "1.00", ["https://x/video.mp4"]),
        )
        message = video_placeholder()
        poller = VideoPoller(gateway, sleep=no_sleep)

        job = await poller.poll(session, message, MediaJob(task_id="task_1", kind="video"))

        assert job.status is MediaStatus.SUCCESS
        assert job.attempts == 2
        assert message.media_url == "https://x/video.mp4"
        assert message.progress == 100
        assert message.is_generating is False
        assert kie_stub.requests[0].url.params["taskId"] == "task_1"

    @pytest.mark.asyncio
    async def test_progress_is_reported_while_processing(self, gateway, kie_stub, session):
        """Progress updates land on the message between checks."""
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(0, "0.42"))
        message = video_placeholder()
        poller = VideoPoller(gateway, config=PollerConfig(max_attempts=1, interval_seconds=10), sleep=no_sleep)

        await poller.poll(session, message, MediaJob(task_id="task_1", kind="video"))

        assert message.progress == 42

    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, gateway, kie_stub, session):
        """A lower progress reading after a higher one is ignored."""
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(0, "0.50"), status_payload(0, "0.30"))
        message = video_placeholder()
        poller = VideoPoller(gateway, config=PollerConfig(max_attempts=2, interval_seconds=10), sleep=no_sleep)

        job = await poller.poll(session, message, MediaJob(task_id="task_1", kind="video"))

        assert job.progress == pytest.approx(0.5)
        assert message.progress == 50

    @pytest.mark.asyncio
    async def test_failure_appends_notice(self, gateway, kie_stub, session):
        """A failed job keeps the message and appends the provider's reason."""
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(2, error="prompt rejected"))
        message = video_placeholder()

        job = await VideoPoller(gateway, sleep=no_sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )

        assert job.status is MediaStatus.FAILED
        assert message.is_generating is False
        assert message.content.startswith("🎬 Generating your video...")
        assert message.content.endswith("❌ Video generation failed: prompt rejected")

    @pytest.mark.asyncio
    async def test_success_without_url_is_failure(self, gateway, kie_stub, session):
        """A success flag with no URL cannot be played, so the job fails."""
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(1, "1.00"))
        message = video_placeholder()

        job = await VideoPoller(gateway, sleep=no_sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )

        assert job.status is MediaStatus.FAILED
        assert "no video URL" in message.content

    @pytest.mark.asyncio
    async def test_unusable_result_urls_end_the_job(self, gateway, kie_stub, session):
        """Result entries that are not URLs still finish the job."""
        data = {"successFlag": 1, "response": {"resultUrls": [{"url": "https://x/v.mp4"}]}}
        kie_stub.on(VIDEO_STATUS_PATH, {"code": 200, "msg": "success", "data": data})
        message = video_placeholder()

        job = await VideoPoller(gateway, sleep=no_sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )

        assert job.status is MediaStatus.FAILED
        assert message.is_generating is False
        assert message.content.endswith("❌ Video generation failed: Video finished but no video URL was returned")

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_the_job(self, gateway, session):
        """An error outside the provider taxonomy ends polling with a failure notice."""
        message = video_placeholder()
        poller = VideoPoller(gateway, sleep=no_sleep)

        with patch.object(gateway, "check_video_status", AsyncMock(side_effect=RuntimeError("boom"))):
            job = await poller.poll(session, message, MediaJob(task_id="task_1", kind="video"))

        assert job.status is MediaStatus.FAILED
        assert job.attempts == 1
        assert message.is_generating is False
        assert "Could not read the video status (RuntimeError)" in message.content

    @pytest.mark.asyncio
    async def test_timeout_after_attempt_budget(self, gateway, kie_stub, session):
        """Thirty unfinished checks time the job out."""
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(0, "0.10"))
        sleep = RecordingSleep()
        message = video_placeholder()

        job = await VideoPoller(gateway, config=PollerConfig(max_attempts=30, interval_seconds=10), sleep=sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )

        assert job.status is MediaStatus.PROCESSING
        assert job.attempts == 30
        assert sleep.calls == [10] * 30
        assert kie_stub.count(VIDEO_STATUS_PATH) == 30
        assert message.is_generating is False
        assert message.media_url == "task_1"
        assert "timed out after 300 seconds. TaskId: task_1" in message.content

    @pytest.mark.asyncio
    async def test_transient_errors_use_attempts(self, gateway, kie_stub, session):
        """Failed checks are skipped but still count against the budget."""
        kie_stub.on(VIDEO_STATUS_PATH, httpx.Response(502), {"code": 500, "msg": "busy"}, status_payload(0, "0.20"))
        message = video_placeholder()

        job = await VideoPoller(gateway, config=PollerConfig(max_attempts=3, interval_seconds=1), sleep=no_sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )

        assert job.attempts == 3
        assert job.status is MediaStatus.PROCESSING
        assert message.progress == 20

    @pytest.mark.asyncio
    async def test_missing_key_fails_without_retrying(self, kie_stub, session):
        """A configuration error ends the job on the first check."""
        client = KieClient(KieConfig(api_key=None), transport=httpx.MockTransport(kie_stub))
        message = video_placeholder()

        job = await VideoPoller(MediaGateway(client, sleep=no_sleep), sleep=no_sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )

        assert job.status is MediaStatus.FAILED
        assert job.attempts == 1
        assert kie_stub.requests == []

    @pytest.mark.asyncio
    async def test_updates_are_persisted(self, gateway, kie_stub, session):
        """Progress and the final URL are written through the sink."""
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(0, "0.60"), status_payload(1, "1.00", ["https://x/v.mp4"]))
        store = InMemoryMessageStore()
        sink = PersistenceSink(store)
        message = video_placeholder()

        await VideoPoller(gateway, sink=sink, sleep=no_sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )
        await sink.drain()

        stored = await store.get_messages("sess_1")
        assert len(stored) == 1
        assert stored[0].media_url == "https://x/v.mp4"
        assert stored[0].is_generating is False
        assert store.owners["sess_1"] == "user_1"

    @pytest.mark.asyncio
    async def test_archiver_swaps_in_durable_url(self, gateway, kie_stub, session):
        """Finished videos are copied to durable storage in the background."""
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(1, "1.00", ["https://x/v.mp4"]))
        archiver = FakeArchiver("https://storage.test/v.mp4")
        sink = PersistenceSink()
        message = video_placeholder()

        await VideoPoller(gateway, sink=sink, archiver=archiver, sleep=no_sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )
        await sink.drain()

        assert archiver.archived == ["https://x/v.mp4"]
        assert message.media_url == "https://storage.test/v.mp4"

    @pytest.mark.asyncio
    async def test_archiver_may_keep_provider_url(self, gateway, kie_stub, session):
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(1, "1.00", ["https://x/v.mp4"]))
        sink = PersistenceSink()
        message = video_placeholder()

        await VideoPoller(gateway, sink=sink, archiver=FakeArchiver(None), sleep=no_sleep).poll(
            session, message, MediaJob(task_id="task_1", kind="video")
        )
        await sink.drain()

        assert message.media_url == "https://x/v.mp4"


class TestPollerLifecycle:
    """Tests for starting and cancelling background polls."""

    @pytest.mark.asyncio
    async def test_start_requires_task_id(self, gateway, session):
        message = video_placeholder()
        message.media_url = None

        with pytest.raises(ValueError):
            VideoPoller(gateway, sleep=no_sleep).start(session, message)

    @pytest.mark.asyncio
    async def test_start_runs_in_background(self, gateway, kie_stub, session):
        """start() returns immediately; the task finishes the job."""
        kie_stub.on(VIDEO_STATUS_PATH, status_payload(1, "1.00", ["https://x/v.mp4"]))
        message = video_placeholder()
        poller = VideoPoller(gateway, sleep=no_sleep)

        task = poller.start(session, message)
        assert message.is_generating is True

        job = await task
        assert job.status is MediaStatus.SUCCESS
        assert message.media_url == "https://x/v.mp4"

    @pytest.mark.asyncio
    async def test_cancel_all(self, gateway, session):
        """Shutdown cancels polls that are still waiting."""

        async def wait_forever(seconds: float) -> None:
            await asyncio.Event().wait()

        poller = VideoPoller(gateway, sleep=wait_forever)
        first = poller.start(session, video_placeholder("task_1"))
        second = poller.start(session, video_placeholder("task_2"))
        await asyncio.sleep(0)
        assert poller.active_jobs == 2

        await poller.cancel_all()

        assert first.cancelled()
        assert second.cancelled()
        assert poller.active_jobs == 0
