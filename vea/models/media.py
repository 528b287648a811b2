"""Media generation data models."""

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


class MediaStatus(StrEnum):
    """Normalized provider job status."""

    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"

    @classmethod
    def from_success_flag(cls, flag: int | str | None) -> "MediaStatus":
        """Map the provider's 0/1/2 success flag."""
        try:
            value = int(flag) if flag is not None else 0
        except (TypeError, ValueError):
            return cls.PROCESSING
        if value == 1:
            return cls.SUCCESS
        if value == 2:
            return cls.FAILED
        return cls.PROCESSING


class MediaJob(BaseModel):
    """A generation request in flight."""

    task_id: str
    kind: Literal["image", "video"]
    status: MediaStatus = MediaStatus.PROCESSING
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    result_url: str | None = None
    error: str | None = None
    attempts: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status is not MediaStatus.PROCESSING


class JobStatus(BaseModel):
    """One normalized status-check response."""

    status: MediaStatus
    progress: float = 0.0
    result_url: str | None = None
    error: str | None = None


class MediaResult(BaseModel):
    """Gateway envelope: either a ready URL, an async task id, or an error."""

    success: bool
    url: str | None = None
    task_id: str | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> "MediaResult":
        return cls(success=False, error=error)
