"""Data models for generation jobs and generated files."""

import secrets
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Return an opaque job identifier, e.g. ``job_1718000000000_3f9a1c2b7``."""
    return f"job_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class JobStatus(str, Enum):
    """Job lifecycle states."""
    QUEUED = "queued"
    STARTING = "starting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_advance_to(self, new: "JobStatus") -> bool:
        """Whether moving from this state to ``new`` keeps the lifecycle monotonic."""
        if self.is_terminal:
            return False
        if self is JobStatus.IN_PROGRESS and new is JobStatus.IN_PROGRESS:
            return True
        if new.is_terminal:
            # A job may fail from any live state, but only completes from in_progress.
            return new is JobStatus.FAILED or self is JobStatus.IN_PROGRESS
        return new.rank == self.rank + 1


_STATUS_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.STARTING: 1,
    JobStatus.IN_PROGRESS: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.FAILED: 3,
}


class Job(BaseModel):
    """A single prompt-to-APK generation job."""
    id: str = Field(default_factory=new_job_id)
    requester_id: str
    prompt: str
    callback_url: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    progress: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def view(self) -> Dict[str, Any]:
        """Public representation returned by the status interface."""
        return {
            "id": self.id,
            "userId": self.requester_id,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "progress": self.progress,
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.requester_id,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class GeneratedFile(BaseModel):
    """One file block parsed from a generation response."""
    relative_path: str
    content: str


class PublishResult(BaseModel):
    html_url: str
    clone_url: str
