"""Job registry: the only state shared between concurrent pipelines."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .errors import InvalidTransition, JobNotFound
from .models import Job, JobStatus, utcnow
from .storage import JobStore, MemoryJobStore

logger = logging.getLogger(__name__)


class JobRegistry:
    """Create, read and update jobs under a single lock.

    Jobs are never evicted, so memory grows with the number of jobs submitted
    during the process lifetime.
    """

    def __init__(self, store: Optional[JobStore] = None):
        self.store = store if store is not None else MemoryJobStore()
        self._lock = asyncio.Lock()

    async def create(self, job: Job) -> Job:
        """Register a new job in the queued state."""
        async with self._lock:
            if self.store.load(job.id) is not None:
                raise ValueError(f"Job {job.id} already exists")
            job.status = JobStatus.QUEUED
            job.created_at = job.updated_at = utcnow()
            self.store.save(job)
        return job

    async def get(self, job_id: str) -> Optional[Job]:
        async with self._lock:
            return self.store.load(job_id)

    async def list(self) -> List[Job]:
        async with self._lock:
            jobs = self.store.load_all()
        return sorted(jobs, key=lambda job: job.created_at)

    async def update(self, job_id: str, status: Optional[JobStatus] = None, **progress: Any) -> Job:
        """Advance ``status`` and merge ``progress`` fields.

        Raises ``JobNotFound`` for unknown ids and ``InvalidTransition`` if the
        new status would move the job backwards or skip a state.
        """
        async with self._lock:
            job = self.store.load(job_id)
            if job is None:
                raise JobNotFound(job_id)
            if job.status.is_terminal:
                raise InvalidTransition(f"Job {job_id} is already {job.status.value}")
            if status is not None and status is not job.status:
                if not job.status.can_advance_to(status):
                    raise InvalidTransition(
                        f"Job {job_id} cannot move from {job.status.value} to {status.value}"
                    )
                job.status = status
            job.progress = {**job.progress, **progress}
            job.updated_at = utcnow()
            self.store.save(job)

        if status is not None:
            logger.info("Job %s status updated to: %s", job_id, job.status.value)
        return job

    async def mark_starting(self, job_id: str, **progress: Any) -> Job:
        return await self.update(job_id, JobStatus.STARTING, **progress)

    async def mark_step(self, job_id: str, step: str, **progress: Any) -> Job:
        return await self.update(job_id, JobStatus.IN_PROGRESS, step=step, **progress)

    async def mark_completed(self, job_id: str, data: Dict[str, Any]) -> Job:
        return await self.update(
            job_id, JobStatus.COMPLETED, step="Completed", data=data, timestamp=data.get("timestamp"),
        )

    async def mark_failed(self, job_id: str, error: str, **progress: Any) -> Job:
        return await self.update(
            job_id, JobStatus.FAILED, step="Failed", error=error, timestamp=utcnow().isoformat(), **progress,
        )
