"""Bounded pool running one pipeline task per job."""

import asyncio
import logging
from typing import Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class WorkerPool:
    """Runs each job as its own ``asyncio.Task``.

    At most ``max_workers`` jobs execute at once; the rest wait for a slot
    while their records stay queued. Tasks are keyed by job id so a running
    job can be cancelled.
    """

    def __init__(self, max_workers: int = 2):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self._slots = asyncio.Semaphore(max_workers)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = 0

    @property
    def active_count(self) -> int:
        """Jobs currently holding a slot."""
        return self._running

    @property
    def pending_count(self) -> int:
        """Jobs submitted and not yet finished, running or waiting."""
        return len(self._tasks)

    def spawn(self, job_id: str, work: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Schedule ``work`` without waiting for it. Must be called from the event loop."""
        if job_id in self._tasks:
            raise ValueError(f"Job {job_id} is already scheduled")
        task = asyncio.create_task(self._run(job_id, work), name=f"pipeline-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        return task

    async def _run(self, job_id: str, work: Callable[[], Awaitable[None]]) -> None:
        async with self._slots:
            self._running += 1
            logger.info("Worker slot acquired for job %s (%d/%d busy)", job_id, self._running, self.max_workers)
            try:
                await work()
            except asyncio.CancelledError:
                logger.info("Job %s cancelled", job_id)
                raise
            except Exception:
                logger.exception("Unhandled error in job %s", job_id)
            finally:
                self._running -= 1

    def cancel(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        if task is None or task.done():
            return False
        return task.cancel()

    async def wait(self, job_id: str) -> None:
        """Wait for one job's task to finish, however it ends."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def join(self) -> None:
        """Wait until every scheduled job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks.values()):
            task.cancel()
        await self.join()
