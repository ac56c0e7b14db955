"""Service facade: wires the pipeline components and exposes the job interface."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Settings
from .errors import JobNotFound
from .generation import GenerationClient
from .models import Job, JobStatus
from .notifier import Notifier
from .pipeline import PipelineDriver, failure_outcome
from .publisher import GitHubPublisher
from .reaper import ResourceReaper
from .registry import JobRegistry
from .repair import RepairEngine
from .runner import CommandRunner
from .storage import JsonFileJobStore, MemoryJobStore
from .toolchain import FlutterToolchain
from .validation import ValidationLoop
from .worker import WorkerPool
from .workspace import Workspace

logger = logging.getLogger(__name__)


class ConfigurationIncomplete(RuntimeError):
    """Required credentials are missing, so jobs cannot run."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__("Server configuration incomplete. Missing API keys: " + ", ".join(missing))


class GenerationService:
    """Accepts prompts, runs their pipelines in the background and answers status queries."""

    def __init__(
        self,
        settings: Settings,
        registry: JobRegistry,
        driver: PipelineDriver,
        pool: WorkerPool,
        workspace: Workspace,
        reaper: ResourceReaper,
    ):
        self.settings = settings
        self.registry = registry
        self.driver = driver
        self.pool = pool
        self.workspace = workspace
        self.reaper = reaper

    async def submit(self, prompt: str, requester_id: str, callback_url: Optional[str] = None) -> Job:
        """Register a job and start its pipeline without waiting for it."""
        missing = self.settings.missing_configuration()
        if missing:
            raise ConfigurationIncomplete(missing)
        job = await self.registry.create(
            Job(requester_id=requester_id, prompt=prompt, callback_url=callback_url)
        )
        self.pool.spawn(job.id, lambda: self.driver.run(job.id))
        logger.info("Job %s queued for requester %s", job.id, requester_id)
        return job

    async def get_status(self, job_id: str) -> Job:
        job = await self.registry.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    async def list_jobs(self) -> List[Dict[str, Any]]:
        return [job.summary() for job in await self.registry.list()]

    def resolve_download(self, filename: str) -> Path:
        return self.workspace.resolve_download(filename)

    async def cancel(self, job_id: str) -> bool:
        """Cancel a job's task. Jobs cancelled before starting are marked failed here."""
        await self.get_status(job_id)
        if not self.pool.cancel(job_id):
            return False
        await self.pool.wait(job_id)
        job = await self.registry.get(job_id)
        if job is not None and job.status is JobStatus.QUEUED:
            await self.registry.mark_failed(job_id, "Job cancelled", errorType="JobCancelled")
            await self.driver.notifier.notify(job.callback_url, job_id, failure_outcome(job, "Job cancelled"))
        return True

    async def health(self) -> Dict[str, Any]:
        missing = self.settings.missing_configuration()
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "configurationComplete": not missing,
            "missingConfiguration": missing,
            "activeJobs": self.pool.active_count,
            "pendingJobs": self.pool.pending_count,
            "totalJobs": len(await self.registry.list()),
        }

    async def join(self) -> None:
        await self.pool.join()

    async def shutdown(self) -> None:
        await self.pool.shutdown()
        await self.reaper.shutdown()


def build_service(settings: Optional[Settings] = None) -> GenerationService:
    """Construct a service with real collaborators from ``settings``."""
    settings = settings or Settings()
    runner = CommandRunner(default_timeout=settings.command_timeout, secrets=settings.secrets)
    store = JsonFileJobStore(settings.job_store_path) if settings.job_store == "json" else MemoryJobStore()
    registry = JobRegistry(store)
    workspace = Workspace(settings.workspace_dir)
    toolchain = FlutterToolchain(runner, flutter_bin=settings.flutter_bin)
    reaper = ResourceReaper(settings.project_grace_period, settings.bundle_grace_period)
    driver = PipelineDriver(
        registry=registry,
        workspace=workspace,
        toolchain=toolchain,
        generator=GenerationClient(
            settings.mistral_api_key,
            api_url=settings.mistral_api_url,
            model=settings.mistral_model,
            timeout=settings.generation_timeout,
        ),
        validator=ValidationLoop(toolchain, RepairEngine(), max_attempts=settings.max_validation_attempts),
        publisher=GitHubPublisher(
            runner,
            token=settings.github_token,
            username=settings.github_username,
            api_url=settings.github_api_url,
            git_bin=settings.git_bin,
        ),
        notifier=Notifier(timeout=settings.notify_timeout),
        reaper=reaper,
        debug_build_check=settings.debug_build_check,
    )
    return GenerationService(
        settings=settings,
        registry=registry,
        driver=driver,
        pool=WorkerPool(settings.max_concurrent_jobs),
        workspace=workspace,
        reaper=reaper,
    )
