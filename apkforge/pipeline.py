"""Prompt-to-APK pipeline driver.

Stages run strictly in order and every stage boundary is written to the job
registry as an ``in_progress`` step. The first fatal ``PipelineError`` fails
the job: remaining stages are skipped, the project directory and bundle are
deleted immediately and the webhook (if any) receives the error. On success
the reaper arms its grace timers instead.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from .errors import (
    ArtifactMissingFailure,
    CommandError,
    CompilationFailure,
    JobCancelled,
    PackagingFailure,
    PipelineError,
    SetupFailure,
    ValidationFailure,
)
from .generation import GenerationClient
from .logging_config import job_id_var
from .models import Job
from .notifier import Notifier
from .publisher import GitHubPublisher
from .reaper import ResourceReaper
from .registry import JobRegistry
from .toolchain import FlutterToolchain
from .validation import ValidationLoop
from .workspace import Workspace

logger = logging.getLogger(__name__)


def failure_outcome(job: Job, message: str) -> Dict[str, Any]:
    """Webhook body for a job that ended in ``failed``."""
    return {
        "status": "error",
        "message": "Flutter project generation failed",
        "error": message,
        "userId": job.requester_id,
    }


class PipelineDriver:
    """Advances one job through generation, validation, build and publication."""

    def __init__(
        self,
        registry: JobRegistry,
        workspace: Workspace,
        toolchain: FlutterToolchain,
        generator: GenerationClient,
        validator: ValidationLoop,
        publisher: GitHubPublisher,
        notifier: Notifier,
        reaper: ResourceReaper,
        debug_build_check: bool = True,
    ):
        self.registry = registry
        self.workspace = workspace
        self.toolchain = toolchain
        self.generator = generator
        self.validator = validator
        self.publisher = publisher
        self.notifier = notifier
        self.reaper = reaper
        self.debug_build_check = debug_build_check

    async def run(self, job_id: str) -> Job:
        """Run the whole pipeline for a queued job and return its terminal record."""
        token = job_id_var.set(job_id)
        try:
            job = await self.registry.get(job_id)
            if job is None:
                raise ValueError(f"Job {job_id} not found")

            project_name = self.workspace.project_name(job.prompt)
            project_dir = self.workspace.project_path(project_name)
            bundle = self.workspace.bundle_path(project_name)

            try:
                await self.registry.mark_starting(job_id, projectName=project_name, step="Initializing project")
                data = await self._execute(job, project_name, project_dir, bundle)
            except PipelineError as e:
                return await self._fail(job, e, project_dir, bundle)
            except asyncio.CancelledError:
                await self._fail(job, JobCancelled("Job cancelled"), project_dir, bundle)
                raise
            except Exception as e:
                logger.exception("Unexpected error in pipeline")
                return await self._fail(job, e, project_dir, bundle)

            return await self._complete(job, data, project_dir, bundle)
        finally:
            job_id_var.reset(token)

    async def _step(self, job_id: str, step: str) -> None:
        logger.info("%s", step)
        await self.registry.mark_step(job_id, step)

    async def _execute(self, job: Job, project_name: str, project_dir: Path, bundle: Path) -> Dict[str, Any]:
        try:
            await asyncio.to_thread(self.workspace.ensure)
        except OSError as e:
            raise SetupFailure(f"Could not create workspace {self.workspace.root}: {e}") from e

        await self._step(job.id, "Creating Flutter project structure")
        try:
            await self.toolchain.create_project(project_name, self.workspace.root)
        except CommandError as e:
            raise SetupFailure(str(e)) from e

        await self._step(job.id, "Generating Flutter code with AI")
        files = await self.generator.generate_files(job.prompt)

        await self._step(job.id, "Writing generated files")
        await asyncio.to_thread(self.workspace.materialize, project_dir, files)

        await self._step(job.id, "Validating Flutter project")
        try:
            report = await self.validator.validate(
                project_dir, on_step=lambda step: self.registry.mark_step(job.id, step),
            )
            if not report.clean:
                logger.warning("Analysis still reports issues after %d attempts, building anyway", report.attempts)
        except ValidationFailure as e:
            logger.warning("Validation skipped: %s", e)

        if self.debug_build_check:
            await self._step(job.id, "Checking app compilation")
            try:
                await self.toolchain.build_debug(project_dir)
                logger.info("Flutter debug build successful")
            except CommandError as e:
                logger.warning("Debug build failed, continuing with release build: %s", e)

        await self._step(job.id, "Building APK (this may take a while)")
        try:
            await self.toolchain.build_release(project_dir)
        except CommandError as e:
            raise CompilationFailure(str(e)) from e
        artifact = self.toolchain.release_artifact(project_dir)
        if not artifact.is_file():
            raise ArtifactMissingFailure(str(artifact))

        await self._step(job.id, "Packaging APK for download")
        try:
            await asyncio.to_thread(self.workspace.package, artifact, bundle)
        except OSError as e:
            raise PackagingFailure(f"Failed to package APK: {e}") from e

        await self._step(job.id, "Creating GitHub repository")
        repo = await self.publisher.publish(
            project_name, project_dir, f"Flutter app: {job.prompt[:100]}...",
        )

        return {
            "userId": job.requester_id,
            "projectName": project_name,
            "apkDownloadUrl": self.workspace.download_url(bundle),
            "githubRepo": repo.html_url,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def _complete(self, job: Job, data: Dict[str, Any], project_dir: Path, bundle: Path) -> Job:
        finished = await self.registry.mark_completed(job.id, data)
        logger.info("Job completed: %s", data["apkDownloadUrl"])
        await self.notifier.notify(job.callback_url, job.id, {
            "status": "success",
            "message": "Flutter project generated successfully!",
            "data": data,
        })
        await self.reaper.schedule_cleanup(project_dir, bundle)
        return finished

    async def _fail(self, job: Job, error: Exception, project_dir: Path, bundle: Path) -> Job:
        message = str(error) or type(error).__name__
        logger.error("Pipeline failed (%s): %s", type(error).__name__, message)
        await self.reaper.schedule_cleanup(project_dir, bundle, failed=True)
        failed = await self.registry.mark_failed(job.id, message, errorType=type(error).__name__)
        await self.notifier.notify(job.callback_url, job.id, failure_outcome(job, message))
        return failed
