"""Exceptions raised by the generation pipeline and its collaborators."""

from typing import Optional, Sequence


class PipelineError(Exception):
    """Base exception for pipeline stage failures."""
    pass


class SetupFailure(PipelineError):
    """Workspace or base project creation failed."""
    pass


class GenerationFailure(PipelineError):
    """Generation service errored or produced no usable files."""
    pass


class MaterializationFailure(PipelineError):
    """A generated file could not be written into the project."""
    pass


class DependencyFailure(PipelineError):
    """Fetching project dependencies failed."""
    pass


class ValidationFailure(PipelineError):
    """Static analysis could not be completed. Never fails a job."""
    pass


class CompilationFailure(PipelineError):
    """The release build command failed."""
    pass


class ArtifactMissingFailure(PipelineError):
    """The release build exited cleanly but produced no artifact."""

    def __init__(self, artifact_path: str) -> None:
        self.artifact_path = artifact_path
        super().__init__(f"APK file not found after build: {artifact_path}")


class PackagingFailure(PipelineError):
    """The built artifact could not be zipped."""
    pass


class PublicationFailure(PipelineError):
    """Repository creation or push failed."""
    pass


class JobCancelled(PipelineError):
    """The job's task was cancelled before it finished."""
    pass


class CleanupFailure(Exception):
    """Deleting a project directory or bundle failed. Logged only."""
    pass


class NotificationFailure(Exception):
    """Webhook delivery failed. Logged only."""
    pass


class CommandError(Exception):
    """Base exception for external command problems."""

    def __init__(self, command: Sequence[str], message: str) -> None:
        self.command = list(command)
        super().__init__(message)


class CommandFailure(CommandError):
    """Command exited non-zero or could not be started."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int],
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        exit_info = f"exit code {returncode}" if returncode is not None else "could not start"
        super().__init__(
            command,
            f"Command failed: {' '.join(command)}\nError: {exit_info}\nStderr: {stderr.strip()}",
        )

    @property
    def output(self) -> str:
        return f"{self.stdout}\n{self.stderr}"


class CommandTimeout(CommandError):
    """Command exceeded its timeout and was killed."""

    def __init__(self, command: Sequence[str], timeout: float) -> None:
        self.timeout = timeout
        super().__init__(command, f"Command timed out after {timeout:g}s: {' '.join(command)}")


class InvalidTransition(ValueError):
    """A status update would move a job backwards or skip a state."""
    pass


class JobNotFound(KeyError):
    """No job is registered under the given id."""
    pass


class InvalidBundleName(ValueError):
    """Requested download name is not a bundle file name."""
    pass


class BundleNotFound(FileNotFoundError):
    """Requested bundle does not exist (never built or already reaped)."""
    pass
