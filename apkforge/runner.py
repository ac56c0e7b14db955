"""External command execution with timeouts."""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .errors import CommandFailure, CommandTimeout

logger = logging.getLogger(__name__)

# Credentials that never reach toolchain subprocesses
_FILTERED_ENV_KEYS = {"MISTRAL_API_KEY", "GITHUB_TOKEN"}


@dataclass
class CommandResult:
    """Captured output of a finished command."""
    command: List[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float = 0.0

    @property
    def output(self) -> str:
        return f"{self.stdout}\n{self.stderr}"


def _filtered_env(extra_filtered: Iterable[str] = ()) -> Dict[str, str]:
    blocked = _FILTERED_ENV_KEYS | set(extra_filtered)
    return {k: v for k, v in os.environ.items() if k not in blocked}


class CommandRunner:
    """Runs one external process per call.

    No retries happen here; a non-zero exit raises ``CommandFailure`` and an
    expired timeout kills the process and raises ``CommandTimeout``.
    """

    def __init__(
        self,
        default_timeout: float = 300.0,
        filtered_env: Iterable[str] = (),
        secrets: Iterable[str] = (),
    ):
        self.default_timeout = default_timeout
        self._filtered_env = tuple(filtered_env)
        self._secrets = [s for s in secrets if s]

    def display(self, command: Sequence[str]) -> str:
        """Command line for logs, with known secrets masked."""
        text = " ".join(command)
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text

    async def run(
        self,
        command: Sequence[str],
        cwd: Union[str, Path],
        timeout: Optional[float] = None,
    ) -> CommandResult:
        timeout = self.default_timeout if timeout is None else timeout
        command = [str(part) for part in command]
        logger.info("Running %s (cwd=%s, timeout=%ss)", self.display(command), cwd, timeout)

        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=_filtered_env(self._filtered_env),
            )
        except OSError as e:
            raise CommandFailure(command, None, "", str(e)) from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Command timed out after %ss: %s", timeout, self.display(command))
            raise CommandTimeout(command, timeout) from None
        finally:
            # Covers both timeout and task cancellation
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        result = CommandResult(
            command=command,
            returncode=proc.returncode,
            stdout=stdout_bytes.decode(errors="replace"),
            stderr=stderr_bytes.decode(errors="replace"),
            duration=time.monotonic() - start,
        )
        if result.returncode != 0:
            logger.info("Command exited %d after %.1fs: %s", result.returncode, result.duration, command[0])
            raise CommandFailure(command, result.returncode, result.stdout, result.stderr)
        logger.info("Command finished in %.1fs: %s", result.duration, self.display(command))
        return result
