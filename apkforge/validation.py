"""Bounded analyze / auto-fix / re-fetch loop."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from .errors import CommandFailure, CommandTimeout, DependencyFailure, ValidationFailure
from .repair import RepairEngine
from .toolchain import FlutterToolchain, is_clean_analysis, prepare_env_file

logger = logging.getLogger(__name__)

StepCallback = Callable[[str], Awaitable[None]]


@dataclass
class ValidationReport:
    """Outcome of one validation run."""
    clean: bool
    attempts: int
    repairs: int
    files_changed: int = 0


async def _noop_step(step: str) -> None:
    return None


class ValidationLoop:
    """Drives dependency fetch, static analysis and auto-repair.

    Analysis issues never fail the job: after ``max_attempts`` analyses the
    loop repairs once more and hands over to the compiler, which is the
    authoritative check. Only the initial dependency fetch is fatal; refreshes
    after a repair are best-effort.
    """

    def __init__(self, toolchain: FlutterToolchain, repair_engine: RepairEngine, max_attempts: int = 3):
        self.toolchain = toolchain
        self.repair_engine = repair_engine
        self.max_attempts = max_attempts

    async def _fetch_dependencies(self, project_dir: Path) -> None:
        try:
            await self.toolchain.fetch_dependencies(project_dir)
        except (CommandFailure, CommandTimeout) as e:
            raise DependencyFailure(f"Project validation failed: {e}") from e

    async def _refresh_dependencies(self, project_dir: Path) -> bool:
        """Re-fetch after a repair. Failures only cost the current attempt."""
        try:
            await self.toolchain.fetch_dependencies(project_dir)
        except (CommandFailure, CommandTimeout) as e:
            logger.warning("Dependency refresh failed, continuing: %s", e)
            return False
        return True

    async def _repair(self, project_dir: Path, diagnostics: str) -> int:
        return await asyncio.to_thread(self.repair_engine.repair, project_dir, diagnostics)

    async def validate(
        self,
        project_dir: Union[str, Path],
        on_step: Optional[StepCallback] = None,
    ) -> ValidationReport:
        """Run the loop. Raises ``DependencyFailure`` or ``ValidationFailure``."""
        project_dir = Path(project_dir)
        on_step = on_step or _noop_step

        await on_step("Running flutter pub get")
        await self._fetch_dependencies(project_dir)
        await asyncio.to_thread(prepare_env_file, project_dir)

        await on_step("Running flutter analyze")
        report = ValidationReport(clean=False, attempts=0, repairs=0)
        while report.attempts < self.max_attempts:
            try:
                result = await self.toolchain.analyze(project_dir)
                stdout, diagnostics = result.stdout, result.output
            except CommandFailure as e:
                # analyze exits non-zero whenever it reports issues
                stdout, diagnostics = e.stdout, e.output
            except CommandTimeout as e:
                raise ValidationFailure(f"Static analysis did not finish: {e}") from e

            report.attempts += 1
            if is_clean_analysis(stdout):
                report.clean = True
                logger.info("Flutter analyze passed on attempt %d", report.attempts)
                break

            issues = [
                line.strip() for line in stdout.splitlines()
                if "•" in line or "error" in line or "warning" in line
            ]
            logger.info(
                "Flutter analyze found issues (attempt %d/%d): %s",
                report.attempts, self.max_attempts, issues[:20],
            )

            if report.attempts < self.max_attempts:
                await on_step(f"Auto-fixing issues (attempt {report.attempts})")
                changed = await self._repair(project_dir, diagnostics)
                report.repairs += 1
                report.files_changed += changed
                if changed:
                    await self._refresh_dependencies(project_dir)
            else:
                logger.warning("Max analyze attempts reached, applying final fixes before build")
                report.files_changed += await self._repair(project_dir, diagnostics)
                report.repairs += 1
                await self._refresh_dependencies(project_dir)

        return report
