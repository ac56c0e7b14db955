"""Flutter toolchain commands."""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from .runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

RELEASE_APK = Path("build") / "app" / "outputs" / "flutter-apk" / "app-release.apk"


class FlutterToolchain:
    """Thin wrapper mapping each toolchain step onto a ``CommandRunner`` call."""

    def __init__(self, runner: CommandRunner, flutter_bin: str = "flutter", timeout: Optional[float] = None):
        self.runner = runner
        self.flutter_bin = flutter_bin
        self.timeout = timeout

    async def _flutter(self, cwd: PathLike, *args: str) -> CommandResult:
        return await self.runner.run([self.flutter_bin, *args], cwd=cwd, timeout=self.timeout)

    async def create_project(self, name: str, root: PathLike) -> CommandResult:
        return await self._flutter(root, "create", name)

    async def fetch_dependencies(self, project_dir: PathLike) -> CommandResult:
        return await self._flutter(project_dir, "pub", "get")

    async def analyze(self, project_dir: PathLike) -> CommandResult:
        return await self._flutter(project_dir, "analyze", "--verbose")

    async def build_debug(self, project_dir: PathLike) -> CommandResult:
        return await self._flutter(project_dir, "build", "apk", "--debug", "--no-pub")

    async def build_release(self, project_dir: PathLike) -> CommandResult:
        return await self._flutter(project_dir, "build", "apk", "--release")

    @staticmethod
    def release_artifact(project_dir: PathLike) -> Path:
        return Path(project_dir) / RELEASE_APK


def is_clean_analysis(stdout: str) -> bool:
    """Whether ``flutter analyze`` output reports zero issues."""
    if "No issues found!" in stdout:
        return True
    return "0 issues found" in stdout and "error" not in stdout


def prepare_env_file(project_dir: PathLike) -> bool:
    """Create ``.env`` from ``.env.example`` with placeholder values.

    Generated apps that load a dotenv asset fail analysis without the file.
    Returns True when a file was written.
    """
    example = Path(project_dir) / ".env.example"
    if not example.is_file():
        return False
    content = re.sub(r"=$", "=PLACEHOLDER_VALUE", example.read_text(encoding="utf-8"), flags=re.MULTILINE)
    (Path(project_dir) / ".env").write_text(content, encoding="utf-8")
    logger.info("Created .env with placeholder values for validation")
    return True
