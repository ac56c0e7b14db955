"""Deferred and immediate deletion of project directories and bundles."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional, Set, Union

from .errors import CleanupFailure

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def remove_path(path: PathLike) -> bool:
    """Recursively delete ``path``. Returns False if it was already absent."""
    path = Path(path)
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise CleanupFailure(f"Failed to cleanup {path}: {e}") from e
    return True


class ResourceReaper:
    """Deletes a job's disk resources once they are no longer needed.

    Failed jobs are cleaned up immediately. For completed jobs the project
    directory goes after ``project_grace`` seconds and the bundle
    ``bundle_grace`` seconds after that.
    """

    def __init__(self, project_grace: float = 300.0, bundle_grace: float = 3600.0):
        self.project_grace = project_grace
        self.bundle_grace = bundle_grace
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def remove(self, path: Optional[PathLike]) -> bool:
        if path is None:
            return False
        try:
            removed = await asyncio.to_thread(remove_path, path)
        except CleanupFailure as e:
            logger.error("%s", e)
            return False
        if removed:
            logger.info("Cleaned up %s", path)
        return removed

    async def cleanup_now(self, project_dir: PathLike, bundle: Optional[PathLike] = None) -> None:
        await self.remove(project_dir)
        await self.remove(bundle)

    async def _delayed(self, project_dir: PathLike, bundle: Optional[PathLike]) -> None:
        await asyncio.sleep(self.project_grace)
        await self.remove(project_dir)
        await asyncio.sleep(self.bundle_grace)
        await self.remove(bundle)

    async def schedule_cleanup(
        self,
        project_dir: PathLike,
        bundle: Optional[PathLike] = None,
        failed: bool = False,
    ) -> Optional[asyncio.Task]:
        """Clean up now if ``failed``, otherwise arm the grace timers."""
        if failed:
            await self.cleanup_now(project_dir, bundle)
            return None
        task = asyncio.create_task(self._delayed(project_dir, bundle))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.info(
            "Scheduled cleanup of %s in %ss and its bundle %ss later",
            project_dir, self.project_grace, self.bundle_grace,
        )
        return task

    async def drain(self) -> None:
        """Wait for every armed timer to fire."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel armed timers; their paths are left on disk."""
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)
