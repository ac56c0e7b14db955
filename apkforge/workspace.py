"""On-disk layout of generated projects and their packaged bundles."""

import logging
import re
import time
import zipfile
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import BundleNotFound, InvalidBundleName, MaterializationFailure
from .generation import clean_content
from .models import GeneratedFile

logger = logging.getLogger(__name__)

BUNDLE_SUFFIX = "_apk.zip"
DOWNLOAD_PREFIX = "/generate/download/"


class Workspace:
    """Directory holding one sub-directory per project plus zipped bundles."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def ensure(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def project_name(prompt: str, now: Optional[float] = None) -> str:
        """Derive a project name from the prompt plus a time-based suffix."""
        slug = re.sub(r"[^a-z0-9\s]", "", prompt.lower())
        slug = re.sub(r"\s+", "_", slug)[:30]
        millis = str(int((time.time() if now is None else now) * 1000))
        return f"flutter_{slug}_{millis[-6:]}"

    def project_path(self, name: str) -> Path:
        return self.root / name

    def bundle_path(self, name: str) -> Path:
        return self.root / f"{name}{BUNDLE_SUFFIX}"

    @staticmethod
    def download_url(bundle: Path) -> str:
        return f"{DOWNLOAD_PREFIX}{bundle.name}"

    def materialize(self, project_dir: Union[str, Path], files: Iterable[GeneratedFile]) -> List[Path]:
        """Write generated files under ``project_dir``.

        Leading separators are stripped; any path that still resolves outside
        the project raises ``MaterializationFailure`` before anything is written.
        """
        project_dir = Path(project_dir).resolve()
        targets = []
        for generated in files:
            relative = generated.relative_path.strip().lstrip("/\\")
            try:
                target = (project_dir / relative).resolve()
            except (OSError, ValueError) as e:
                raise MaterializationFailure(f"Invalid generated path {generated.relative_path!r}: {e}") from e
            if target == project_dir or project_dir not in target.parents:
                raise MaterializationFailure(
                    f"Refusing to write outside project directory: {generated.relative_path}"
                )
            targets.append((target, generated))

        written = []
        for target, generated in targets:
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(clean_content(generated.content), encoding="utf-8")
            except (OSError, ValueError) as e:
                raise MaterializationFailure(f"Failed to write {generated.relative_path}: {e}") from e
            written.append(target)
        logger.info("Wrote %d generated files into %s", len(written), project_dir.name)
        return written

    @staticmethod
    def package(artifact: Union[str, Path], bundle: Union[str, Path]) -> Path:
        """Zip the built artifact as ``app-release.apk``."""
        bundle = Path(bundle)
        with zipfile.ZipFile(bundle, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            archive.write(artifact, arcname="app-release.apk")
        return bundle

    def resolve_download(self, filename: str) -> Path:
        """Map a download name to an existing bundle path.

        The name is checked before the filesystem is touched.
        """
        if not filename.endswith(BUNDLE_SUFFIX) or filename != Path(filename).name or "\\" in filename:
            raise InvalidBundleName(filename)
        path = self.root / filename
        if not path.is_file():
            raise BundleNotFound(filename)
        return path
