"""Backing stores for job records."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .models import Job


class JobStore(Protocol):
    """Minimal key-value contract used by ``JobRegistry``.

    Stores are not required to be concurrency-safe; the registry serializes
    every access.
    """

    def load(self, job_id: str) -> Optional[Job]:
        ...

    def save(self, job: Job) -> None:
        ...

    def load_all(self) -> List[Job]:
        ...


class MemoryJobStore:
    """Process-local store. Records are copied in and out so callers never alias them."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}

    def load(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def save(self, job: Job) -> None:
        self._jobs[job.id] = job.model_copy(deep=True)

    def load_all(self) -> List[Job]:
        return [job.model_copy(deep=True) for job in self._jobs.values()]

    def __len__(self) -> int:
        return len(self._jobs)


class JsonFileJobStore:
    """File-based store writing the whole job list atomically on every save."""

    def __init__(self, path: str = ".apkforge/jobs.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write_json([])

    def _write_json(self, data: Any) -> None:
        """Write data to JSON file with atomic write."""
        temp_file = self.path.with_suffix(".tmp")
        with open(temp_file, "w") as f:
            json.dump(data, f, indent=2, default=str)
        temp_file.replace(self.path)

    def _read_json(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, "r") as f:
            return json.load(f)

    def load(self, job_id: str) -> Optional[Job]:
        for job_data in self._read_json():
            if job_data["id"] == job_id:
                return Job(**job_data)
        return None

    def save(self, job: Job) -> None:
        jobs = self._read_json()
        job_dict = job.model_dump(mode="json")
        for i, job_data in enumerate(jobs):
            if job_data["id"] == job.id:
                jobs[i] = job_dict
                break
        else:
            jobs.append(job_dict)
        self._write_json(jobs)

    def load_all(self) -> List[Job]:
        return [Job(**job_data) for job_data in self._read_json()]

    def __len__(self) -> int:
        return len(self._read_json())
