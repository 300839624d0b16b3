"""Job storage: one JSON document per job, whole-document read/write."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from ifrit.config import get_settings
from ifrit.jobs.models import ACTIVE_JOB_STATUSES, Job

logger = logging.getLogger(__name__)

_JOB_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class InvalidJobIdError(ValueError):
    """Job id would not map to a file inside the store directory."""


class JobNotFoundError(LookupError):
    pass


class FileJobStore:
    """Persist jobs as JSON files. Survives restarts within same data dir.

    Callers load, mutate and save the whole job. Read-modify-write sequences
    that must not interleave within a process run under ``transaction()``;
    across processes the last writer wins.
    """

    def __init__(self, jobs_dir: Path):
        self._dir = Path(jobs_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store lock around a load-mutate-save sequence."""
        with self._lock:
            yield

    @property
    def directory(self) -> Path:
        return self._dir

    def _job_path(self, job_id: str) -> Path:
        if not _JOB_ID_RE.match(job_id or ""):
            raise InvalidJobIdError(f"Invalid job id: {job_id!r}")
        return self._dir / f"{job_id}.json"

    def save(self, job: Job) -> None:
        path = self._job_path(job.id)
        data = job.model_dump(mode="json", by_alias=True)
        # Temp file + rename so a crash mid-write never leaves a truncated document.
        fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=f".{job.id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def load(self, job_id: str) -> Job | None:
        path = self._job_path(job_id)
        if not path.exists():
            return None
        return self._read_job(path)

    def get(self, job_id: str) -> Job:
        """Like ``load`` but raises ``JobNotFoundError``."""
        job = self.load(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return job

    def list_jobs(self) -> list[Job]:
        """All readable jobs, most recently updated first."""
        jobs: list[Job] = []
        for path in self._dir.glob("*.json"):
            try:
                jobs.append(self._read_job(path))
            except (OSError, ValueError, ValidationError) as e:
                logger.warning("Skipping unreadable job file %s: %s", path.name, e)
        jobs.sort(key=lambda j: (j.updated_at, j.created_at), reverse=True)
        return jobs

    def get_active_job(self) -> Job | None:
        """Most recent job still pending, running or paused."""
        for job in self.list_jobs():
            if job.status in ACTIVE_JOB_STATUSES:
                return job
        return None

    def delete(self, job_id: str) -> bool:
        path = self._job_path(job_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _read_job(self, path: Path) -> Job:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Job.model_validate(data)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_store: FileJobStore | None = None


def get_job_store() -> FileJobStore:
    """Return singleton job store under IFRIT_DATA_DIR/jobs."""
    global _store
    if _store is not None:
        return _store
    settings = get_settings()
    _store = FileJobStore(settings.jobs_dir)
    logger.info("Using file-based job store (%s)", settings.jobs_dir)
    return _store


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:16]}"
