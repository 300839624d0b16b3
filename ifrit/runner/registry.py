"""Process-wide single-flight guard: at most one job is driven at a time."""

from __future__ import annotations

import logging
import threading

from ifrit.jobs.models import Job
from ifrit.runner.processor import JobRunner

logger = logging.getLogger(__name__)


class JobAlreadyRunningError(RuntimeError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} is already running")
        self.job_id = job_id


def _close(runner: JobRunner) -> None:
    close = getattr(runner, "close", None)
    if close is not None:
        close()


class JobRegistry:
    """Owns the active job handle and its stop flag."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._job_id: str | None = None
        self._stop: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def current_job_id(self) -> str | None:
        return self._job_id

    def is_running(self, job_id: str | None = None) -> bool:
        with self._lock:
            if self._job_id is None:
                return False
            return job_id is None or job_id == self._job_id

    def _acquire(self, job_id: str) -> threading.Event:
        with self._lock:
            if self._job_id is not None:
                raise JobAlreadyRunningError(self._job_id)
            self._job_id = job_id
            self._stop = threading.Event()
            return self._stop

    def _release(self, job_id: str) -> None:
        with self._lock:
            if self._job_id == job_id:
                self._job_id = None
                self._stop = None
                self._thread = None

    def run(self, job_id: str, runner: JobRunner) -> Job | None:
        """Drive ``job_id`` in the calling thread."""
        stop = self._acquire(job_id)
        try:
            return runner.run(job_id, stop)
        finally:
            _close(runner)
            self._release(job_id)

    def start(self, job_id: str, runner: JobRunner) -> threading.Thread:
        """Drive ``job_id`` in a background thread."""
        stop = self._acquire(job_id)
        thread = threading.Thread(
            target=self._run_in_thread,
            args=(job_id, runner, stop),
            name=f"ifrit-{job_id}",
            daemon=True,
        )
        with self._lock:
            self._thread = thread
        thread.start()
        return thread

    def _run_in_thread(self, job_id: str, runner: JobRunner, stop: threading.Event) -> None:
        try:
            runner.run(job_id, stop)
        except Exception:
            logger.exception("Runner for job %s crashed", job_id)
        finally:
            _close(runner)
            self._release(job_id)

    def stop(self, job_id: str | None = None) -> bool:
        """Ask the active run to stop after its current item. False if nothing matched."""
        with self._lock:
            if self._stop is None or (job_id is not None and job_id != self._job_id):
                return False
            self._stop.set()
            return True

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)


_registry: JobRegistry | None = None


def get_registry() -> JobRegistry:
    """Return the per-process registry."""
    global _registry
    if _registry is None:
        _registry = JobRegistry()
    return _registry
