"""Job runner, job control and the single-flight registry."""

from ifrit.runner.control import (
    ItemNotFoundError,
    JobStateError,
    cancel_job,
    job_summary,
    mark_resumed,
    pause_job,
    republish_item,
)
from ifrit.runner.processor import RETRY_DELAYS_MS, JobRunner, create_runner
from ifrit.runner.registry import JobAlreadyRunningError, JobRegistry, get_registry

__all__ = [
    "RETRY_DELAYS_MS",
    "ItemNotFoundError",
    "JobAlreadyRunningError",
    "JobRegistry",
    "JobRunner",
    "JobStateError",
    "cancel_job",
    "create_runner",
    "get_registry",
    "job_summary",
    "mark_resumed",
    "pause_job",
    "republish_item",
]
