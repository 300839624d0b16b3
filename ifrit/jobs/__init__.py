"""Site builder job model, queue building and storage."""

from ifrit.jobs.builder import build_queue, create_job
from ifrit.jobs.models import (
    ContentType,
    ItemStatus,
    Job,
    JobStatus,
    QueueItem,
    SiteConfig,
    GitHubConfig,
    StartJobRequest,
)
from ifrit.jobs.store import FileJobStore, JobNotFoundError, get_job_store, new_job_id

__all__ = [
    "ContentType",
    "FileJobStore",
    "GitHubConfig",
    "ItemStatus",
    "Job",
    "JobNotFoundError",
    "JobStatus",
    "QueueItem",
    "SiteConfig",
    "StartJobRequest",
    "build_queue",
    "create_job",
    "get_job_store",
    "new_job_id",
]
