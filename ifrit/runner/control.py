"""Operator actions on persisted jobs: pause, cancel, resume, republish, status."""

from __future__ import annotations

import logging
from typing import Any, Callable

from ifrit.jobs.models import ErrorLogItem, ItemStatus, Job, JobStatus, now_ms
from ifrit.jobs.store import FileJobStore
from ifrit.publish.deployment import DeploymentVerifier
from ifrit.publish.github import GitHubPublisher, PublishResult
from ifrit.runner.processor import new_error_id

logger = logging.getLogger(__name__)

RECENT_ERRORS = 5


class JobStateError(ValueError):
    """The requested action does not apply to the job (or item) in its current state."""


class ItemNotFoundError(LookupError):
    pass


def _transition(store: FileJobStore, job_id: str, allowed: tuple[JobStatus, ...], target: JobStatus, verb: str) -> Job:
    with store.transaction():
        job = store.get(job_id)
        if job.status not in allowed:
            raise JobStateError(f"Cannot {verb} job with status: {job.status.value}")
        job.status = target
        job.touch()
        store.save(job)
    return job


def pause_job(store: FileJobStore, job_id: str) -> Job:
    job = _transition(store, job_id, (JobStatus.PENDING, JobStatus.RUNNING), JobStatus.PAUSED, "pause")
    logger.info("Paused job %s", job_id)
    return job


def cancel_job(store: FileJobStore, job_id: str) -> Job:
    job = _transition(
        store, job_id, (JobStatus.PENDING, JobStatus.RUNNING, JobStatus.PAUSED), JobStatus.CANCELLED, "cancel"
    )
    logger.info("Cancelled job %s", job_id)
    return job


def mark_resumed(store: FileJobStore, job_id: str) -> Job:
    """paused -> running; the caller then hands the job to a runner."""
    job = _transition(store, job_id, (JobStatus.PAUSED,), JobStatus.RUNNING, "resume")
    logger.info("Resumed job %s", job_id)
    return job


def find_paused_job(store: FileJobStore) -> Job | None:
    return next((j for j in store.list_jobs() if j.status == JobStatus.PAUSED), None)


def republish_item(
    store: FileJobStore,
    publisher: GitHubPublisher,
    job_id: str,
    item_id: str,
    verifier: DeploymentVerifier | None = None,
    clock: Callable[[], int] = now_ms,
) -> PublishResult:
    """Publish a completed-but-unpublished item again from its saved file.

    The publish call runs outside the store lock; the outcome is applied to a
    freshly loaded job so a runner working on other items is not overwritten.
    """
    job = store.get(job_id)
    item = job.find_item(item_id)
    if item is None:
        raise ItemNotFoundError(f"Item not found: {item_id}")
    if item.status != ItemStatus.COMPLETE or not item.article_slug:
        raise JobStateError(f"Item {item_id} has no saved article (status: {item.status.value})")
    if item.published:
        raise JobStateError(f"Item {item_id} is already published")

    slug = item.article_slug
    result = publisher.publish(slug, job.github_config, job.config.domain)
    now = clock()
    with store.transaction():
        job = store.get(job_id)
        item = job.find_item(item_id)
        if result.success:
            item.published = True
            item.last_error = None
            record = next((c for c in reversed(job.completed_items) if c.id == item.id), None)
            if record is not None:
                record.published_at = now
                record.article_url = result.article_url
                record.commit_url = result.commit_url
        else:
            item.last_error = result.error
            job.errors.append(
                ErrorLogItem(
                    id=new_error_id(),
                    item_id=item.id,
                    topic=item.topic,
                    error=f"Publish failed: {result.error}",
                    timestamp=now,
                    will_retry=False,
                )
            )
        job.recompute_progress()
        job.touch(now)
        store.save(job)

    if result.success:
        logger.info("Republished %s", slug)
        if verifier is not None:
            warning = verifier.verify(slug, job.github_config)
            if warning:
                logger.warning("GitHub verification warning for %s: %s", slug, warning)
    return result


def job_summary(job: Job) -> dict[str, Any]:
    """Status view without article bodies or credentials."""
    current = job.find_item(job.current_item) if job.current_item else None
    return {
        "id": job.id,
        "status": job.status.value,
        "config": {
            "domain": job.config.domain,
            "siteName": job.config.site_name,
            "niche": job.config.niche,
            "totalPillars": len(job.config.pillars),
            "clustersPerPillar": job.config.clusters_per_pillar,
        },
        "progress": job.progress.model_dump(by_alias=True),
        "currentProvider": job.current_provider,
        "currentItem": current.topic if current else None,
        "queueSummary": [
            {
                "id": i.id,
                "type": i.type.value,
                "topic": i.topic,
                "status": i.status.value,
                "retries": i.retries,
                "published": i.published,
            }
            for i in job.queue
        ],
        "completedItems": [
            {"topic": c.topic, "type": c.type.value, "articleUrl": c.article_url, "provider": c.provider}
            for c in job.completed_items
        ],
        "recentErrors": [
            {"topic": e.topic, "error": e.error, "willRetry": e.will_retry, "timestamp": e.timestamp}
            for e in job.errors[-RECENT_ERRORS:]
        ],
        "createdAt": job.created_at,
        "updatedAt": job.updated_at,
        "startedAt": job.started_at,
        "completedAt": job.completed_at,
    }
