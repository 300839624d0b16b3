"""Site builder API route: start, monitor, pause/cancel and resume jobs.

POST   /api/site-builder              pre-flight, build queue, start in background
GET    /api/site-builder?jobId=       status summary (active or most recent job)
DELETE /api/site-builder?action=      pause (default) or cancel
PATCH  /api/site-builder?jobId=       resume a paused job
POST   /api/site-builder/preflight    pre-flight report only
"""

import logging
import math
from typing import Callable, Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from ifrit.config import get_settings
from ifrit.jobs import FileJobStore, JobNotFoundError, JobStatus, StartJobRequest, create_job, get_job_store
from ifrit.jobs.store import InvalidJobIdError
from ifrit.preflight import PreFlightReport, all_errors, run_preflight_checks
from ifrit.runner import (
    JobAlreadyRunningError,
    JobRegistry,
    JobRunner,
    JobStateError,
    cancel_job,
    create_runner,
    get_registry,
    job_summary,
    mark_resumed,
    pause_job,
)
from ifrit.runner.control import find_paused_job

logger = logging.getLogger(__name__)
router = APIRouter()

# Rough wall-clock estimate shown to the caller
MINUTES_PER_ITEM = 1.5


# ---------------------------------------------------------------------------
# Dependencies (overridden in tests)
# ---------------------------------------------------------------------------

def get_store() -> FileJobStore:
    return get_job_store()


def get_job_registry() -> JobRegistry:
    return get_registry()


def get_runner_factory() -> Callable[[], JobRunner]:
    return create_runner


def get_preflight() -> Callable[[StartJobRequest], PreFlightReport]:
    api_url = get_settings().github_api_url

    def check(request: StartJobRequest) -> PreFlightReport:
        return run_preflight_checks(
            request.config, request.provider_keys, request.github_config, api_url=api_url
        )

    return check


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load(store: FileJobStore, job_id: str):
    try:
        return store.get(job_id)
    except InvalidJobIdError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/site-builder/preflight")
def preflight(
    request: StartJobRequest,
    check: Callable[[StartJobRequest], PreFlightReport] = Depends(get_preflight),
):
    """Run pre-flight checks without starting anything."""
    return check(request).model_dump()


@router.post("/site-builder")
def start_job(
    request: StartJobRequest,
    store: FileJobStore = Depends(get_store),
    registry: JobRegistry = Depends(get_job_registry),
    runner_factory: Callable[[], JobRunner] = Depends(get_runner_factory),
    check: Callable[[StartJobRequest], PreFlightReport] = Depends(get_preflight),
):
    """Validate, build the queue and start processing in the background."""
    report = check(request)
    if not report.overall:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Pre-flight checks failed",
                "preFlightReport": report.model_dump(),
                "errors": all_errors(report),
                "summary": report.summary,
            },
        )

    active = store.get_active_job()
    if active and active.status in (JobStatus.RUNNING, JobStatus.PENDING):
        raise HTTPException(status_code=409, detail={"error": "A job is already running", "jobId": active.id})
    if registry.is_running():
        raise HTTPException(
            status_code=409, detail={"error": "A job is already running", "jobId": registry.current_job_id}
        )

    job = create_job(request.config, request.provider_keys, request.github_config)
    store.save(job)
    try:
        registry.start(job.id, runner_factory())
    except JobAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail={"error": str(e), "jobId": e.job_id})
    logger.info("Started job %s with %d items", job.id, len(job.queue))

    return {
        "success": True,
        "jobId": job.id,
        "message": "Site building job started",
        "totalItems": len(job.queue),
        "estimatedMinutes": math.ceil(len(job.queue) * MINUTES_PER_ITEM),
    }


@router.get("/site-builder")
def get_status(
    job_id: str | None = Query(None, alias="jobId"),
    store: FileJobStore = Depends(get_store),
    registry: JobRegistry = Depends(get_job_registry),
):
    """Status of a job, or of the active / most recent one."""
    if job_id:
        job = _load(store, job_id)
    else:
        job = store.get_active_job()
        if job is None:
            jobs = store.list_jobs()
            job = jobs[0] if jobs else None

    if job is None:
        return {"success": True, "hasJob": False, "isRunning": False, "job": None}
    return {
        "success": True,
        "hasJob": True,
        "isRunning": registry.is_running(job.id),
        "job": job_summary(job),
    }


@router.delete("/site-builder")
def stop_job(
    job_id: str | None = Query(None, alias="jobId"),
    action: Literal["pause", "cancel"] = Query("pause"),
    store: FileJobStore = Depends(get_store),
    registry: JobRegistry = Depends(get_job_registry),
):
    """Pause or cancel a job; the runner stops after its current item."""
    job = _load(store, job_id) if job_id else store.get_active_job()
    if job is None:
        raise HTTPException(status_code=404, detail="No active job found")

    try:
        job = cancel_job(store, job.id) if action == "cancel" else pause_job(store, job.id)
    except JobStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    registry.stop(job.id)

    return {
        "success": True,
        "message": "Job cancelled" if action == "cancel" else "Job paused",
        "jobId": job.id,
        "progress": job.progress.model_dump(by_alias=True),
    }


@router.patch("/site-builder")
def resume_job(
    job_id: str | None = Query(None, alias="jobId"),
    store: FileJobStore = Depends(get_store),
    registry: JobRegistry = Depends(get_job_registry),
    runner_factory: Callable[[], JobRunner] = Depends(get_runner_factory),
):
    """Resume a paused job in the background."""
    job = _load(store, job_id) if job_id else find_paused_job(store)
    if job is None:
        raise HTTPException(status_code=404, detail="No paused job found")
    if job.status != JobStatus.PAUSED:
        raise HTTPException(status_code=400, detail=f"Cannot resume job with status: {job.status.value}")
    if registry.is_running():
        raise HTTPException(status_code=409, detail="Another job is already running")

    job = mark_resumed(store, job.id)
    try:
        registry.start(job.id, runner_factory())
    except JobAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        "success": True,
        "message": "Job resumed",
        "jobId": job.id,
        "progress": job.progress.model_dump(by_alias=True),
    }
