"""Job runner: the control loop that walks a job's queue.

One item at a time: pick a provider, generate, gate through the quality
validator, save, publish, and persist the outcome. The job document in the
store is the source of truth; the loop reloads it every iteration so that
pause/cancel written by another caller are honoured between items.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Callable, Mapping, Sequence

from ifrit.config import Settings, get_settings
from ifrit.jobs.models import (
    CompletedItem,
    ErrorLogItem,
    ItemStatus,
    Job,
    JobStatus,
    QueueItem,
    now_ms,
)
from ifrit.jobs.store import FileJobStore, get_job_store
from ifrit.llm.base import ContentGenerator, GenerationRequest
from ifrit.llm.generator import LLMContentGenerator
from ifrit.providers.failures import is_rate_limit_error
from ifrit.providers.rate_limits import RateLimit
from ifrit.providers.scheduler import ProviderScheduler
from ifrit.publish.content_writer import ContentWriter
from ifrit.publish.deployment import DeploymentVerifier
from ifrit.publish.github import GitHubPublisher
from ifrit.quality.cleanup import clean_content
from ifrit.quality.content_validator import get_content_type, validate_content

logger = logging.getLogger(__name__)

# Backoff ladder for failed generations; the last value repeats.
RETRY_DELAYS_MS: tuple[int, ...] = (30_000, 60_000, 120_000)

JOB_ERROR_ITEM_ID = "job"
INTERRUPTED_MESSAGE = "Interrupted while processing; reset to pending"


def retry_delay_ms(retries: int) -> int:
    """Delay before attempt ``retries + 1`` (``retries`` >= 1)."""
    return RETRY_DELAYS_MS[min(max(retries, 1), len(RETRY_DELAYS_MS)) - 1]


def new_error_id() -> str:
    return f"err_{uuid.uuid4().hex[:12]}"


def site_context(job: Job) -> dict:
    """Site details handed to the generation call."""
    return job.config.model_dump(
        mode="json",
        by_alias=True,
        include={"domain", "site_name", "site_tagline", "niche", "target_audience", "author"},
    )


class JobRunner:
    """Drives a single job to completion, pause, cancellation or failure.

    ``clock`` returns epoch milliseconds. ``sleep`` replaces the stop-aware
    wait (tests pass one that advances a fake clock).
    """

    def __init__(
        self,
        store: FileJobStore,
        generator: ContentGenerator,
        publisher: GitHubPublisher,
        writer: ContentWriter,
        verifier: DeploymentVerifier | None = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], None] | None = None,
        inter_item_delay: float = 1.0,
        max_wait: float = 5.0,
        rate_limits: Mapping[str, RateLimit] | None = None,
        priority: Sequence[str] | None = None,
    ):
        self.store = store
        self.generator = generator
        self.publisher = publisher
        self.writer = writer
        self.verifier = verifier
        self._clock = clock
        self._sleep = sleep
        self.inter_item_delay = inter_item_delay
        self.max_wait = max_wait
        self._rate_limits = rate_limits
        self._priority = priority

    def scheduler_for(self, job: Job) -> ProviderScheduler:
        return ProviderScheduler(job, self._rate_limits, self._priority, clock=self._clock)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self, job_id: str, stop_event: threading.Event | None = None) -> Job | None:
        """Process ``job_id`` until it finishes, is paused/cancelled, or ``stop_event`` is set.

        Returns the last persisted state of the job.
        """
        stop = stop_event or threading.Event()
        job = self.store.get(job_id)
        self._prepare(job)

        while not stop.is_set():
            job = self.store.load(job_id)
            if job is None:
                logger.warning("Job %s disappeared from the store; stopping", job_id)
                return None
            if job.status in (JobStatus.PAUSED, JobStatus.CANCELLED):
                logger.info("Job %s is %s; stopping", job_id, job.status.value)
                break
            if job.status in (JobStatus.COMPLETE, JobStatus.FAILED):
                break

            try:
                now = self._clock()
                item = job.next_eligible_item(now)
                if item is None:
                    if job.all_terminal():
                        self._complete(job)
                        break
                    if self._wait(stop, self._idle_wait_seconds(job, now)):
                        break
                    continue

                self.process_item(job, item)
            except Exception as e:
                logger.exception("Job %s failed", job_id)
                self._fail(job, e)
                break

            if self._wait(stop, self.inter_item_delay):
                break

        return self.store.load(job_id)

    def _prepare(self, job: Job) -> None:
        """Reset items orphaned in ``processing`` by a crashed run and mark the job running."""
        for item in job.queue:
            if item.status == ItemStatus.PROCESSING:
                logger.warning("Item %s (%s) was left processing; resetting to pending", item.id, item.topic)
                item.status = ItemStatus.PENDING
                item.last_error = INTERRUPTED_MESSAGE
        job.current_item = None
        job.current_provider = None
        if job.status in (JobStatus.PENDING, JobStatus.RUNNING):
            job.status = JobStatus.RUNNING
            if job.started_at is None:
                job.started_at = self._clock()
        self._persist(job)

    def _idle_wait_seconds(self, job: Job, now: int) -> float:
        """Nothing eligible yet: wait for the next scheduled item or provider, capped."""
        waits = [i.scheduled_at - now for i in job.queue if i.status == ItemStatus.SCHEDULED and i.scheduled_at]
        soonest = min(waits) if waits else int(self.max_wait * 1000)
        delay_ms = max(soonest, self.scheduler_for(job).delay_until_available())
        return min(max(delay_ms, 0) / 1000, self.max_wait)

    def _wait(self, stop: threading.Event, seconds: float) -> bool:
        """Sleep, returning True if a stop was requested."""
        if self._sleep is not None:
            self._sleep(seconds)
            return stop.is_set()
        return stop.wait(seconds)

    def _complete(self, job: Job) -> None:
        job.status = JobStatus.COMPLETE
        job.completed_at = self._clock()
        job.current_item = None
        job.current_provider = None
        self._persist(job)
        p = job.progress
        logger.info(
            "Job %s complete: %d/%d completed, %d published, %d failed",
            job.id,
            p.completed,
            p.total,
            p.published,
            p.failed,
        )

    def _fail(self, job: Job, error: Exception) -> None:
        for item in job.queue:
            if item.status == ItemStatus.PROCESSING:
                item.status = ItemStatus.PENDING
                item.last_error = INTERRUPTED_MESSAGE
        job.errors.append(
            ErrorLogItem(
                id=new_error_id(),
                item_id=JOB_ERROR_ITEM_ID,
                topic="Job Processing",
                error=str(error) or error.__class__.__name__,
                provider=job.current_provider,
                timestamp=self._clock(),
                will_retry=False,
            )
        )
        job.status = JobStatus.FAILED
        job.current_item = None
        job.current_provider = None
        try:
            self._persist(job)
        except OSError:
            logger.exception("Could not persist failure of job %s", job.id)

    def _persist(self, job: Job) -> None:
        """Recompute progress and save; a pause/cancel stored meanwhile wins over ``running``."""
        with self.store.transaction():
            if job.status == JobStatus.RUNNING:
                stored = self.store.load(job.id)
                if stored is not None and stored.status in (JobStatus.PAUSED, JobStatus.CANCELLED):
                    job.status = stored.status
            job.recompute_progress()
            job.touch(self._clock())
            self.store.save(job)

    def close(self) -> None:
        """Release HTTP clients held by the publisher and verifier."""
        for owner in (self.publisher, self.verifier):
            close = getattr(owner, "close", None)
            if close is not None:
                close()

    # ------------------------------------------------------------------
    # One item
    # ------------------------------------------------------------------

    def process_item(self, job: Job, item: QueueItem) -> None:
        """Attempt one queue item and persist the outcome, whatever it is."""
        scheduler = self.scheduler_for(job)
        provider = scheduler.next_provider()

        if provider is None:
            delay = scheduler.delay_until_available()
            item.status = ItemStatus.SCHEDULED
            item.scheduled_at = self._clock() + delay
            logger.info("No provider available for %s; rescheduled in %.1fs", item.id, delay / 1000)
            self._finish_item(job)
            return

        item.status = ItemStatus.PROCESSING
        item.provider = provider
        job.current_item = item.id
        job.current_provider = provider
        self._persist(job)
        logger.info("Generating %s '%s' via %s", item.type.value, item.topic, provider)

        request = GenerationRequest(
            content_type=item.type.value,
            topic=item.topic,
            keywords=list(item.keywords),
            parent_pillar=item.parent_pillar,
            site_context=site_context(job),
        )
        result = self.generator.generate(provider, job.provider_keys.get(provider, []), request)
        scheduler.record_usage(
            provider,
            was_rate_limited=not result.success and is_rate_limit_error(result.error),
        )

        if not result.success or not result.content:
            self._record_failure(job, item, result.error or "Generation failed", provider)
        else:
            validation = validate_content(result.content, get_content_type(item.type))
            if not validation.valid:
                self._record_failure(
                    job, item, f"Quality check failed: {validation.error_summary()}", provider
                )
            else:
                for issue in validation.warnings:
                    logger.info("Quality warning for %s: %s", item.id, issue.message)
                self._save_and_publish(job, item, provider, result.content)

        self._finish_item(job)

    def _finish_item(self, job: Job) -> None:
        job.current_item = None
        job.current_provider = None
        self._persist(job)

    def _record_failure(self, job: Job, item: QueueItem, error: str, provider: str) -> None:
        now = self._clock()
        item.retries = min(item.retries + 1, item.max_retries)
        item.last_error = error

        if item.retries >= item.max_retries:
            item.status = ItemStatus.FAILED
            item.scheduled_at = None
            retry_at = None
            logger.warning("Item %s failed permanently after %d attempts: %s", item.id, item.retries, error)
        else:
            retry_at = now + retry_delay_ms(item.retries)
            item.status = ItemStatus.SCHEDULED
            item.scheduled_at = retry_at
            logger.warning(
                "Item %s failed (attempt %d/%d), retrying in %ds: %s",
                item.id,
                item.retries,
                item.max_retries,
                (retry_at - now) // 1000,
                error,
            )

        job.errors.append(
            ErrorLogItem(
                id=new_error_id(),
                item_id=item.id,
                topic=item.topic,
                error=error,
                provider=provider,
                timestamp=now,
                will_retry=retry_at is not None,
                retry_at=retry_at,
            )
        )

    def _save_and_publish(self, job: Job, item: QueueItem, provider: str, content: str) -> None:
        cleaned = clean_content(content)
        if cleaned.was_modified:
            logger.info("Cleaned %s: %s", item.id, "; ".join(cleaned.changes))

        slug = self.writer.save(item, cleaned.content, job.config)
        generated_at = self._clock()
        item.article_slug = slug
        item.status = ItemStatus.COMPLETE
        item.scheduled_at = None
        item.completed_at = generated_at

        completed = CompletedItem(
            id=item.id,
            type=item.type,
            topic=item.topic,
            article_slug=slug,
            provider=provider,
            content_length=len(cleaned.content),
            generated_at=generated_at,
        )

        publish = self.publisher.publish(slug, job.github_config, job.config.domain)
        if publish.success:
            item.published = True
            item.last_error = None
            completed.published_at = self._clock()
            completed.article_url = publish.article_url
            completed.commit_url = publish.commit_url
            logger.info("Published %s -> %s", slug, publish.article_url or slug)
            if self.verifier is not None:
                warning = self.verifier.verify(slug, job.github_config)
                if warning:
                    logger.warning("GitHub verification warning for %s: %s", slug, warning)
        else:
            # Content is saved; publishing is left for a manual republish.
            item.published = False
            item.last_error = publish.error
            job.errors.append(
                ErrorLogItem(
                    id=new_error_id(),
                    item_id=item.id,
                    topic=item.topic,
                    error=f"Publish failed: {publish.error}",
                    provider=provider,
                    timestamp=self._clock(),
                    will_retry=False,
                )
            )
            logger.warning("Publish failed for %s: %s", slug, publish.error)

        job.completed_items.append(completed)


def create_runner(settings: Settings | None = None, generator: ContentGenerator | None = None) -> JobRunner:
    """Runner wired to the configured store, LLM providers and GitHub."""
    settings = settings or get_settings()
    writer = ContentWriter(settings.content_dir)
    return JobRunner(
        store=get_job_store(),
        generator=generator or LLMContentGenerator(settings),
        publisher=GitHubPublisher(writer, api_url=settings.github_api_url, timeout=settings.github_timeout),
        writer=writer,
        verifier=DeploymentVerifier(api_url=settings.github_api_url),
        inter_item_delay=settings.ifrit_inter_item_delay,
        max_wait=settings.ifrit_max_wait,
    )
