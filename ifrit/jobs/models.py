"""Site builder job schema: Job, QueueItem, provider usage and audit records.

Persisted as one camelCase JSON document per job (see ``ifrit.jobs.store``).
All timestamps are epoch milliseconds.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


class _Record(BaseModel):
    """Base for persisted records: snake_case in Python, camelCase on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


# A job in one of these states can still make progress (resume on restart).
ACTIVE_JOB_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING, JobStatus.PAUSED)


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"
    SCHEDULED = "scheduled"


TERMINAL_ITEM_STATUSES = (ItemStatus.COMPLETE, ItemStatus.FAILED)


class ContentType(str, Enum):
    PILLAR = "pillar"
    CLUSTER = "cluster"
    ABOUT = "about"
    PRIVACY = "privacy"
    TERMS = "terms"
    CONTACT = "contact"
    DISCLAIMER = "disclaimer"
    HOMEPAGE = "homepage"


# ---------------------------------------------------------------------------
# Site configuration (input to queue building, pre-flight and prompts)
# ---------------------------------------------------------------------------

class AuthorProfile(_Record):
    name: str = ""
    role: str = ""
    experience: str = ""
    bio: str | None = None


class SiteConfig(_Record):
    """What the site is about. Empty defaults so pre-flight can report every gap."""

    domain: str = ""
    site_name: str = ""
    site_tagline: str | None = None
    niche: str = ""
    target_audience: str | None = None
    author: AuthorProfile = Field(default_factory=AuthorProfile)
    pillars: list[str] = Field(default_factory=list)
    clusters_per_pillar: int = 4
    # Optional externally chosen cluster topics, keyed by pillar topic
    cluster_topics: dict[str, list[str]] = Field(default_factory=dict)
    include_about: bool = True
    include_essential_pages: bool = True


class GitHubConfig(_Record):
    """Publish destination: the repository the static site is built from."""

    token: str = ""
    owner: str = ""
    repo: str = ""
    branch: str = "main"


# ---------------------------------------------------------------------------
# Queue and usage
# ---------------------------------------------------------------------------

class QueueItem(_Record):
    """One piece of content to generate and publish."""

    id: str
    type: ContentType
    topic: str
    keywords: list[str] = Field(default_factory=list)
    parent_pillar: str | None = None

    status: ItemStatus = ItemStatus.PENDING
    retries: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=1)
    scheduled_at: int | None = None
    last_error: str | None = None
    provider: str | None = None

    article_slug: str | None = None
    published: bool = False
    completed_at: int | None = None

    def is_eligible(self, now: int) -> bool:
        """True when the runner may pick this item up at ``now``."""
        if self.status == ItemStatus.PENDING:
            return True
        if self.status == ItemStatus.SCHEDULED:
            return self.scheduled_at is None or self.scheduled_at <= now
        return False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ITEM_STATUSES


class ProviderUsage(_Record):
    """Sliding counters for one provider; mutated only by the scheduler."""

    requests_this_minute: int = 0
    last_request_at: int = 0
    daily_requests: int = 0
    usage_day: str | None = None  # UTC date (YYYY-MM-DD) daily_requests belongs to
    cooldown_until: int | None = None


class CompletedItem(_Record):
    id: str
    type: ContentType
    topic: str
    article_slug: str
    provider: str
    content_length: int
    generated_at: int
    published_at: int | None = None
    article_url: str | None = None
    commit_url: str | None = None


class ErrorLogItem(_Record):
    id: str
    item_id: str
    topic: str
    error: str
    provider: str | None = None
    timestamp: int
    will_retry: bool = False
    retry_at: int | None = None


class JobProgress(_Record):
    total: int = 0
    completed: int = 0
    failed: int = 0
    retrying: int = 0
    published: int = 0
    pending: int = 0
    processing: int = 0


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------

class Job(_Record):
    """One run of building a site's content backlog."""

    id: str
    status: JobStatus = JobStatus.PENDING
    config: SiteConfig = Field(default_factory=SiteConfig)
    provider_keys: dict[str, list[str]] = Field(default_factory=dict)
    github_config: GitHubConfig = Field(default_factory=GitHubConfig)

    progress: JobProgress = Field(default_factory=JobProgress)
    queue: list[QueueItem] = Field(default_factory=list)
    completed_items: list[CompletedItem] = Field(default_factory=list)
    errors: list[ErrorLogItem] = Field(default_factory=list)
    provider_usage: dict[str, ProviderUsage] = Field(default_factory=dict)

    current_item: str | None = None
    current_provider: str | None = None

    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    started_at: int | None = None
    completed_at: int | None = None

    def find_item(self, item_id: str) -> QueueItem | None:
        return next((i for i in self.queue if i.id == item_id), None)

    def next_eligible_item(self, now: int) -> QueueItem | None:
        """First eligible item in queue order."""
        return next((i for i in self.queue if i.is_eligible(now)), None)

    def all_terminal(self) -> bool:
        return all(i.is_terminal for i in self.queue)

    def has_waiting_items(self) -> bool:
        return any(i.status == ItemStatus.SCHEDULED for i in self.queue)

    def recompute_progress(self) -> JobProgress:
        """Rebuild counters from a scan of the queue.

        Scheduled items with no retries are scheduling stalls and count as
        pending; scheduled items with retries count as retrying.
        """
        p = JobProgress(total=len(self.queue))
        for item in self.queue:
            if item.status == ItemStatus.COMPLETE:
                p.completed += 1
                if item.published:
                    p.published += 1
            elif item.status == ItemStatus.FAILED:
                p.failed += 1
            elif item.status == ItemStatus.PROCESSING:
                p.processing += 1
            elif item.status == ItemStatus.SCHEDULED and item.retries > 0:
                p.retrying += 1
            else:
                p.pending += 1
        self.progress = p
        return p

    def touch(self, now: int | None = None) -> None:
        self.updated_at = now if now is not None else now_ms()


class StartJobRequest(_Record):
    """Input for starting a job (API body / CLI job file)."""

    config: SiteConfig
    provider_keys: dict[str, list[str]] = Field(default_factory=dict)
    github_config: GitHubConfig = Field(default_factory=GitHubConfig)
