"""Build a job's content queue from a site config."""

from __future__ import annotations

from ifrit.jobs.models import (
    ContentType,
    GitHubConfig,
    Job,
    JobStatus,
    QueueItem,
    SiteConfig,
    now_ms,
)
from ifrit.jobs.store import new_job_id

DEFAULT_MAX_RETRIES = 3


def build_queue(config: SiteConfig, max_retries: int = DEFAULT_MAX_RETRIES) -> list[QueueItem]:
    """About page first, then essential pages, pillars, and each pillar's clusters."""
    queue: list[QueueItem] = []

    def add(type_: ContentType, topic: str, keywords: list[str], parent: str | None = None) -> None:
        queue.append(
            QueueItem(
                id=f"item_{len(queue) + 1}",
                type=type_,
                topic=topic,
                keywords=keywords,
                parent_pillar=parent,
                max_retries=max_retries,
            )
        )

    if config.include_about:
        add(ContentType.ABOUT, f"About {config.site_name}", [config.niche, "about us", "our mission"])

    if config.include_essential_pages:
        add(
            ContentType.PRIVACY,
            f"Privacy Policy - {config.site_name}",
            ["privacy policy", "data protection", "cookies"],
        )
        add(
            ContentType.TERMS,
            f"Terms of Service - {config.site_name}",
            ["terms of service", "user agreement", "legal"],
        )
        add(
            ContentType.CONTACT,
            f"Contact Us - {config.site_name}",
            ["contact", "get in touch", "support"],
        )

    for pillar in config.pillars:
        add(ContentType.PILLAR, pillar, extract_keywords(pillar, config.niche))

    for pillar in config.pillars:
        for cluster in cluster_topics_for(config, pillar):
            add(ContentType.CLUSTER, cluster, extract_keywords(cluster, config.niche), parent=pillar)

    return queue


def cluster_topics_for(config: SiteConfig, pillar: str) -> list[str]:
    """Externally supplied cluster topics for a pillar, else numbered parts."""
    count = max(0, config.clusters_per_pillar)
    supplied = [t for t in config.cluster_topics.get(pillar, []) if t.strip()]
    if supplied:
        return supplied[:count]
    return [f"{pillar} - Part {i}" for i in range(1, count + 1)]


def extract_keywords(topic: str, niche: str) -> list[str]:
    words = [w for w in topic.lower().split() if len(w) > 3]
    niche_words = niche.split()
    candidates = words[:3] + ([niche_words[0].lower()] if niche_words else [])
    # dict.fromkeys keeps first-seen order
    return list(dict.fromkeys(candidates))


def create_job(
    config: SiteConfig,
    provider_keys: dict[str, list[str]],
    github_config: GitHubConfig,
    job_id: str | None = None,
) -> Job:
    """New pending job with its queue built and progress reconciled."""
    now = now_ms()
    job = Job(
        id=job_id or new_job_id(),
        status=JobStatus.PENDING,
        config=config,
        provider_keys=provider_keys,
        github_config=github_config,
        queue=build_queue(config),
        created_at=now,
        updated_at=now,
    )
    job.recompute_progress()
    return job
