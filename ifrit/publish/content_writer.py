"""Write validated articles to the local content directory as markdown + YAML front matter."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

import yaml

from ifrit.jobs.models import ContentType, QueueItem, SiteConfig
from ifrit.quality.content_validator import strip_frontmatter

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"\A---\n(.*?)\n---\n?", re.DOTALL)
_MAX_SLUG_LENGTH = 60
_MAX_DESCRIPTION_LENGTH = 160

_PAGE_CATEGORIES = {
    ContentType.ABOUT: "About",
    ContentType.HOMEPAGE: "Home",
    ContentType.PRIVACY: "Legal",
    ContentType.TERMS: "Legal",
    ContentType.DISCLAIMER: "Legal",
    ContentType.CONTACT: "Contact",
}


def generate_slug(topic: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", topic.lower()).strip("-")
    return slug[:_MAX_SLUG_LENGTH].rstrip("-")


def generate_description(item: QueueItem, niche: str = "") -> str:
    keywords = ", ".join(item.keywords[:3])
    text = f"Expert guide on {item.topic}."
    if keywords:
        text += f" Covers {keywords}"
        text += f" for {niche} readers." if niche else "."
    return text[:_MAX_DESCRIPTION_LENGTH]


def category_for(item: QueueItem, niche: str = "") -> str:
    if item.type in _PAGE_CATEGORIES:
        return _PAGE_CATEGORIES[item.type]
    if item.parent_pillar:
        return item.parent_pillar
    if item.type == ContentType.PILLAR:
        return item.topic
    return niche.title() or "General"


def split_frontmatter(content: str) -> tuple[dict, str]:
    """Return (front matter mapping, body). Unparseable front matter is dropped."""
    content = content.replace("\r\n", "\n")
    m = _FRONTMATTER_RE.match(content)
    if not m:
        return {}, content
    try:
        meta = yaml.safe_load(m.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning("Ignoring malformed front matter: %s", e)
        meta = {}
    if not isinstance(meta, dict):
        meta = {}
    return meta, strip_frontmatter(content).lstrip("\n")


class ContentWriter:
    """Saves one markdown file per article under ``content_dir``."""

    def __init__(self, content_dir: Path):
        self._dir = Path(content_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, slug: str) -> Path:
        return self._dir / f"{slug}.md"

    def read(self, slug: str) -> str:
        return self.path_for(slug).read_text(encoding="utf-8")

    def save(self, item: QueueItem, content: str, config: SiteConfig, today: str | None = None) -> str:
        """Write the article and return its slug.

        Front matter produced by the model is kept; date, author and category
        are filled in from the job.
        """
        slug = generate_slug(item.topic) or item.id
        generated, body = split_frontmatter(content)

        meta = {
            "title": str(generated.get("title") or item.topic),
            "description": str(generated.get("description") or generate_description(item, config.niche)),
            "date": today or datetime.now(timezone.utc).date().isoformat(),
            "author": config.author.name,
            "category": category_for(item, config.niche),
        }
        for key, value in generated.items():
            meta.setdefault(key, value)

        header = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True, default_flow_style=False, width=1000)
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(slug)
        path.write_text(f"---\n{header}---\n\n{body.lstrip()}\n", encoding="utf-8")
        logger.info("Saved %s (%d chars)", path, len(body))
        return slug
