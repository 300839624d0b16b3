"""Pytest configuration and shared fixtures."""

import os
import random
import tempfile

import pytest

# Keep the settings-driven singletons (job store, content dir) out of the project tree.
os.environ.setdefault("IFRIT_DATA_DIR", tempfile.mkdtemp(prefix="ifrit-test-"))

from ifrit.jobs.models import AuthorProfile, GitHubConfig, SiteConfig  # noqa: E402
from ifrit.jobs.store import FileJobStore  # noqa: E402

START_MS = 1_700_000_000_000  # 2023-11-14T22:13:20Z

_VOCABULARY = (
    "garden soil compost seedling watering mulch pruning harvest climate season "
    "balcony container drainage sunlight nutrient pepper tomato basil lettuce spinach "
    "trellis beetle ladybug fertilizer organic budget planter kitchen window morning "
    "evening schedule patience yield variety heirloom sprout blossom weeding rotation "
    "frost shade irrigation moisture texture"
).split()


class FakeClock:
    """Epoch-millisecond clock advanced by hand or by the runner's sleeps."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def sleep(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


def make_text(n_words: int, seed: int = 0) -> str:
    """Varied filler prose: no word repeats within a four-word window."""
    rng = random.Random(seed)
    words: list[str] = []
    while len(words) < n_words:
        word = rng.choice(_VOCABULARY)
        if word in words[-4:]:
            continue
        words.append(word)
    sentences = [" ".join(words[i : i + 12]) for i in range(0, len(words), 12)]
    return ".\n".join(s.capitalize() for s in sentences) + "."


def make_article(
    words: int = 2000,
    headings: int = 4,
    conclusion: bool = True,
    title: str | None = "Growing Vegetables on a Balcony",
    description: str | None = "How to plan, plant and harvest a small balcony garden.",
    frontmatter: bool = True,
    links: int = 0,
    extra: str = "",
    seed: int = 1,
) -> str:
    """Markdown article whose body text totals roughly ``words`` words."""
    intro_words = 40
    sections = headings + (1 if conclusion else 0)
    per_section = max(1, (words - intro_words) // max(1, sections))

    parts: list[str] = []
    if frontmatter:
        meta = []
        if title is not None:
            meta.append(f'title: "{title}"')
        if description is not None:
            meta.append(f'description: "{description}"')
        parts.append("---\n" + "\n".join(meta) + "\n---")

    parts.append(make_text(intro_words, seed))
    for i in range(headings):
        parts.append(f"## Key Point {i + 1}")
        half = per_section // 2
        parts.append(make_text(half, seed * 100 + i * 2))
        parts.append(make_text(per_section - half, seed * 100 + i * 2 + 1))
    if conclusion:
        parts.append("## Conclusion")
        parts.append(make_text(per_section, seed * 100 + 99))
    if links:
        parts.append(" ".join(f"[resource {i}](https://garden.test/r{i})" for i in range(links)))
    if extra:
        parts.append(extra)
    return "\n\n".join(parts) + "\n"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return FileJobStore(tmp_path / "jobs")


@pytest.fixture
def site_config():
    return SiteConfig(
        domain="balconygreens.com",
        site_name="Balcony Greens",
        niche="urban gardening",
        target_audience="apartment dwellers",
        author=AuthorProfile(name="Sam Rivera", role="Horticulturist", experience="12 years"),
        pillars=["Container Vegetable Gardening", "Balcony Herb Growing"],
        clusters_per_pillar=2,
    )


@pytest.fixture
def github_config():
    return GitHubConfig(token="ghp_testtoken123456", owner="balcony", repo="site", branch="main")
