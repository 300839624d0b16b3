"""Content quality gate: structural rules per content type plus artifact patterns.

Everything here is mechanical text analysis; no LLM is involved. Only
error-severity issues block publishing, the score is diagnostic.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Literal

Severity = Literal["error", "warning"]


@dataclass
class ContentIssue:
    type: Severity
    code: str
    message: str


@dataclass
class ContentMetrics:
    word_count: int = 0
    heading_count: int = 0
    paragraph_count: int = 0
    link_count: int = 0
    has_frontmatter: bool = False
    has_intro: bool = False
    has_conclusion: bool = False


@dataclass
class ContentValidation:
    """Verdict for one piece of generated text."""

    valid: bool
    score: int  # 0-100
    issues: list[ContentIssue] = field(default_factory=list)
    metrics: ContentMetrics = field(default_factory=ContentMetrics)

    @property
    def errors(self) -> list[ContentIssue]:
        return [i for i in self.issues if i.type == "error"]

    @property
    def warnings(self) -> list[ContentIssue]:
        return [i for i in self.issues if i.type == "warning"]

    def error_summary(self) -> str:
        return "; ".join(i.message for i in self.errors)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class QualityRule:
    min_words: int
    min_headings: int
    min_paragraphs: int
    require_conclusion: bool


QUALITY_RULES: dict[str, QualityRule] = {
    "pillar": QualityRule(min_words=1500, min_headings=3, min_paragraphs=8, require_conclusion=True),
    "cluster": QualityRule(min_words=800, min_headings=2, min_paragraphs=5, require_conclusion=True),
    "about": QualityRule(min_words=300, min_headings=1, min_paragraphs=3, require_conclusion=False),
    "contact": QualityRule(min_words=100, min_headings=1, min_paragraphs=2, require_conclusion=False),
    "privacy": QualityRule(min_words=500, min_headings=3, min_paragraphs=5, require_conclusion=False),
    "terms": QualityRule(min_words=500, min_headings=3, min_paragraphs=5, require_conclusion=False),
    "disclaimer": QualityRule(min_words=200, min_headings=1, min_paragraphs=2, require_conclusion=False),
}

DEFAULT_CONTENT_TYPE = "cluster"


def get_content_type(item_type: object) -> str:
    """Rule-set key for a queue item type; unknown types use the cluster rules."""
    key = str(getattr(item_type, "value", item_type))
    return key if key in QUALITY_RULES else DEFAULT_CONTENT_TYPE


# ── Pattern table ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ContentPattern:
    pattern: re.Pattern[str]
    severity: Severity
    code: str
    message: str


def _p(regex: str, severity: Severity, message: str, flags: int = 0) -> ContentPattern:
    code = "FORBIDDEN_CONTENT" if severity == "error" else "QUALITY_WARNING"
    return ContentPattern(re.compile(regex, flags), severity, code, message)


_I = re.IGNORECASE

# AI artifacts and placeholder text: any match disqualifies the content.
FORBIDDEN_PATTERNS: tuple[ContentPattern, ...] = (
    _p(r"\[insert\s+.*?\]", "error", "Contains placeholder text: [Insert ...]", _I),
    _p(r"\[add\s+.*?\]", "error", "Contains placeholder text: [Add ...]", _I),
    _p(r"\[your\s+.*?\]", "error", "Contains placeholder text: [Your ...]", _I),
    _p(r"\[TODO\]", "error", "Contains TODO placeholder", _I),
    _p(r"lorem\s+ipsum", "error", "Contains Lorem Ipsum placeholder text", _I),
    _p(r"as an ai language model", "error", "Contains AI self-reference", _I),
    _p(r"as an ai assistant", "error", "Contains AI self-reference", _I),
    _p(r"i am an ai", "error", "Contains AI self-reference", _I),
    _p(r"i cannot browse the internet", "error", "Contains AI limitation statement", _I),
    _p(r"my training data", "error", "Contains AI training reference", _I),
    _p(r"\*\*\[.*?\]\*\*", "error", "Contains bracketed placeholder in bold"),
    _p(r"XXX|FIXME", "error", "Contains development placeholder"),
    _p(r"\[\d+\]", "error", "Contains citation markers like [1], [2]"),
)

# Low-quality signals: reported, never blocking.
WARNING_PATTERNS: tuple[ContentPattern, ...] = (
    _p(r"(.{10,})\1{2,}", "warning", "Contains excessive repetition"),
    _p(r"^#{1,6}[ \t]*$", "warning", "Contains empty headings", re.MULTILINE),
    _p(r"https?://example\.com", "warning", "Contains example.com placeholder URL", _I),
    _p(r"\(Word count:\s*\d+\)", "warning", "Contains word count marker", _I),
    _p(r"\| \|---", "warning", "Contains broken markdown table (all on one line)"),
)

CONTENT_PATTERNS: tuple[ContentPattern, ...] = FORBIDDEN_PATTERNS + WARNING_PATTERNS

_CONCLUSION_PATTERNS = [
    re.compile(r"#{1,3}\s*conclusion", _I),
    re.compile(r"#{1,3}\s*final\s+thoughts", _I),
    re.compile(r"#{1,3}\s*summary", _I),
    re.compile(r"#{1,3}\s*wrapping\s+up", _I),
    re.compile(r"#{1,3}\s*key\s+takeaways", _I),
    re.compile(r"in\s+conclusion[,\s]", _I),
    re.compile(r"to\s+sum\s+up[,\s]", _I),
    re.compile(r"to\s+summarize[,\s]", _I),
]


# ── Text metrics ─────────────────────────────────────────────────────────

_FRONTMATTER_RE = re.compile(r"\A---\n(.*?)\n---", re.DOTALL)
_FRONTMATTER_BLOCK_RE = re.compile(r"\A---\n.*?\n---\n?", re.DOTALL)
_TITLE_RE = re.compile(r"^title:[ \t]*[\"']?(.+?)[\"']?[ \t]*$", re.MULTILINE)
_DESCRIPTION_RE = re.compile(r"^description:[ \t]*[\"']?(.+?)[\"']?[ \t]*$", re.MULTILINE)
_CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HEADING_RE = re.compile(r"^#{1,6}[ \t]+.+$", re.MULTILINE)


def parse_frontmatter(content: str) -> tuple[bool, str | None, str | None]:
    """Return (has_frontmatter, title, description)."""
    m = _FRONTMATTER_RE.match(content)
    if not m:
        return False, None, None
    block = m.group(1)
    title = _TITLE_RE.search(block)
    desc = _DESCRIPTION_RE.search(block)
    return True, title.group(1) if title else None, desc.group(1) if desc else None


def strip_frontmatter(content: str) -> str:
    return _FRONTMATTER_BLOCK_RE.sub("", content, count=1)


def count_words(content: str) -> int:
    """Words of body text: front matter, code and markdown syntax removed."""
    text = strip_frontmatter(content)
    text = _CODE_BLOCK_RE.sub("", text)
    text = re.sub(r"`[^`]+`", "", text)
    text = _LINK_RE.sub(r"\1", text)
    text = re.sub(r"#+\s*", "", text)
    text = re.sub(r"[*_~`]", "", text)
    return len(text.split())


def count_headings(content: str) -> int:
    return len(_HEADING_RE.findall(content))


def count_paragraphs(content: str) -> int:
    text = _CODE_BLOCK_RE.sub("", strip_frontmatter(content))
    blocks = (b.strip() for b in re.split(r"\n{2,}", text))
    return sum(1 for b in blocks if b and not b.startswith(("#", "-", "*")))


def count_links(content: str) -> int:
    return len(_LINK_RE.findall(content))


def has_intro(content: str) -> bool:
    """At least 30 words before the first heading."""
    body = strip_frontmatter(content)
    first_heading = re.search(r"^#", body, re.MULTILINE)
    if first_heading and first_heading.start() > 0:
        before = body[: first_heading.start()]
    else:
        before = body[:500]
    return count_words(before) >= 30


def has_conclusion(content: str) -> bool:
    return any(p.search(content) for p in _CONCLUSION_PATTERNS)


# ── Validation ───────────────────────────────────────────────────────────

def validate_content(content: str, content_type: str = DEFAULT_CONTENT_TYPE) -> ContentValidation:
    """Check generated text against the rules for ``content_type``."""
    content = content.replace("\r\n", "\n")
    rules = QUALITY_RULES[get_content_type(content_type)]
    issues: list[ContentIssue] = []

    has_fm, title, description = parse_frontmatter(content)
    metrics = ContentMetrics(
        word_count=count_words(content),
        heading_count=count_headings(content),
        paragraph_count=count_paragraphs(content),
        link_count=count_links(content),
        has_frontmatter=has_fm,
        has_intro=has_intro(content),
        has_conclusion=has_conclusion(content),
    )

    if not has_fm:
        issues.append(ContentIssue("error", "NO_FRONTMATTER", "Missing frontmatter (title, description)"))
    else:
        if not title:
            issues.append(ContentIssue("error", "NO_TITLE", "Missing title in frontmatter"))
        if not description:
            issues.append(
                ContentIssue("warning", "NO_DESCRIPTION", "Missing description in frontmatter (bad for SEO)")
            )

    if metrics.word_count < rules.min_words:
        issues.append(
            ContentIssue(
                "error",
                "LOW_WORD_COUNT",
                f"Word count ({metrics.word_count}) is below minimum ({rules.min_words})",
            )
        )
    if metrics.heading_count < rules.min_headings:
        issues.append(
            ContentIssue(
                "warning",
                "FEW_HEADINGS",
                f"Only {metrics.heading_count} heading(s), recommend at least {rules.min_headings}",
            )
        )
    if metrics.paragraph_count < rules.min_paragraphs:
        issues.append(
            ContentIssue(
                "warning",
                "FEW_PARAGRAPHS",
                f"Only {metrics.paragraph_count} paragraph(s), recommend at least {rules.min_paragraphs}",
            )
        )
    if not metrics.has_intro:
        issues.append(ContentIssue("warning", "NO_INTRO", "Missing introductory paragraph"))
    if rules.require_conclusion and not metrics.has_conclusion:
        issues.append(ContentIssue("warning", "NO_CONCLUSION", "Missing conclusion section"))

    for entry in CONTENT_PATTERNS:
        if entry.pattern.search(content):
            issues.append(ContentIssue(entry.severity, entry.code, entry.message))

    error_count = sum(1 for i in issues if i.type == "error")
    warning_count = len(issues) - error_count
    score = 100 - error_count * 20 - warning_count * 5
    if metrics.word_count >= rules.min_words * 1.5:
        score += 5
    if metrics.heading_count >= rules.min_headings + 2:
        score += 5
    if metrics.link_count >= 3:
        score += 5

    return ContentValidation(
        valid=error_count == 0,
        score=max(0, min(100, score)),
        issues=issues,
        metrics=metrics,
    )
