"""Prompts for site content generation, one template per content type."""

from __future__ import annotations

from ifrit.llm.base import GenerationRequest
from ifrit.quality.content_validator import QUALITY_RULES, get_content_type

_MAX_TOKENS = {
    "homepage": 2000,
    "pillar": 8000,
    "cluster": 4000,
    "about": 2000,
    "author": 1000,
}

_TYPE_BRIEFS = {
    "pillar": (
        "a comprehensive pillar guide that covers the topic end to end and can be "
        "linked from shorter cluster articles"
    ),
    "cluster": "a focused supporting article that goes deep on one sub-topic of its pillar guide",
    "about": "the site's About page: who runs it, what it covers and why readers can trust it",
    "privacy": "the site's Privacy Policy page covering data collection, cookies and advertising partners",
    "terms": "the site's Terms of Service page",
    "contact": "the site's Contact page",
    "disclaimer": "the site's Disclaimer page including an affiliate and advertising disclosure",
    "homepage": "the site's homepage introduction",
}


def max_tokens_for(content_type: str) -> int:
    return _MAX_TOKENS.get(content_type, 4000)


def build_content_prompt(request: GenerationRequest) -> str:
    ctx = request.site_context
    rules = QUALITY_RULES[get_content_type(request.content_type)]
    author = ctx.get("author") or {}
    brief = _TYPE_BRIEFS.get(request.content_type, _TYPE_BRIEFS["cluster"])

    lines = [
        f"You are the lead writer for {ctx.get('siteName') or 'our website'}, a site about "
        f"{ctx.get('niche') or 'general topics'}.",
    ]
    if ctx.get("targetAudience"):
        lines.append(f"Audience: {ctx['targetAudience']}.")
    if author.get("name"):
        lines.append(
            f"Write in the voice of {author['name']}"
            + (f", {author['role']}" if author.get("role") else "")
            + (f" with {author['experience']} of experience" if author.get("experience") else "")
            + "."
        )
    lines += [
        "",
        f"Write {brief}.",
        f"Topic: {request.topic}",
    ]
    if request.parent_pillar:
        lines.append(f"Pillar guide this article supports: {request.parent_pillar}")
    if request.keywords:
        lines.append(f"Target keywords: {', '.join(request.keywords)}")

    lines += [
        "",
        "Output rules:",
        "- Markdown only. Start with YAML front matter between --- lines containing "
        "title and description (description under 160 characters).",
        "- Open with an introduction of at least 40 words before the first heading.",
        f"- At least {rules.min_words} words, {rules.min_headings} or more ## headings "
        f"and {rules.min_paragraphs} or more paragraphs.",
    ]
    if rules.require_conclusion:
        lines.append("- End with a section headed '## Conclusion'.")
    lines += [
        "- Never use placeholders such as [Insert ...], [Your ...] or TODO, and never use "
        "citation markers like [1].",
        "- Do not mention being an AI and do not add a word count.",
        "- Put tables on separate lines using standard markdown table syntax.",
    ]
    return "\n".join(lines)
