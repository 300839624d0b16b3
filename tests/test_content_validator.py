"""Tests for the content quality gate."""

import pytest

from conftest import make_article
from ifrit.quality.content_validator import (
    CONTENT_PATTERNS,
    QUALITY_RULES,
    count_headings,
    count_links,
    count_paragraphs,
    count_words,
    get_content_type,
    has_conclusion,
    has_intro,
    parse_frontmatter,
    validate_content,
)


def _codes(result):
    return {i.code for i in result.issues}


class TestWordCountThreshold:

    def test_below_minimum_is_invalid(self):
        result = validate_content(make_article(words=600), "cluster")
        assert not result.valid
        assert "LOW_WORD_COUNT" in _codes(result)

    def test_same_structure_above_minimum_is_valid(self):
        result = validate_content(make_article(words=1000), "cluster")
        assert result.valid
        assert result.metrics.word_count >= QUALITY_RULES["cluster"].min_words

    def test_pillar_needs_1500_words(self):
        assert not validate_content(make_article(words=1200), "pillar").valid
        assert validate_content(make_article(words=2000), "pillar").valid


class TestPlaceholders:

    @pytest.mark.parametrize("words", [200, 2000, 5000])
    def test_insert_placeholder_always_invalid(self, words):
        text = make_article(words=words, extra="Contact [Insert name here] for details.")
        result = validate_content(text, "pillar")
        assert not result.valid
        assert any(i.code == "FORBIDDEN_CONTENT" and "[Insert" in i.message for i in result.errors)

    @pytest.mark.parametrize(
        "snippet",
        [
            "[Add a photo of the balcony]",
            "[Your Name]",
            "[TODO]",
            "Lorem ipsum dolor sit amet.",
            "As an AI language model, I suggest basil.",
            "I cannot browse the internet for prices.",
            "Based on my training data this works.",
            "**[Product Name]** is great.",
            "FIXME: add numbers",
            "Tomatoes need sun [1] and water [2].",
        ],
    )
    def test_forbidden_patterns(self, snippet):
        result = validate_content(make_article(extra=snippet), "pillar")
        assert not result.valid
        assert "FORBIDDEN_CONTENT" in _codes(result)

    def test_each_matching_pattern_is_one_issue(self):
        text = make_article(extra="[Insert A] and [Insert B] and [Insert C]")
        result = validate_content(text, "pillar")
        assert sum(1 for i in result.errors if "[Insert" in i.message) == 1


class TestWarnings:

    @pytest.mark.parametrize(
        "snippet,message",
        [
            ("##\n", "empty headings"),
            ("See https://example.com/guide for more.", "example.com"),
            ("(Word count: 1500)", "word count marker"),
            ("| A | B | |---|---| | 1 | 2 |", "broken markdown table"),
            ("grow more basil " * 4, "repetition"),
        ],
    )
    def test_warning_patterns_do_not_block(self, snippet, message):
        result = validate_content(make_article(extra=snippet), "pillar")
        assert result.valid
        assert any(message in i.message for i in result.warnings)

    def test_missing_description_is_warning(self):
        result = validate_content(make_article(description=None), "pillar")
        assert result.valid
        assert "NO_DESCRIPTION" in _codes(result)

    def test_missing_conclusion_only_warns_where_required(self):
        text = make_article(words=2000, conclusion=False)
        assert "NO_CONCLUSION" in _codes(validate_content(text, "pillar"))
        assert "NO_CONCLUSION" not in _codes(validate_content(text, "about"))

    def test_few_headings_and_paragraphs(self):
        result = validate_content(make_article(words=2000, headings=1, conclusion=False), "pillar")
        assert result.valid
        assert {"FEW_HEADINGS", "FEW_PARAGRAPHS"} <= _codes(result)


class TestFrontmatter:

    def test_missing_frontmatter_is_error(self):
        result = validate_content(make_article(frontmatter=False), "pillar")
        assert not result.valid
        assert "NO_FRONTMATTER" in _codes(result)

    def test_missing_title_is_error(self):
        result = validate_content(make_article(title=None), "pillar")
        assert not result.valid
        assert "NO_TITLE" in _codes(result)

    def test_parse_frontmatter(self):
        assert parse_frontmatter('---\ntitle: "Hello"\ndescription: World\n---\nBody') == (True, "Hello", "World")
        assert parse_frontmatter("No front matter") == (False, None, None)

    def test_windows_line_endings(self):
        text = make_article().replace("\n", "\r\n")
        assert validate_content(text, "pillar").valid


class TestScore:

    def test_clean_article_scores_high(self):
        result = validate_content(make_article(words=2500, headings=5, links=3), "pillar")
        assert result.valid
        assert result.score == 100

    def test_score_penalties(self):
        # LOW_WORD_COUNT + NO_FRONTMATTER errors, too few headings for the heading bonus
        text = make_article(words=200, headings=2, frontmatter=False)
        result = validate_content(text, "pillar")
        errors, warnings = len(result.errors), len(result.warnings)
        assert result.score == max(0, 100 - 20 * errors - 5 * warnings)

    def test_score_clamped_at_zero(self):
        snippets = " ".join(["[Insert x]", "[Add y]", "[Your z]", "[TODO]", "lorem ipsum", "FIXME", "[3]"])
        result = validate_content(snippets, "pillar")
        assert result.score == 0

    def test_to_dict(self):
        data = validate_content(make_article(), "pillar").to_dict()
        assert set(data) == {"valid", "score", "issues", "metrics"}


class TestMetrics:

    def test_counts(self):
        text = "---\ntitle: T\n---\nIntro text here.\n\n## One\n\nPara [a](http://a.test) and [b](http://b.test).\n\n- list item\n\n### Two\n\n```\ncode words here\n```\n"
        assert count_headings(text) == 2
        assert count_links(text) == 2
        assert count_paragraphs(text) == 2
        assert count_words("---\ntitle: T\n---\n## Big heading\n\nSome **bold** [link](http://x.test) `code`") == 5

    def test_intro_and_conclusion(self):
        assert has_intro(make_article())
        assert not has_intro("---\ntitle: T\n---\n## Heading first\n\nBody")
        assert has_conclusion("## Final Thoughts\n")
        assert has_conclusion("In conclusion, water daily.")
        assert not has_conclusion("Water daily.")

    def test_unknown_type_uses_cluster_rules(self):
        assert get_content_type("homepage") == "cluster"
        assert get_content_type("privacy") == "privacy"

    def test_pattern_table_is_uniform(self):
        assert all(p.severity in ("error", "warning") for p in CONTENT_PATTERNS)
        assert {p.code for p in CONTENT_PATTERNS} == {"FORBIDDEN_CONTENT", "QUALITY_WARNING"}
