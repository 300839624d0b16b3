"""Best-effort cleanup of generated text before it is saved.

Removes citation markers and word-count annotations and repairs markdown
tables that were emitted on a single line. Validation always runs on the
original text; this only shapes what gets written.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_CITATION_RE = re.compile(r"(?:\[\d+\])+")
_WORD_COUNT_RE = re.compile(r"[ \t]*\(Word count:\s*\d+\)[ \t]*", re.IGNORECASE)
# | H1 | H2 | |---|---| | a | b |
_BROKEN_TABLE_LINE_RE = re.compile(r"^\s*\|[^\n]*\|\s*\|\s*:?-{3,}")
_SEPARATOR_CELL_RE = re.compile(r"^:?-+:?$")


@dataclass
class CleanupResult:
    content: str
    changes: list[str] = field(default_factory=list)

    @property
    def was_modified(self) -> bool:
        return bool(self.changes)


def clean_content(content: str) -> CleanupResult:
    changes: list[str] = []
    cleaned = content.replace("\r\n", "\n")

    citations = re.findall(r"\[\d+\]", cleaned)
    if citations:
        cleaned = _CITATION_RE.sub("", cleaned)
        changes.append(f"Removed {len(citations)} citation markers")

    if _WORD_COUNT_RE.search(cleaned):
        cleaned = _WORD_COUNT_RE.sub(" ", cleaned)
        changes.append("Removed word count markers")

    lines = cleaned.split("\n")
    fixed_tables = 0
    for idx, line in enumerate(lines):
        if _BROKEN_TABLE_LINE_RE.match(line):
            fixed = fix_broken_table(line)
            if fixed != line:
                lines[idx] = fixed
                fixed_tables += 1
    if fixed_tables:
        cleaned = "\n".join(lines)
        changes.append(f"Fixed {fixed_tables} broken table(s)")

    # Collapse runs of spaces inside lines (indentation is left alone)
    cleaned = re.sub(r"(?<=\S) {2,}(?=\S)", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)

    return CleanupResult(content=cleaned.strip(), changes=changes)


def fix_broken_table(table_str: str) -> str:
    """Re-flow a one-line markdown table into one row per line.

    Returns the input unchanged when the header/separator structure can't be
    identified.
    """
    parts = [p.strip() for p in table_str.split("|") if p.strip()]
    sep_start = next((i for i, p in enumerate(parts) if _SEPARATOR_CELL_RE.match(p)), -1)
    if sep_start <= 0:
        return table_str

    col_count = 0
    i = sep_start
    while i < len(parts) and _SEPARATOR_CELL_RE.match(parts[i]):
        col_count += 1
        i += 1
    if col_count != sep_start:
        return table_str

    headers = parts[:col_count]
    separators = parts[sep_start : sep_start + col_count]
    data = parts[sep_start + col_count :]

    rows = [headers, separators]
    for j in range(0, len(data), col_count):
        row = data[j : j + col_count]
        row += [""] * (col_count - len(row))
        rows.append(row)

    return "\n".join("| " + " | ".join(row) + " |" for row in rows)
