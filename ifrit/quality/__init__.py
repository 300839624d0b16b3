"""Content quality gate and cleanup."""

from ifrit.quality.cleanup import CleanupResult, clean_content
from ifrit.quality.content_validator import (
    QUALITY_RULES,
    ContentIssue,
    ContentValidation,
    get_content_type,
    validate_content,
)

__all__ = [
    "QUALITY_RULES",
    "CleanupResult",
    "ContentIssue",
    "ContentValidation",
    "clean_content",
    "get_content_type",
    "validate_content",
]
