"""Pre-flight validation before a job is allowed to start."""

from ifrit.preflight.validators import (
    PreFlightReport,
    ValidationResult,
    all_errors,
    run_preflight_checks,
    validate_github_config,
    validate_provider_keys,
    validate_site_config,
)

__all__ = [
    "PreFlightReport",
    "ValidationResult",
    "all_errors",
    "run_preflight_checks",
    "validate_github_config",
    "validate_provider_keys",
    "validate_site_config",
]
