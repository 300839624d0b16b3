"""Pre-flight checks run before a job starts: site config, provider keys, GitHub access.

Each check returns must-fix ``errors`` and should-fix ``warnings``
separately; a job may only start when all three have no errors.
"""

from __future__ import annotations

import logging
import re

import httpx
from pydantic import BaseModel, Field

from ifrit.jobs.models import GitHubConfig, SiteConfig
from ifrit.providers.rate_limits import RATE_LIMITS
from ifrit.publish.github import github_headers, http_client, response_json

logger = logging.getLogger(__name__)

_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-_.]+\.[a-zA-Z]{2,}$")
MIN_KEY_LENGTH = 10
PREFERRED_PROVIDERS = ("perplexity", "gemini")


class ValidationResult(BaseModel):
    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PreFlightReport(BaseModel):
    overall: bool
    config: ValidationResult
    providers: ValidationResult
    github: ValidationResult
    summary: str


def _result(errors: list[str], warnings: list[str]) -> ValidationResult:
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_site_config(config: SiteConfig) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    domain = config.domain.strip()
    if not domain:
        errors.append("Domain is required")
    elif not _DOMAIN_RE.match(domain):
        errors.append("Invalid domain format")

    if not config.site_name.strip():
        errors.append("Site name is required")
    elif len(config.site_name) > 100:
        warnings.append("Site name is very long (>100 chars)")

    if not config.niche.strip():
        errors.append("Niche is required")

    if not config.pillars:
        errors.append("At least one pillar topic is required")
    else:
        empty = sum(1 for p in config.pillars if not p.strip())
        if empty:
            errors.append(f"{empty} pillar(s) are empty")
        normalized = [p.strip().lower() for p in config.pillars if p.strip()]
        if len(set(normalized)) != len(normalized):
            warnings.append("Duplicate pillar topics found")
        if len(config.pillars) > 10:
            warnings.append("More than 10 pillars may take a very long time")

    if not config.author.name.strip():
        errors.append("Author name is required")
    if not config.author.role.strip():
        warnings.append("Author role is recommended for E-E-A-T")

    if config.clusters_per_pillar < 1:
        errors.append("Clusters per pillar must be at least 1")
    elif config.clusters_per_pillar > 10:
        warnings.append("More than 10 clusters per pillar may take a very long time")

    return _result(errors, warnings)


def validate_provider_keys(keys: dict[str, list[str]]) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    configured = [p for p, provider_keys in keys.items() if provider_keys]
    if not configured:
        errors.append("At least one AI provider key is required")
    elif len(configured) == 1:
        warnings.append("Only 1 provider configured. Recommend adding backup provider for failover.")

    for provider in configured:
        if provider not in RATE_LIMITS:
            warnings.append(f"Unknown provider '{provider}' will never be scheduled")
        if any(not key or len(key.strip()) < MIN_KEY_LENGTH for key in keys[provider]):
            errors.append(f"Invalid key format for {provider}")

    if configured and not any(p in configured for p in PREFERRED_PROVIDERS):
        warnings.append("Perplexity or Gemini recommended for best content quality")

    return _result(errors, warnings)


def validate_github_config(
    config: GitHubConfig,
    api_url: str = "https://api.github.com",
    client: httpx.Client | None = None,
) -> ValidationResult:
    """Check the repository exists, is writable and is not archived."""
    errors: list[str] = []
    warnings: list[str] = []

    if not config.token.strip():
        return _result(["GitHub token is required"], warnings)
    if not config.owner.strip():
        errors.append("GitHub owner/organization is required")
    if not config.repo.strip():
        errors.append("GitHub repository name is required")
    if errors:
        return _result(errors, warnings)

    base = f"{api_url.rstrip('/')}/repos/{config.owner}/{config.repo}"
    headers = github_headers(config.token)
    try:
        with http_client(client, timeout=15.0) as http:
            response = http.get(base, headers=headers)
            if response.status_code == 401:
                errors.append("GitHub token is invalid or expired")
            elif response.status_code == 403:
                errors.append("GitHub token lacks permission to access this repository")
            elif response.status_code == 404:
                errors.append(f"Repository {config.owner}/{config.repo} not found")
            elif not response.is_success:
                errors.append(f"GitHub API error: {response.status_code}")
            else:
                data = response_json(response)
                if not (data.get("permissions") or {}).get("push"):
                    errors.append("GitHub token lacks push permission to this repository")
                if data.get("archived"):
                    errors.append("Repository is archived and cannot be modified")
                if config.branch and config.branch not in ("main", "master"):
                    branch = http.get(f"{base}/branches/{config.branch}", headers=headers)
                    if branch.status_code == 404:
                        warnings.append(f"Branch '{config.branch}' not found, will be created")
    except httpx.HTTPError as e:
        errors.append(f"Failed to connect to GitHub: {e}")

    return _result(errors, warnings)


def run_preflight_checks(
    config: SiteConfig,
    provider_keys: dict[str, list[str]],
    github_config: GitHubConfig,
    api_url: str = "https://api.github.com",
    client: httpx.Client | None = None,
) -> PreFlightReport:
    config_result = validate_site_config(config)
    provider_result = validate_provider_keys(provider_keys)
    github_result = validate_github_config(github_config, api_url=api_url, client=client)

    error_count = sum(len(r.errors) for r in (config_result, provider_result, github_result))
    warning_count = sum(len(r.warnings) for r in (config_result, provider_result, github_result))
    overall = error_count == 0

    if not overall:
        summary = f"{error_count} error(s) must be fixed before building"
    elif warning_count:
        summary = f"Ready to build with {warning_count} warning(s)"
    else:
        summary = "All pre-flight checks passed. Ready to build!"
    logger.info("Pre-flight: %s", summary)

    return PreFlightReport(
        overall=overall,
        config=config_result,
        providers=provider_result,
        github=github_result,
        summary=summary,
    )


def all_errors(report: PreFlightReport) -> list[str]:
    """Errors prefixed with the check they came from."""
    return (
        [f"Config: {e}" for e in report.config.errors]
        + [f"Provider: {e}" for e in report.providers.errors]
        + [f"GitHub: {e}" for e in report.github.errors]
    )
