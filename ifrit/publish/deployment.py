"""Best-effort checks that published content actually landed.

Nothing here affects job state: callers log the outcome.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import httpx
from bs4 import BeautifulSoup

from ifrit.jobs.models import GitHubConfig
from ifrit.publish.github import github_headers, http_client, post_path, response_json

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    success: bool
    sha: str | None = None
    error: str | None = None


@dataclass
class SeoCheck:
    has_title: bool = False
    has_description: bool = False
    has_canonical: bool = False
    title: str | None = None


@dataclass
class PageCheck:
    url: str
    accessible: bool
    status_code: int
    response_time_ms: int
    has_content: bool
    content_length: int | None = None
    seo: SeoCheck = field(default_factory=SeoCheck)
    error: str | None = None


@dataclass
class DeploymentWait:
    success: bool
    attempts: int
    final_check: PageCheck


def verify_github_publish(
    destination: GitHubConfig,
    path: str,
    api_url: str = "https://api.github.com",
    client: httpx.Client | None = None,
) -> VerifyResult:
    """Confirm ``path`` exists on the destination repository."""
    url = f"{api_url.rstrip('/')}/repos/{destination.owner}/{destination.repo}/contents/{path}"
    try:
        with http_client(client, timeout=15.0) as http:
            response = http.get(url, headers=github_headers(destination.token), params={"ref": destination.branch})
    except httpx.HTTPError as e:
        return VerifyResult(success=False, error=str(e))
    if response.status_code == 200:
        return VerifyResult(success=True, sha=response_json(response).get("sha"))
    if response.status_code == 404:
        return VerifyResult(success=False, error="File not found in repository")
    return VerifyResult(success=False, error=f"GitHub API error: {response.status_code}")


def _seo(html: str) -> SeoCheck:
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.string.strip() if soup.title and soup.title.string else None
    return SeoCheck(
        has_title=bool(title),
        has_description=soup.find("meta", attrs={"name": "description"}) is not None,
        has_canonical=soup.find("link", rel="canonical") is not None,
        title=title,
    )


def check_page_deployment(url: str, timeout: float = 10.0, client: httpx.Client | None = None) -> PageCheck:
    """Fetch ``url`` and report reachability, content presence and basic SEO tags."""
    start = time.monotonic()
    try:
        with http_client(client, follow_redirects=True, timeout=timeout) as http:
            response = http.get(url, headers={"User-Agent": "ifrit-deploy-checker/1.0"})
    except httpx.HTTPError as e:
        return PageCheck(
            url=url,
            accessible=False,
            status_code=0,
            response_time_ms=int((time.monotonic() - start) * 1000),
            has_content=False,
            error=str(e) or e.__class__.__name__,
        )

    elapsed = int((time.monotonic() - start) * 1000)
    if not 200 <= response.status_code < 400:
        return PageCheck(
            url=url,
            accessible=False,
            status_code=response.status_code,
            response_time_ms=elapsed,
            has_content=False,
            error=f"HTTP {response.status_code}",
        )

    text = response.text
    return PageCheck(
        url=url,
        accessible=True,
        status_code=response.status_code,
        response_time_ms=elapsed,
        has_content=len(text) > 100,
        content_length=len(text),
        seo=_seo(text),
    )


def wait_for_deployment(
    url: str,
    max_attempts: int = 10,
    delay: float = 5.0,
    timeout: float = 10.0,
    client: httpx.Client | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> DeploymentWait:
    """Poll ``url`` until it serves content or attempts run out."""
    with http_client(client, follow_redirects=True, timeout=timeout) as http:
        check = None
        for attempt in range(1, max_attempts + 1):
            check = check_page_deployment(url, timeout=timeout, client=http)
            if check.accessible and check.has_content:
                return DeploymentWait(success=True, attempts=attempt, final_check=check)
            if attempt < max_attempts:
                sleep(delay)
        if check is None:
            check = check_page_deployment(url, timeout=timeout, client=http)
    return DeploymentWait(success=False, attempts=max_attempts, final_check=check)


class DeploymentVerifier:
    """Post-publish check used by the runner; returns a warning message or None."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        client: httpx.Client | None = None,
        timeout: float = 15.0,
    ):
        self._api_url = api_url
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def verify(self, article_slug: str, destination: GitHubConfig) -> str | None:
        result = verify_github_publish(
            destination, post_path(article_slug), api_url=self._api_url, client=self._client
        )
        if result.success:
            return None
        return result.error or "GitHub verification failed"
