"""Publish saved articles to the site's GitHub repository via the contents API."""

from __future__ import annotations

import base64
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import httpx

from ifrit.jobs.models import GitHubConfig
from ifrit.publish.content_writer import ContentWriter

logger = logging.getLogger(__name__)

POSTS_PATH = "content/posts"


@dataclass
class PublishResult:
    success: bool
    article_url: str | None = None
    commit_url: str | None = None
    error: str | None = None


def github_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "User-Agent": "ifrit-site-builder",
    }


def post_path(slug: str) -> str:
    return f"{POSTS_PATH}/{slug}.md"


@contextmanager
def http_client(client: httpx.Client | None = None, **kwargs) -> Iterator[httpx.Client]:
    """Yield ``client``, or a short-lived client closed on exit."""
    if client is not None:
        yield client
        return
    with httpx.Client(**kwargs) as http:
        yield http


def response_json(response: httpx.Response) -> dict:
    """JSON object body, or an empty dict when the body is not a JSON object."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _api_error(response: httpx.Response) -> str:
    message = response_json(response).get("message")
    return f"GitHub API error {response.status_code}" + (f": {message}" if message else "")


class GitHubPublisher:
    """Creates or updates ``content/posts/<slug>.md`` on the configured branch.

    Never raises for remote failures; they come back as ``PublishResult.error``.
    """

    def __init__(
        self,
        writer: ContentWriter,
        api_url: str = "https://api.github.com",
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ):
        self._writer = writer
        self._api_url = api_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def publish(self, article_slug: str, destination: GitHubConfig, domain: str = "") -> PublishResult:
        try:
            content = self._writer.read(article_slug)
        except OSError as e:
            return PublishResult(success=False, error=f"Saved article not found: {e}")

        branch = destination.branch or "main"
        url = f"{self._api_url}/repos/{destination.owner}/{destination.repo}/contents/{post_path(article_slug)}"
        headers = github_headers(destination.token)
        try:
            existing = self._client.get(url, headers=headers, params={"ref": branch})
            payload = {
                "message": f"Publish {article_slug}",
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "branch": branch,
            }
            if existing.status_code == 200:
                sha = response_json(existing).get("sha")
                if not sha:
                    return PublishResult(success=False, error="GitHub API returned no sha for the existing file")
                payload["sha"] = sha
            elif existing.status_code != 404:
                return PublishResult(success=False, error=_api_error(existing))

            response = self._client.put(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            return PublishResult(success=False, error=f"GitHub request failed: {e}")

        if response.status_code not in (200, 201):
            return PublishResult(success=False, error=_api_error(response))

        commit_url = (response_json(response).get("commit") or {}).get("html_url")
        article_url = f"https://{domain}/{article_slug}" if domain else None
        logger.info("Published %s to %s/%s@%s", article_slug, destination.owner, destination.repo, branch)
        return PublishResult(success=True, article_url=article_url, commit_url=commit_url)
