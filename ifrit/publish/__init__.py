"""Saving, publishing and deployment checks for generated articles."""

from ifrit.publish.content_writer import ContentWriter, generate_slug
from ifrit.publish.deployment import (
    DeploymentVerifier,
    PageCheck,
    check_page_deployment,
    verify_github_publish,
    wait_for_deployment,
)
from ifrit.publish.github import GitHubPublisher, PublishResult

__all__ = [
    "ContentWriter",
    "DeploymentVerifier",
    "GitHubPublisher",
    "PageCheck",
    "PublishResult",
    "check_page_deployment",
    "generate_slug",
    "verify_github_publish",
    "wait_for_deployment",
]
