"""GitHub content host client."""

import base64
import binascii
import logging
import os

import httpx

from extensions.errors import ExtensionFetchError

from .base import ContentHost

logger = logging.getLogger(__name__)

GITHUB_PREFIX = "github.com/"


def parse_remote(remote: str) -> tuple[str, str]:
    """Split 'github.com/org/repo' into (org, repo).

    Raises:
        ExtensionFetchError: If the remote is not a github.com repository path.
    """
    if not remote.startswith(GITHUB_PREFIX):
        raise ExtensionFetchError(
            f"Only github.com is supported, use a format like "
            f"github.com/jenkins-x/ext-jacoco (got {remote!r})",
            remote=remote,
        )
    parts = remote[len(GITHUB_PREFIX):].strip("/").split("/")
    if len(parts) != 2 or not all(parts):
        raise ExtensionFetchError(f"Cannot parse extension remote {remote!r}", remote=remote)
    return parts[0], parts[1]


class GitHubContentHost(ContentHost):
    """Reads release tags and file contents from GitHub.

    Authentication via environment variables:
        GITHUB_TOKEN: Personal access token (or GH_TOKEN)

    Usage:
        host = GitHubContentHost()
        tag = host.resolve_latest_tag("github.com/org/repo")
        content = host.fetch_file("github.com/org/repo", tag, "extension-definitions.yaml")
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
    ):
        """Initialize GitHub content host.

        Args:
            token: GitHub personal access token (or GITHUB_TOKEN/GH_TOKEN env var)
            base_url: GitHub API base URL (override for GitHub Enterprise)
            timeout: Request timeout in seconds
        """
        self.token = token or os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN", "")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self._headers = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

        if self.token:
            self._headers["Authorization"] = f"Bearer {self.token}"

    @property
    def name(self) -> str:
        return "github"

    def supports(self, remote: str) -> bool:
        return remote.startswith(GITHUB_PREFIX)

    def _get(self, url: str, remote: str, tag: str = "", path: str = "", **params: str) -> dict:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url, headers=self._headers, params=params or None)
        except httpx.RequestError as e:
            raise ExtensionFetchError(
                f"Failed to connect to GitHub for {remote}: {e}",
                remote=remote, tag=tag, path=path,
            ) from e

        if response.status_code == 404:
            target = f"{path} at {tag}" if path else (tag or "latest release")
            raise ExtensionFetchError(
                f"Not found: {target} in {remote}", remote=remote, tag=tag, path=path
            )
        elif response.status_code in (401, 403):
            if "rate limit" in response.text.lower():
                message = "GitHub API rate limit exceeded. Set GITHUB_TOKEN for higher limits."
            else:
                message = "GitHub access denied. For private repos, set GITHUB_TOKEN."
            raise ExtensionFetchError(
                f"{message} ({remote})", remote=remote, tag=tag, path=path
            )
        elif response.status_code != 200:
            raise ExtensionFetchError(
                f"GitHub API error for {remote}: {response.status_code} - {response.text}",
                remote=remote, tag=tag, path=path,
            )
        return response.json()

    def resolve_latest_tag(self, remote: str) -> str:
        org, repo = parse_remote(remote)
        data = self._get(f"{self.base_url}/repos/{org}/{repo}/releases/latest", remote)
        tag = data.get("tag_name")
        if not tag:
            raise ExtensionFetchError(f"No release tag found for {remote}", remote=remote)
        logger.debug("Resolved latest tag of %s to %s", remote, tag)
        return tag

    def fetch_file(self, remote: str, tag: str, path: str) -> bytes:
        org, repo = parse_remote(remote)
        data = self._get(
            f"{self.base_url}/repos/{org}/{repo}/contents/{path.lstrip('/')}",
            remote, tag=tag, path=path, ref=tag,
        )
        content = data.get("content")
        if content is None:
            raise ExtensionFetchError(
                f"No content returned for {path} at {tag} in {remote}",
                remote=remote, tag=tag, path=path,
            )
        try:
            return base64.b64decode(content)
        except (binascii.Error, ValueError) as e:
            raise ExtensionFetchError(
                f"Cannot decode {path} at {tag} in {remote}: {e}",
                remote=remote, tag=tag, path=path,
            ) from e
