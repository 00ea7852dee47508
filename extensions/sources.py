"""Lock source resolver - detects where a repository lock lives and loads it."""

import logging
import tempfile
from pathlib import Path
from urllib.parse import urlparse

import httpx

from extensions.errors import ExtensionFetchError
from extensions.manifest import LOCK_FILE, RepositoryLock
from integrations.base import ContentHost
from integrations.github import GITHUB_PREFIX
from tools.helm_tool import HelmClient

logger = logging.getLogger(__name__)

HELM_PREFIX = "helm:"


def detect_source_type(source: str) -> str:
    """Detect the kind of lock source.

    Args:
        source: Lock source reference

    Returns:
        'url', 'github', 'helm' or 'file'
    """
    if source.startswith(("http://", "https://")):
        return "url"
    if source.startswith(GITHUB_PREFIX):
        return "github"
    if source.startswith(HELM_PREFIX):
        return "helm"
    return "file"


def load_lock(
    source: str,
    host: ContentHost | None = None,
    helm: HelmClient | None = None,
    timeout: float = 30.0,
) -> RepositoryLock:
    """Load a repository lock from a file, URL, GitHub repository or Helm chart.

    Accepts:
    - Local path: ./extensions-repository.lock.yaml or ~/locks/team.lock.yaml
    - URL: https://example.com/extensions-repository.lock.yaml
    - GitHub: github.com/org/repo (lock file of the latest release)
    - Helm chart: helm:repo/chart or helm:repo/chart@1.2.3

    Args:
        source: Lock source reference
        host: Content host for GitHub sources
        helm: Helm client for chart sources
        timeout: HTTP timeout for URL sources

    Returns:
        Parsed RepositoryLock

    Raises:
        ExtensionFetchError: If the source cannot be read
        ManifestError: If the lock document is invalid
    """
    kind = detect_source_type(source)
    logger.debug("Loading repository lock from %s (%s)", source, kind)

    if kind == "url":
        return _load_from_url(source, timeout)
    if kind == "github":
        if host is None:
            raise ExtensionFetchError(f"No content host configured to read {source}", remote=source)
        return _load_from_github(source, host)
    if kind == "helm":
        return _load_from_chart(source[len(HELM_PREFIX):], helm or HelmClient())

    path = Path(source).expanduser()
    if not path.exists():
        raise ExtensionFetchError(f"Repository lock {path} does not exist", path=str(path))
    return RepositoryLock.from_yaml(path)


def _load_from_url(url: str, timeout: float) -> RepositoryLock:
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ExtensionFetchError(
            f"Failed to download repository lock from {url}: {e.response.status_code}",
            path=url,
        ) from e
    except httpx.RequestError as e:
        raise ExtensionFetchError(f"Connection error fetching {url}: {e}", path=url) from e
    name = Path(urlparse(url).path).name or url
    return RepositoryLock.from_text(response.content, name)


def _load_from_github(remote: str, host: ContentHost) -> RepositoryLock:
    tag = host.resolve_latest_tag(remote)
    content = host.fetch_file(remote, tag, LOCK_FILE)
    return RepositoryLock.from_text(content, f"{remote}@{tag}/{LOCK_FILE}")


def _load_from_chart(reference: str, helm: HelmClient) -> RepositoryLock:
    chart, _, version = reference.partition("@")
    if not chart:
        raise ExtensionFetchError(f"Invalid chart reference {reference!r}")

    with tempfile.TemporaryDirectory(prefix="extlock-chart-") as tmp_dir:
        result = helm.fetch_chart(chart, Path(tmp_dir), version=version or None)
        if not result:
            raise ExtensionFetchError(
                f"Failed to fetch chart {chart}: {result.error or result.output}",
                remote=chart, tag=version,
            )
        chart_name = chart.rsplit("/", 1)[-1]
        path = Path(tmp_dir) / chart_name / "repository" / LOCK_FILE
        if not path.exists():
            raise ExtensionFetchError(
                f"Chart {chart} does not contain repository/{LOCK_FILE}",
                remote=chart, tag=version, path=f"repository/{LOCK_FILE}",
            )
        return RepositoryLock.from_yaml(path)
