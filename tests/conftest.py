"""Pytest configuration and fakes for extlock tests."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from extensions.errors import ExtensionFetchError
from extensions.manifest import (
    DEFINITIONS_FILE,
    ExtensionParameter,
    ExtensionSpec,
    ExtensionWhen,
)
from extensions.store import FileExtensionStore
from integrations.base import ContentHost
from tools.base import ToolResult, ToolStatus
from tools.helm_tool import HelmClient
from tools.shell_tool import ScriptRunner

UUID_A = "0b3c9a4e-2f7e-4c57-9d1e-2b8c6a1f0a01"
UUID_B = "1c4d0b5f-3a8f-4d68-8e2f-3c9d7b2a1b02"
UUID_C = "2d5e1c6a-4b9a-4e79-9f3a-4d0e8c3b2c03"
UUID_D = "3e6f2d7b-5cab-4f8a-8a4b-5e1f9d4c3d04"


class FakeContentHost(ContentHost):
    """In-memory remotes: the last published tag of a remote is its latest release."""

    name = "fake"

    def __init__(self) -> None:
        self.releases: dict[str, list[str]] = {}
        self.files: dict[tuple[str, str, str], bytes] = {}
        self.fetched: list[tuple[str, str, str]] = []

    def supports(self, remote: str) -> bool:
        return True

    def publish(
        self,
        remote: str,
        tag: str,
        definitions: dict | str,
        files: dict[str, str] | None = None,
    ) -> None:
        self.releases.setdefault(remote, []).append(tag)
        if not isinstance(definitions, str):
            definitions = yaml.safe_dump(definitions, sort_keys=False)
        self.files[(remote, tag, DEFINITIONS_FILE)] = definitions.encode("utf-8")
        for path, content in (files or {}).items():
            self.files[(remote, tag, path)] = content.encode("utf-8")

    def resolve_latest_tag(self, remote: str) -> str:
        if not self.releases.get(remote):
            raise ExtensionFetchError(f"No releases for {remote}", remote=remote)
        return self.releases[remote][-1]

    def fetch_file(self, remote: str, tag: str, path: str) -> bytes:
        self.fetched.append((remote, tag, path))
        try:
            return self.files[(remote, tag, path)]
        except KeyError:
            raise ExtensionFetchError(
                f"Not found: {path} at {tag} in {remote}", remote=remote, tag=tag, path=path
            ) from None


class FakeHelm(HelmClient):
    """Records helm calls; charts map a chart reference to a lock document."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []
        self.charts: dict[str, str] = {}
        self.fail_refresh = False

    def refresh_index(self) -> ToolResult:
        self.calls.append("repo update")
        if self.fail_refresh:
            return ToolResult(status=ToolStatus.FAILURE, error="no repositories", returncode=1)
        return ToolResult(status=ToolStatus.SUCCESS)

    def fetch_chart(self, chart, destination, version=None, repo_url=None) -> ToolResult:
        self.calls.append(f"fetch {chart}")
        if chart not in self.charts:
            return ToolResult(status=ToolStatus.FAILURE, error=f"chart {chart} not found")
        target = Path(destination) / chart.rsplit("/", 1)[-1] / "repository"
        target.mkdir(parents=True)
        (target / "extensions-repository.lock.yaml").write_text(self.charts[chart])
        return ToolResult(status=ToolStatus.SUCCESS)


class RecordingRunner(ScriptRunner):
    """Records scripts instead of running them. Scripts in ``failing`` exit 1."""

    def __init__(self) -> None:
        super().__init__()
        self.runs: list[tuple[str, dict[str, str]]] = []
        self.failing: set[str] = set()

    def execute(self, script: str, env: dict[str, str] | None = None) -> ToolResult:
        self.runs.append((script, dict(env or {})))
        if script in self.failing:
            return ToolResult(status=ToolStatus.FAILURE, error="boom", returncode=1)
        return ToolResult(status=ToolStatus.SUCCESS, output="ok\n", returncode=0)


def make_spec(
    name: str,
    uuid: str,
    version: str = "1.0.0",
    namespace: str = "jx",
    children: list[str] | None = None,
    when: tuple[str, ...] = ("install", "upgrade"),
    script: str = "",
    parameters: list[ExtensionParameter] | None = None,
) -> ExtensionSpec:
    return ExtensionSpec(
        name=name,
        namespace=namespace,
        version=version,
        uuid=uuid,
        when=[ExtensionWhen(w) for w in when],
        script=script or f"echo {name}",
        children=list(children or []),
        parameters=list(parameters or []),
    )


@pytest.fixture
def host() -> FakeContentHost:
    return FakeContentHost()


@pytest.fixture
def helm() -> FakeHelm:
    return FakeHelm()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def store(tmp_path: Path) -> FileExtensionStore:
    return FileExtensionStore(tmp_path / "installed")
