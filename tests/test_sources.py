from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from conftest import UUID_A, make_spec
from extensions.errors import ExtensionFetchError
from extensions.manifest import LOCK_FILE, RepositoryLock
from extensions.sources import detect_source_type, load_lock


@pytest.fixture
def lock() -> RepositoryLock:
    return RepositoryLock(version="4", extensions=[make_spec("hello", UUID_A)])


@pytest.mark.parametrize(
    ("source", "kind"),
    [
        ("https://example.com/repo.lock.yaml", "url"),
        ("github.com/jx/extensions", "github"),
        ("helm:jx/jx-extensions@1.0.0", "helm"),
        ("./extensions-repository.lock.yaml", "file"),
    ],
)
def test_detect_source_type(source, kind):
    assert detect_source_type(source) == kind


def test_load_from_file_expands_home(tmp_path: Path, monkeypatch, lock):
    monkeypatch.setenv("HOME", str(tmp_path))
    lock.to_yaml(tmp_path / LOCK_FILE)

    assert load_lock(f"~/{LOCK_FILE}") == lock


def test_missing_file(tmp_path: Path):
    with pytest.raises(ExtensionFetchError, match="does not exist"):
        load_lock(str(tmp_path / "nope.yaml"))


def test_load_from_github_latest_release(host, lock):
    host.publish("github.com/jx/extensions", "v4.0.0", {"extensions": []}, {LOCK_FILE: lock.to_yaml_text()})

    assert load_lock("github.com/jx/extensions", host=host) == lock


def test_github_source_needs_a_host():
    with pytest.raises(ExtensionFetchError):
        load_lock("github.com/jx/extensions")


def test_load_from_chart(helm, lock):
    helm.charts["jx/jx-extensions"] = lock.to_yaml_text()

    assert load_lock("helm:jx/jx-extensions", helm=helm) == lock
    assert helm.calls == ["fetch jx/jx-extensions"]


def test_missing_chart(helm):
    with pytest.raises(ExtensionFetchError, match="jx/nope"):
        load_lock("helm:jx/nope", helm=helm)


def test_load_from_url(monkeypatch, lock):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/ok.lock.yaml":
            return httpx.Response(200, text=lock.to_yaml_text())
        return httpx.Response(500)

    real_client = httpx.Client
    monkeypatch.setattr(
        httpx, "Client", lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs)
    )

    assert load_lock("https://example.com/ok.lock.yaml") == lock
    with pytest.raises(ExtensionFetchError, match="500"):
        load_lock("https://example.com/broken.lock.yaml")
