from __future__ import annotations

from pathlib import Path

import pytest

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok
from shipyard.platform.http import HttpError, MockHttpClient
from shipyard.platform.process import ProcessError
from shipyard.services.release import registry as registry_mod
from shipyard.services.release.registry import CratesRegistry

API = "https://crates.io/api/v1"


def _registry(tmp_path: Path, http: MockHttpClient) -> CratesRegistry:
    return CratesRegistry(api_url=API, http=http, workspace_root=tmp_path)


def test_latest_version_reads_max_version(tmp_path: Path) -> None:
    http = MockHttpClient()
    http.set_json(f"{API}/crates/sn_node", {"crate": {"max_version": "0.105.3"}})

    result = _registry(tmp_path, http).latest_version("sn_node")

    assert result == Ok("0.105.3")


def test_unpublished_crate_has_no_version(tmp_path: Path) -> None:
    result = _registry(tmp_path, MockHttpClient()).latest_version("sn_new")

    assert result == Ok(None)


def test_lookup_failure_is_publish_failed(tmp_path: Path) -> None:
    http = MockHttpClient()
    url = f"{API}/crates/sn_node"
    http.set_json(url, HttpError(url=url, status=503, message="unavailable"))

    result = _registry(tmp_path, http).latest_version("sn_node")

    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"


def test_unexpected_payload(tmp_path: Path) -> None:
    http = MockHttpClient()
    http.set_json(f"{API}/crates/sn_node", {"errors": []})

    result = _registry(tmp_path, http).latest_version("sn_node")

    assert isinstance(result, Err)


@pytest.mark.parametrize(("dry_run", "expected"), [(True, True), (False, False)])
def test_publish_command(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, dry_run: bool, expected: bool
) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd: list[str], *, cwd: Path, timeout=None, cancel=None):
        del cwd, timeout, cancel
        calls.append(cmd)
        return Ok("")

    monkeypatch.setattr(registry_mod, "run_process", fake_run)

    result = _registry(tmp_path, MockHttpClient()).publish(
        "sn_node", dry_run=dry_run, cancel=CancelToken()
    )

    assert isinstance(result, Ok)
    assert calls[0][:4] == ["cargo", "publish", "-p", "sn_node"]
    assert ("--dry-run" in calls[0]) is expected


def test_publish_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd: list[str], *, cwd: Path, timeout=None, cancel=None):
        del cwd, timeout, cancel
        return Err(ProcessError(tuple(cmd), 101, "", "error: crate version already uploaded"))

    monkeypatch.setattr(registry_mod, "run_process", fake_run)

    result = _registry(tmp_path, MockHttpClient()).publish(
        "sn_node", dry_run=False, cancel=CancelToken()
    )

    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"
    assert result.error.hint == "error: crate version already uploaded"
