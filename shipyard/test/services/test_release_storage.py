from __future__ import annotations

import json
from pathlib import Path

import pytest

from shipyard.core.result import Err, Ok
from shipyard.platform.process import ProcessError
from shipyard.services.release import storage as storage_mod
from shipyard.services.release.storage import LocalObjectStore, S3ObjectStore, sha256_file


def _file(tmp_path: Path, name: str, content: bytes) -> Path:
    path = tmp_path / name
    path.write_bytes(content)
    return path


class TestLocalObjectStore:
    def test_head_missing(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "store")
        assert store.head("safenode/x/1.0.0.zip") == Ok(None)

    def test_conditional_put_then_head(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "store")
        src = _file(tmp_path, "a.zip", b"one")
        digest = sha256_file(src)

        put = store.put(src, "safenode/x/1.0.0.zip", sha256=digest, overwrite=False)
        head = store.head("safenode/x/1.0.0.zip")

        assert isinstance(put, Ok)
        assert isinstance(head, Ok)
        assert head.value is not None
        assert head.value.sha256 == digest

    def test_conditional_put_refuses_existing_and_keeps_content(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "store")
        first = _file(tmp_path, "a.zip", b"one")
        second = _file(tmp_path, "b.zip", b"two")
        store.put(first, "k.zip", sha256=sha256_file(first), overwrite=False)

        result = store.put(second, "k.zip", sha256=sha256_file(second), overwrite=False)

        assert isinstance(result, Err)
        assert result.error.kind == "exists"
        assert (tmp_path / "store" / "k.zip").read_bytes() == b"one"

    def test_overwrite_replaces(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "store")
        first = _file(tmp_path, "a.zip", b"one")
        second = _file(tmp_path, "b.zip", b"two")
        store.put(first, "latest.zip", sha256=sha256_file(first), overwrite=True)

        result = store.put(second, "latest.zip", sha256=sha256_file(second), overwrite=True)

        assert isinstance(result, Ok)
        assert (tmp_path / "store" / "latest.zip").read_bytes() == b"two"

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "store")
        src = _file(tmp_path, "a.zip", b"one")
        store.put(src, "p/k.zip", sha256=sha256_file(src), overwrite=False)
        store.put(src, "p/k.zip", sha256=sha256_file(src), overwrite=False)

        assert sorted(p.name for p in (tmp_path / "store" / "p").iterdir()) == ["k.zip"]


class TestS3ObjectStore:
    def _store(self, tmp_path: Path) -> S3ObjectStore:
        return S3ObjectStore(
            bucket="sn-node", workspace_root=tmp_path, region="eu-west-2", acl="public-read"
        )

    def test_head_reads_digest_metadata(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        calls: list[list[str]] = []

        def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
            del cwd, timeout
            calls.append(cmd)
            return Ok(json.dumps({"ContentLength": 3, "Metadata": {"sha256": "abc"}}))

        monkeypatch.setattr(storage_mod, "run_process", fake_run)

        result = self._store(tmp_path).head("safenode/x/1.0.0.zip")

        assert isinstance(result, Ok)
        assert result.value is not None
        assert result.value.sha256 == "abc"
        assert calls[0][:3] == ["aws", "s3api", "head-object"]
        assert "--region" in calls[0]

    def test_head_not_found(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
            del cwd, timeout
            return Err(
                ProcessError(
                    tuple(cmd),
                    254,
                    "",
                    "An error occurred (404) when calling the HeadObject operation: Not Found",
                )
            )

        monkeypatch.setattr(storage_mod, "run_process", fake_run)

        assert self._store(tmp_path).head("k") == Ok(None)

    def test_conditional_put_uses_if_none_match(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        calls: list[list[str]] = []

        def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
            del cwd, timeout
            calls.append(cmd)
            return Ok("{}")

        monkeypatch.setattr(storage_mod, "run_process", fake_run)
        store = self._store(tmp_path)
        src = _file(tmp_path, "a.zip", b"one")

        assert isinstance(store.put(src, "v.zip", sha256="d1", overwrite=False), Ok)
        assert isinstance(store.put(src, "latest.zip", sha256="d2", overwrite=True), Ok)

        versioned, latest = calls
        assert versioned[versioned.index("--if-none-match") + 1] == "*"
        assert versioned[versioned.index("--metadata") + 1] == "sha256=d1"
        assert versioned[versioned.index("--acl") + 1] == "public-read"
        assert "--if-none-match" not in latest

    def test_precondition_failed_maps_to_exists(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
            del cwd, timeout
            return Err(
                ProcessError(
                    tuple(cmd),
                    254,
                    "",
                    "An error occurred (PreconditionFailed) when calling the PutObject operation",
                )
            )

        monkeypatch.setattr(storage_mod, "run_process", fake_run)
        src = _file(tmp_path, "a.zip", b"one")

        result = self._store(tmp_path).put(src, "v.zip", sha256="d", overwrite=False)

        assert isinstance(result, Err)
        assert result.error.kind == "exists"

    def test_other_failures_are_failed(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None):
            del cwd, timeout
            return Err(ProcessError(tuple(cmd), 255, "", "Unable to locate credentials"))

        monkeypatch.setattr(storage_mod, "run_process", fake_run)
        src = _file(tmp_path, "a.zip", b"one")

        result = self._store(tmp_path).put(src, "v.zip", sha256="d", overwrite=False)

        assert isinstance(result, Err)
        assert result.error.kind == "failed"
        assert "credentials" in result.error.message

    def test_describe(self, tmp_path: Path) -> None:
        assert self._store(tmp_path).describe("a/b.zip") == "s3://sn-node/a/b.zip"
