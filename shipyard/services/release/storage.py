"""Durable object storage for packaged archives.

Both stores share one contract: ``put(..., overwrite=False)`` is a conditional
create that fails with ``StorageError(kind="exists")`` when the key is taken,
and every object carries the sha256 of its content so a caller can tell an
identical re-upload from a conflicting one.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict, get_str, get_table
from shipyard.platform.process import run as run_process
from shipyard.services.release.timeouts import (
    STORAGE_HEAD_TIMEOUT_SECONDS,
    STORAGE_PUT_TIMEOUT_SECONDS,
)

_DIGEST_METADATA_KEY = "sha256"


@dataclass(frozen=True, slots=True)
class StoredObject:
    key: str
    sha256: str | None


@dataclass(frozen=True, slots=True)
class StorageError:
    kind: Literal["exists", "failed"]
    key: str
    message: str


class ObjectStore(Protocol):
    def head(self, key: str) -> Result[StoredObject | None, StorageError]: ...

    def put(
        self, source: Path, key: str, *, sha256: str, overwrite: bool
    ) -> Result[None, StorageError]: ...

    def describe(self, key: str) -> str:
        """Human-readable location of ``key``."""
        ...


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


class LocalObjectStore:
    """Filesystem-backed store for local runs and tests."""

    def __init__(self, root: Path) -> None:
        self._root = root

    def _path(self, key: str) -> Path:
        return self._root / key

    def describe(self, key: str) -> str:
        return str(self._path(key))

    def head(self, key: str) -> Result[StoredObject | None, StorageError]:
        path = self._path(key)
        if not path.is_file():
            return Ok(None)
        try:
            return Ok(StoredObject(key=key, sha256=sha256_file(path)))
        except OSError as e:
            return Err(StorageError(kind="failed", key=key, message=str(e)))

    def put(
        self, source: Path, key: str, *, sha256: str, overwrite: bool
    ) -> Result[None, StorageError]:
        dest = self._path(key)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.")
        except OSError as e:
            return Err(StorageError(kind="failed", key=key, message=str(e)))

        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                out.write(source.read_bytes())
            if overwrite:
                os.replace(tmp, dest)
                return Ok(None)
            # link() refuses an existing destination atomically.
            os.link(tmp, dest)
        except FileExistsError:
            return Err(StorageError(kind="exists", key=key, message="object already exists"))
        except OSError as e:
            return Err(StorageError(kind="failed", key=key, message=str(e)))
        finally:
            tmp.unlink(missing_ok=True)
        return Ok(None)


class S3ObjectStore:
    """S3 bucket accessed through the ``aws s3api`` CLI.

    Credentials come from the environment the CLI runs in.
    """

    def __init__(
        self,
        *,
        bucket: str,
        workspace_root: Path,
        region: str | None = None,
        acl: str | None = None,
    ) -> None:
        self._bucket = bucket
        self._cwd = workspace_root
        self._region = region
        self._acl = acl

    def describe(self, key: str) -> str:
        return f"s3://{self._bucket}/{key}"

    def _base(self, op: str) -> list[str]:
        cmd = ["aws", "s3api", op, "--bucket", self._bucket]
        if self._region:
            cmd.extend(["--region", self._region])
        return cmd

    def head(self, key: str) -> Result[StoredObject | None, StorageError]:
        result = run_process(
            [*self._base("head-object"), "--key", key],
            cwd=self._cwd,
            timeout=STORAGE_HEAD_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            text = result.error.stderr
            if "Not Found" in text or "404" in text or "NoSuchKey" in text:
                return Ok(None)
            return Err(StorageError(kind="failed", key=key, message=text.strip() or str(result.error)))

        try:
            obj: object = json.loads(result.value or "{}")
        except json.JSONDecodeError as e:
            return Err(StorageError(kind="failed", key=key, message=f"invalid head-object JSON: {e}"))

        data = as_str_dict(obj) or {}
        metadata = get_table(data, "Metadata") or {}
        return Ok(StoredObject(key=key, sha256=get_str(metadata, _DIGEST_METADATA_KEY)))

    def put(
        self, source: Path, key: str, *, sha256: str, overwrite: bool
    ) -> Result[None, StorageError]:
        cmd = [
            *self._base("put-object"),
            "--key",
            key,
            "--body",
            str(source),
            "--metadata",
            f"{_DIGEST_METADATA_KEY}={sha256}",
        ]
        if self._acl:
            cmd.extend(["--acl", self._acl])
        if not overwrite:
            cmd.extend(["--if-none-match", "*"])

        result = run_process(cmd, cwd=self._cwd, timeout=STORAGE_PUT_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            text = result.error.stderr
            if "PreconditionFailed" in text or "412" in text:
                return Err(StorageError(kind="exists", key=key, message="object already exists"))
            return Err(StorageError(kind="failed", key=key, message=text.strip() or str(result.error)))
        return Ok(None)
