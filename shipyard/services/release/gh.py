"""Release records hosted on GitHub, driven through the ``gh`` CLI.

The token comes from the environment (``GH_TOKEN``); nothing here handles it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Protocol

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok, Result
from shipyard.platform.process import ProcessError
from shipyard.platform.process import run as run_process
from shipyard.services.release.errors import PipelineError, superseded
from shipyard.services.release.model import ReleaseRecord
from shipyard.services.release.timeouts import GH_TIMEOUT_SECONDS, GH_UPLOAD_TIMEOUT_SECONDS


class ReleaseHost(Protocol):
    def create_release(
        self, record: ReleaseRecord, *, cancel: CancelToken
    ) -> Result[ReleaseRecord, PipelineError]: ...

    def attach(
        self, record: ReleaseRecord, paths: Sequence[Path], *, cancel: CancelToken
    ) -> Result[None, PipelineError]: ...


def _gh_error(error: ProcessError, message: str, cancel: CancelToken) -> PipelineError:
    if error.cancelled:
        return superseded(cancel.reason)
    return PipelineError(
        kind="publish_failed",
        message=message,
        hint=error.stderr.strip() or None,
    )


class GhReleaseHost:
    def __init__(self, *, workspace_root: Path, repo: str, target: str | None = None) -> None:
        self._root = workspace_root
        self._repo = repo
        self._target = target

    def create_release(
        self, record: ReleaseRecord, *, cancel: CancelToken
    ) -> Result[ReleaseRecord, PipelineError]:
        cmd = [
            "gh",
            "release",
            "create",
            record.tag,
            "--repo",
            self._repo,
            "--title",
            record.title,
            "--notes",
            record.notes,
        ]
        if record.tag_enabled:
            if self._target:
                cmd.extend(["--target", self._target])
        elif not record.draft:
            return Err(
                PipelineError(
                    kind="publish_failed",
                    message=f"release {record.tag} must be a draft when tagging is disabled",
                )
            )
        if record.draft:
            # A draft does not create its tag until it is published.
            cmd.append("--draft")

        result = run_process(cmd, cwd=self._root, timeout=GH_TIMEOUT_SECONDS, cancel=cancel)
        if isinstance(result, Err):
            return Err(_gh_error(result.error, f"failed to create release {record.tag}", cancel))

        url = result.value.strip().splitlines()[-1] if result.value.strip() else None
        return Ok(replace(record, url=url))

    def attach(
        self, record: ReleaseRecord, paths: Sequence[Path], *, cancel: CancelToken
    ) -> Result[None, PipelineError]:
        cmd = ["gh", "release", "upload", record.tag, *(str(p) for p in paths), "--repo", self._repo]
        result = run_process(cmd, cwd=self._root, timeout=GH_UPLOAD_TIMEOUT_SECONDS, cancel=cancel)
        if isinstance(result, Err):
            return Err(_gh_error(result.error, f"failed to attach assets to {record.tag}", cancel))
        return Ok(None)
