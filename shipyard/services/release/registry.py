"""Package registry access: published versions and publishing.

Reads go through the registry's HTTP API; publishes go through ``cargo``,
which reads its token from the environment.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import get_str, get_table
from shipyard.platform.http import HttpClient
from shipyard.platform.process import run as run_process
from shipyard.services.release.errors import PipelineError, superseded
from shipyard.services.release.timeouts import PUBLISH_TIMEOUT_SECONDS


class Registry(Protocol):
    def latest_version(self, package: str) -> Result[str | None, PipelineError]:
        """Newest published version, or None if never published."""
        ...

    def publish(
        self, package: str, *, dry_run: bool, cancel: CancelToken
    ) -> Result[None, PipelineError]: ...


class CratesRegistry:
    def __init__(self, *, api_url: str, http: HttpClient, workspace_root: Path) -> None:
        self._api_url = api_url
        self._http = http
        self._root = workspace_root

    def latest_version(self, package: str) -> Result[str | None, PipelineError]:
        url = f"{self._api_url}/crates/{package}"
        result = self._http.get_json(url)
        if isinstance(result, Err):
            if result.error.status == 404:
                return Ok(None)
            return Err(
                PipelineError(
                    kind="publish_failed",
                    message=f"registry lookup failed for {package}",
                    hint=str(result.error),
                )
            )

        crate = get_table(result.value, "crate")
        version = get_str(crate, "max_version") if crate is not None else None
        if version is None:
            return Err(
                PipelineError(
                    kind="publish_failed",
                    message=f"unexpected registry payload for {package}",
                    hint=url,
                )
            )
        return Ok(version)

    def publish(
        self, package: str, *, dry_run: bool, cancel: CancelToken
    ) -> Result[None, PipelineError]:
        cmd = ["cargo", "publish", "-p", package]
        if dry_run:
            cmd.append("--dry-run")

        result = run_process(cmd, cwd=self._root, timeout=PUBLISH_TIMEOUT_SECONDS, cancel=cancel)
        if isinstance(result, Err):
            if result.error.cancelled:
                return Err(superseded(cancel.reason))
            return Err(
                PipelineError(
                    kind="publish_failed",
                    message=f"cargo publish failed for {package}",
                    hint=result.error.stderr.strip() or None,
                )
            )
        return Ok(None)
