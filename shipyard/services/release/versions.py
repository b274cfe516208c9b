"""Current package versions, read from each product's manifest.

How versions are bumped is the release tooling's business; the pipeline only
reads the result.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Protocol

from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict, get_str, get_table
from shipyard.services.release.errors import PipelineError
from shipyard.services.release.model import LogicalProduct


class VersionSource(Protocol):
    def version_of(self, product: LogicalProduct) -> Result[str, PipelineError]: ...


def _read_toml(path: Path) -> Result[dict[str, object], PipelineError]:
    try:
        data: object = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        return Err(
            PipelineError(
                kind="publish_failed",
                message=f"cannot read manifest: {path}",
                hint=str(e),
            )
        )
    table = as_str_dict(data)
    if table is None:
        return Err(PipelineError(kind="publish_failed", message=f"invalid manifest: {path}"))
    return Ok(table)


class ManifestVersionSource:
    """Reads ``[package] version``, following ``version.workspace = true``."""

    def __init__(self, workspace_root: Path) -> None:
        self._root = workspace_root

    def version_of(self, product: LogicalProduct) -> Result[str, PipelineError]:
        path = self._root / product.manifest
        data = _read_toml(path)
        if isinstance(data, Err):
            return data

        package = get_table(data.value, "package") or {}
        version = get_str(package, "version")
        if version is not None:
            return Ok(version)

        inherited = get_table(package, "version")
        if inherited is not None and inherited.get("workspace") is True:
            return self._workspace_version()

        return Err(
            PipelineError(
                kind="publish_failed",
                message=f"no version for {product.package}",
                hint=str(path),
            )
        )

    def _workspace_version(self) -> Result[str, PipelineError]:
        path = self._root / "Cargo.toml"
        data = _read_toml(path)
        if isinstance(data, Err):
            return data
        workspace = get_table(data.value, "workspace") or {}
        version = get_str(get_table(workspace, "package") or {}, "version")
        if version is None:
            return Err(
                PipelineError(
                    kind="publish_failed",
                    message="no [workspace.package] version",
                    hint=str(path),
                )
            )
        return Ok(version)
