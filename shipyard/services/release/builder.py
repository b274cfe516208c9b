"""Build task execution: run the external build recipe for one target.

Each task builds into its own scratch directory and gets its own copy of the
environment. Its outputs are then staged, minus transient lock/cache files, at
the inter-stage handoff path ``{artifacts_root}/{triple}/release``. A build
inside a pipeline run passes its ``run_id`` and both directories move under
``{run_id}/``, so runs on different refs never share a path.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok, Result
from shipyard.platform.process import run as run_process
from shipyard.services.release.errors import PipelineError, superseded
from shipyard.services.release.model import ArtifactBundle, TargetPlatform
from shipyard.services.release.timeouts import BUILD_TIMEOUT_SECONDS

_STDERR_TAIL_LINES = 20


class Builder(Protocol):
    def build(
        self,
        target: TargetPlatform,
        *,
        env: Mapping[str, str],
        cancel: CancelToken,
        run_id: str | None = None,
    ) -> Result[ArtifactBundle, PipelineError]: ...


def handoff_dir(artifacts_root: Path, target: TargetPlatform) -> Path:
    return artifacts_root / target.triple / "release"


def _collect_files(base_dir: Path, *, exclude_names: set[str]) -> list[str]:
    out: list[str] = []
    for p in sorted(base_dir.rglob("*")):
        if p.is_dir():
            continue
        rel = p.relative_to(base_dir)
        if any(part in exclude_names for part in rel.parts):
            continue
        out.append(rel.as_posix())
    return out


def stage_bundle(
    *,
    target: TargetPlatform,
    source: Path,
    artifacts_root: Path,
    exclude: Sequence[str],
) -> Result[ArtifactBundle, PipelineError]:
    """Copy build outputs into the handoff directory as an ArtifactBundle."""
    files = _collect_files(source, exclude_names=set(exclude)) if source.is_dir() else []
    if not files:
        return Err(
            PipelineError(
                kind="build_task_failed",
                message=f"{target.triple}: build produced no artifacts",
                hint=str(source),
            )
        )

    dest = handoff_dir(artifacts_root, target)
    shutil.rmtree(dest, ignore_errors=True)
    for rel in files:
        out = dest / rel
        out.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source / rel, out)

    return Ok(ArtifactBundle(target=target, root=dest, files=tuple(files)))


def load_bundle(
    *,
    target: TargetPlatform,
    artifacts_root: Path,
    exclude: Sequence[str],
) -> Result[ArtifactBundle, PipelineError]:
    """Read a bundle already staged at the handoff path (e.g. a CI download)."""
    root = handoff_dir(artifacts_root, target)
    files = _collect_files(root, exclude_names=set(exclude)) if root.is_dir() else []
    if not files:
        return Err(
            PipelineError(
                kind="package_failed",
                message=f"no staged artifacts for {target.triple}",
                hint=str(root),
            )
        )
    return Ok(ArtifactBundle(target=target, root=root, files=tuple(files)))


class CommandBuilder:
    """Runs a templated build command (``{target}``, ``{out_dir}``) per target."""

    def __init__(
        self,
        *,
        workspace_root: Path,
        command: Sequence[str],
        artifacts_root: Path,
        work_root: Path,
        exclude: Sequence[str],
    ) -> None:
        self._workspace_root = workspace_root
        self._command = tuple(command)
        self._artifacts_root = artifacts_root
        self._work_root = work_root
        self._exclude = tuple(exclude)

    def build(
        self,
        target: TargetPlatform,
        *,
        env: Mapping[str, str],
        cancel: CancelToken,
        run_id: str | None = None,
    ) -> Result[ArtifactBundle, PipelineError]:
        work_root, artifacts_root = self._work_root, self._artifacts_root
        if run_id is not None:
            work_root, artifacts_root = work_root / run_id, artifacts_root / run_id

        scratch = work_root / target.triple
        shutil.rmtree(scratch, ignore_errors=True)
        scratch.mkdir(parents=True)

        cmd = [part.format(target=target.triple, out_dir=str(scratch)) for part in self._command]
        child_env = {**os.environ, **env, "SHIPYARD_TARGET": target.triple}

        result = run_process(
            cmd,
            cwd=self._workspace_root,
            env=child_env,
            timeout=BUILD_TIMEOUT_SECONDS,
            cancel=cancel,
        )
        if isinstance(result, Err):
            e = result.error
            if e.cancelled:
                return Err(superseded(cancel.reason))
            tail = "\n".join(e.stderr.strip().splitlines()[-_STDERR_TAIL_LINES:])
            return Err(
                PipelineError(
                    kind="build_task_failed",
                    message=f"{target.triple}: {e}",
                    hint=tail or None,
                )
            )

        return stage_bundle(
            target=target,
            source=scratch,
            artifacts_root=artifacts_root,
            exclude=self._exclude,
        )
