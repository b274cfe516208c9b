"""Build matrix: one isolated build task per target, joined by a barrier.

Workers share nothing but the read-only source tree and the mode override.
A failing task does not stop its siblings; the stage reports failure at the
barrier once every task is terminal.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.services.release.builder import Builder
from shipyard.services.release.errors import PipelineError, superseded
from shipyard.services.release.model import ArtifactBundle, BuildTask, TargetPlatform


def build_env(mode_env: str, mode_override: str) -> dict[str, str]:
    """Run-scoped variables every build worker receives."""
    return {mode_env: mode_override}


@dataclass(frozen=True, slots=True)
class MatrixResult:
    tasks: tuple[BuildTask, ...]
    cancelled: bool = False
    cancel_reason: str | None = None

    @property
    def failed(self) -> tuple[BuildTask, ...]:
        return tuple(t for t in self.tasks if t.status == "failed")

    def bundles(self) -> Result[dict[str, ArtifactBundle], PipelineError]:
        """All bundles keyed by triple, or the stage failure."""
        if self.cancelled:
            return Err(superseded(self.cancel_reason))

        failed = self.failed
        if failed:
            triples = ", ".join(t.target.triple for t in failed)
            first = failed[0]
            return Err(
                PipelineError(
                    kind="build_task_failed",
                    message=f"build failed for: {triples}",
                    hint=first.detail,
                )
            )

        out: dict[str, ArtifactBundle] = {}
        for t in self.tasks:
            if t.bundle is not None:
                out[t.target.triple] = t.bundle
        return Ok(out)


class BuildMatrixRunner:
    def __init__(
        self,
        builder: Builder,
        console: ConsoleProtocol,
        *,
        mode_env: str,
        max_workers: int | None = None,
    ) -> None:
        self._builder = builder
        self._console = console
        self._mode_env = mode_env
        self._max_workers = max_workers

    def run(
        self,
        targets: Sequence[TargetPlatform],
        *,
        mode_override: str,
        cancel: CancelToken,
        run_id: str | None = None,
    ) -> MatrixResult:
        env = build_env(self._mode_env, mode_override)
        failure = threading.Event()

        def task(target: TargetPlatform) -> BuildTask:
            if cancel.cancelled:
                return BuildTask(target=target, status="failed", detail=cancel.reason)

            self._console.info(f"build {target.triple}: running")
            result = self._builder.build(target, env=dict(env), cancel=cancel, run_id=run_id)
            if isinstance(result, Err):
                failure.set()
                self._console.error(f"build {target.triple}: {result.error.pretty()}")
                return BuildTask(target=target, status="failed", detail=result.error.pretty())

            self._console.success(f"build {target.triple}: {len(result.value.files)} file(s)")
            return BuildTask(target=target, status="succeeded", bundle=result.value)

        workers = self._max_workers or max(1, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="build") as pool:
            futures = [pool.submit(task, t) for t in targets]
            wait(futures)

        tasks: list[BuildTask] = []
        for target, fut in zip(targets, futures, strict=True):
            exc = fut.exception()
            if exc is not None:
                failure.set()
                self._console.error(f"build {target.triple}: {exc!r}")
                tasks.append(BuildTask(target=target, status="failed", detail=repr(exc)))
            else:
                tasks.append(fut.result())

        if failure.is_set() and not cancel.cancelled:
            self._console.error(f"{sum(1 for t in tasks if t.status == 'failed')} build task(s) failed")

        return MatrixResult(
            tasks=tuple(tasks),
            cancelled=cancel.cancelled,
            cancel_reason=cancel.reason,
        )


def ci_matrix(targets: Sequence[TargetPlatform]) -> dict[str, list[dict[str, str]]]:
    """CI ``strategy.matrix`` document with one entry per target."""
    return {"include": [{"os": t.runner, "target": t.triple} for t in targets]}
