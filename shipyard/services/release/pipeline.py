"""Release pipeline orchestration.

Control flow for one run:

    gate -> serializer -> build matrix (fan-out / barrier)
         -> package versioned -> upload versioned
         -> publish (registry + release records + attach)
         -> package latest -> upload latest      (push runs only)

Any stage failure stops the stages after it and sends one failure alert.
A run preempted by a newer run on its key ends as ``superseded`` without an
alert.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import uuid4

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err
from shipyard.output.console import ConsoleProtocol
from shipyard.services.release.config import PipelineConfig
from shipyard.services.release.errors import PipelineError, PipelineErrorKind, superseded
from shipyard.services.release.gate import Skip, TriggerEvent, evaluate
from shipyard.services.release.matrix import BuildMatrixRunner
from shipyard.services.release.model import (
    LATEST,
    ArtifactBundle,
    BuildTask,
    ReleaseRecord,
    Run,
    RunOutcome,
)
from shipyard.services.release.notifier import FailureNotifier
from shipyard.services.release.packager import ArchivePackager
from shipyard.services.release.policy import release_policy, updates_latest
from shipyard.services.release.publisher import ReleasePublisher
from shipyard.services.release.serializer import ConcurrencySerializer, serialization_key
from shipyard.services.release.uploader import ArtifactUploader


def new_run_id() -> str:
    return uuid4().hex[:12]


class ReleasePipeline:
    """Runs release pipelines; safe to call ``run`` from several threads."""

    def __init__(
        self,
        *,
        config: PipelineConfig,
        matrix: BuildMatrixRunner,
        packager: ArchivePackager,
        uploader: ArtifactUploader,
        publisher: ReleasePublisher,
        notifier: FailureNotifier,
        console: ConsoleProtocol,
        serializer: ConcurrencySerializer | None = None,
    ) -> None:
        self._config = config
        self._matrix = matrix
        self._packager = packager
        self._uploader = uploader
        self._publisher = publisher
        self._notifier = notifier
        self._console = console
        self._serializer = serializer or ConcurrencySerializer()

    def run(self, event: TriggerEvent, *, run_id: str | None = None) -> RunOutcome:
        repo = self._config.repository
        decision = evaluate(
            event,
            owner=repo.owner,
            release_marker=repo.release_marker,
            mode_input=repo.mode_input,
        )
        if isinstance(decision, Skip):
            self._console.info(f"skipped: {decision.reason}")
            return RunOutcome(state="skipped", run=None, skip_reason=decision.reason)

        run = decision.start(run_id or new_run_id())
        with self._serializer.hold(serialization_key(run.ref), run.run_id) as held:
            if isinstance(held, Err):
                self._console.warning(f"run {run.run_id}: {held.error.pretty()}")
                return RunOutcome(state="superseded", run=run, error=held.error)
            return self._execute(run, held.value.token)

    def _execute(self, run: Run, cancel: CancelToken) -> RunOutcome:
        self._console.header(
            f"Run {run.run_id}: {run.trigger} on {run.ref} ({run.branch_class.name})"
        )
        if run.mode_override:
            self._console.info(f"mode override: {run.mode_override}")

        self._console.header("Build")
        matrix = self._matrix.run(
            self._config.targets,
            mode_override=run.mode_override,
            cancel=cancel,
            run_id=run.run_id,
        )
        bundles = matrix.bundles()
        if isinstance(bundles, Err):
            return self._finish_failed(run, bundles.error, tasks=matrix.tasks)

        progress = _ReleaseProgress()
        ordered = [bundles.value[t.triple] for t in self._config.targets]
        try:
            error = self._release(run, ordered, cancel=cancel, progress=progress)
        except Exception as e:  # noqa: BLE001
            error = PipelineError(
                kind=progress.stage,
                message=f"release stage raised unexpectedly ({progress.stage})",
                hint=repr(e),
            )
        if error is not None:
            return self._finish_failed(
                run,
                error,
                tasks=matrix.tasks,
                records=progress.records,
                uploaded=progress.uploaded,
            )

        self._console.success(f"run {run.run_id} succeeded")
        return RunOutcome(
            state="succeeded",
            run=run,
            tasks=matrix.tasks,
            records=progress.records,
            uploaded=progress.uploaded,
        )

    def _release(
        self,
        run: Run,
        bundles: Sequence[ArtifactBundle],
        *,
        cancel: CancelToken,
        progress: _ReleaseProgress,
    ) -> PipelineError | None:
        """Sequential release stage; entered only after every build succeeded."""
        products = self._config.products

        self._console.header("Release")
        plan = self._publisher.plan(products)
        if isinstance(plan, Err):
            return plan.error
        for change in plan.value.versions:
            state = "changed" if change.changed else "unchanged"
            self._console.print(f"  {state:<9} {change.summary()}")

        # Versioned binaries must be in storage before the registry can
        # advertise their version.
        labels = {p.name: plan.value.label_for(p) for p in products}
        released = {p.name for p in products} - {p.name for p in plan.value.changed_products()}
        progress.stage = "package_failed"
        versioned = self._packager.package_all(bundles, products, labels, run_id=run.run_id)
        if isinstance(versioned, Err):
            return versioned.error
        if cancel.cancelled:
            return superseded(cancel.reason)
        self._console.header("Upload versioned archives")
        progress.stage = "upload_failed"
        receipts = self._uploader.upload(versioned.value, cancel=cancel, keep_existing=released)
        if isinstance(receipts, Err):
            return receipts.error
        progress.uploaded += tuple(r.key for r in receipts.value)

        if cancel.cancelled:
            return superseded(cancel.reason)
        self._console.header("Publish")
        progress.stage = "publish_failed"
        policy = release_policy(run.branch_class)
        records = self._publisher.publish(plan.value, versioned.value, policy, cancel=cancel)
        if isinstance(records, Err):
            return records.error
        progress.records = records.value

        if not updates_latest(run):
            self._console.info("manual run: latest archives left untouched")
            return None

        if cancel.cancelled:
            return superseded(cancel.reason)
        self._console.header("Upload latest archives")
        progress.stage = "package_failed"
        latest = self._packager.package_all(
            bundles, products, {p.name: LATEST for p in products}, run_id=run.run_id
        )
        if isinstance(latest, Err):
            return latest.error
        progress.stage = "upload_failed"
        receipts = self._uploader.upload(latest.value, cancel=cancel)
        if isinstance(receipts, Err):
            return receipts.error
        progress.uploaded += tuple(r.key for r in receipts.value)
        return None

    def _finish_failed(
        self,
        run: Run,
        error: PipelineError,
        *,
        tasks: tuple[BuildTask, ...] = (),
        records: tuple[ReleaseRecord, ...] = (),
        uploaded: tuple[str, ...] = (),
    ) -> RunOutcome:
        if error.kind == "superseded":
            self._console.warning(f"run {run.run_id}: {error.pretty()}")
            return RunOutcome(
                state="superseded",
                run=run,
                error=error,
                tasks=tasks,
                records=records,
                uploaded=uploaded,
            )

        self._console.error(f"run {run.run_id} failed: {error.pretty()}")
        notified = self._notifier.notify(run, error)
        return RunOutcome(
            state="failed",
            run=run,
            error=error,
            tasks=tasks,
            records=records,
            uploaded=uploaded,
            notified=notified,
        )


@dataclass
class _ReleaseProgress:
    records: tuple[ReleaseRecord, ...] = ()
    uploaded: tuple[str, ...] = ()
    # Failure kind reported if the current stage raises.
    stage: PipelineErrorKind = "publish_failed"
