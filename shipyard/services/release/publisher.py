"""Release publisher: registry publish and release records for changed packages.

A package has changed when the version in its manifest differs from the
registry's newest published version. Only changed packages are published and
get a release record; with no changes the stage is a no-op.
"""

from __future__ import annotations

from collections.abc import Sequence

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.services.release.errors import PipelineError, superseded
from shipyard.services.release.gh import ReleaseHost
from shipyard.services.release.model import (
    LogicalProduct,
    PackagedArchive,
    ReleasePolicy,
    ReleaseRecord,
    VersionChange,
    VersionPlan,
)
from shipyard.services.release.registry import Registry
from shipyard.services.release.uploader import ArtifactUploader
from shipyard.services.release.versions import VersionSource


def render_notes(change: VersionChange, products: Sequence[LogicalProduct]) -> str:
    binaries = ", ".join(p.name for p in products if p.package == change.package)
    lines = [
        f"## {change.package} {change.current}",
        "",
        f"- version: {change.previous or 'unreleased'} -> {change.current}",
    ]
    if binaries:
        lines.append(f"- binaries: {binaries}")
    return "\n".join(lines) + "\n"


class ReleasePublisher:
    def __init__(
        self,
        *,
        versions: VersionSource,
        registry: Registry,
        host: ReleaseHost,
        uploader: ArtifactUploader,
        console: ConsoleProtocol,
    ) -> None:
        self._versions = versions
        self._registry = registry
        self._host = host
        self._uploader = uploader
        self._console = console

    def plan(self, products: Sequence[LogicalProduct]) -> Result[VersionPlan, PipelineError]:
        """Resolve current and published versions for every package."""
        changes: list[VersionChange] = []
        seen: set[str] = set()
        for product in products:
            if product.package in seen:
                continue
            seen.add(product.package)

            current = self._versions.version_of(product)
            if isinstance(current, Err):
                return current
            previous = self._registry.latest_version(product.package)
            if isinstance(previous, Err):
                return previous
            changes.append(
                VersionChange(
                    package=product.package,
                    previous=previous.value,
                    current=current.value,
                )
            )

        return Ok(VersionPlan(versions=tuple(changes), products=tuple(products)))

    def publish(
        self,
        plan: VersionPlan,
        archives: Sequence[PackagedArchive],
        policy: ReleasePolicy,
        *,
        cancel: CancelToken,
    ) -> Result[tuple[ReleaseRecord, ...], PipelineError]:
        changed = plan.changed
        if not changed:
            self._console.info("no package changed version; nothing to publish")
            return Ok(())

        mode = "registry" if policy.publish_to_registry else "dry-run"
        for change in changed:
            if cancel.cancelled:
                return Err(superseded(cancel.reason))
            self._console.info(f"publish {change.summary()} ({mode})")
            result = self._registry.publish(
                change.package,
                dry_run=not policy.publish_to_registry,
                cancel=cancel,
            )
            if isinstance(result, Err):
                return result

        records: list[ReleaseRecord] = []
        for change in changed:
            if cancel.cancelled:
                return Err(superseded(cancel.reason))

            record = ReleaseRecord(
                tag=change.tag,
                title=f"{change.package} v{change.current}",
                notes=render_notes(change, plan.products),
                draft=policy.draft,
                tag_enabled=policy.tag_enabled,
            )
            created = self._host.create_release(record, cancel=cancel)
            if isinstance(created, Err):
                return created
            kind = "draft release" if record.draft else "release"
            self._console.success(f"{kind} {record.tag} created")

            names = {p.name for p in plan.products if p.package == change.package}
            assets = [a for a in archives if a.product in names and a.label == change.current]
            attached = self._uploader.attach(created.value, assets, self._host, cancel=cancel)
            if isinstance(attached, Err):
                return attached
            records.append(attached.value)

        return Ok(tuple(records))
