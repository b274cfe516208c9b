from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from shipyard.services.release.errors import PipelineError

TriggerKind = Literal["push", "manual"]
PreReleaseKind = Literal["alpha", "beta", "rc", "other"]
RunState = Literal["succeeded", "failed", "superseded"]
BuildStatus = Literal["pending", "running", "succeeded", "failed"]
ContainerFormat = Literal["tar.gz", "zip"]

LATEST = "latest"
CONTAINER_FORMATS: tuple[ContainerFormat, ...] = ("tar.gz", "zip")


@dataclass(frozen=True, slots=True)
class Stable:
    @property
    def name(self) -> str:
        return "stable"


@dataclass(frozen=True, slots=True)
class PreRelease:
    kind: PreReleaseKind

    @property
    def name(self) -> str:
        return self.kind


type BranchClass = Stable | PreRelease


@dataclass(frozen=True, slots=True)
class TargetPlatform:
    """One build target, e.g. ``x86_64-unknown-linux-musl`` on ``ubuntu-latest``."""

    triple: str
    runner: str

    @property
    def os_family(self) -> str:
        parts = self.triple.split("-")
        if "windows" in parts:
            return "windows"
        if "darwin" in parts:
            return "macos"
        if "linux" in parts:
            return "linux"
        return "unknown"

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self.os_family == "windows" else ""


@dataclass(frozen=True, slots=True)
class LogicalProduct:
    """A deliverable binary and the registry package that versions it."""

    name: str
    package: str
    manifest: str  # workspace-relative path to the TOML holding the version

    def binary_name(self, target: TargetPlatform) -> str:
        return f"{self.name}{target.exe_suffix}"


@dataclass(frozen=True, slots=True)
class Run:
    run_id: str
    trigger: TriggerKind
    ref: str
    branch_class: BranchClass
    mode_override: str = ""

    @property
    def is_manual(self) -> bool:
        return self.trigger == "manual"


@dataclass(frozen=True, slots=True)
class ArtifactBundle:
    """Raw output of one build task, staged under ``{triple}/release``."""

    target: TargetPlatform
    root: Path
    files: tuple[str, ...]  # posix paths relative to root

    def has(self, name: str) -> bool:
        return name in self.files


@dataclass(frozen=True, slots=True)
class BuildTask:
    target: TargetPlatform
    status: BuildStatus
    bundle: ArtifactBundle | None = None
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class PackagedArchive:
    product: str
    target: str  # platform triple
    label: str  # semantic version or LATEST
    fmt: ContainerFormat
    path: Path

    @property
    def key(self) -> str:
        return archive_key(self.product, self.target, self.label, self.fmt)

    @property
    def is_latest(self) -> bool:
        return self.label == LATEST

    @property
    def asset_name(self) -> str:
        """Flat file name used when attaching to a release record."""
        return f"{self.product}-{self.label}-{self.target}.{self.fmt}"


def archive_key(product: str, target: str, label: str, fmt: ContainerFormat) -> str:
    return f"{product}/{target}/{label}.{fmt}"


@dataclass(frozen=True, slots=True)
class VersionChange:
    package: str
    previous: str | None
    current: str

    @property
    def changed(self) -> bool:
        return self.previous != self.current

    @property
    def tag(self) -> str:
        return f"{self.package}-v{self.current}"

    def summary(self) -> str:
        return f"{self.package}: {self.previous or 'unreleased'} -> {self.current}"


@dataclass(frozen=True, slots=True)
class VersionPlan:
    versions: tuple[VersionChange, ...]
    products: tuple[LogicalProduct, ...]

    def for_package(self, package: str) -> VersionChange | None:
        for v in self.versions:
            if v.package == package:
                return v
        return None

    @property
    def changed(self) -> tuple[VersionChange, ...]:
        return tuple(v for v in self.versions if v.changed)

    def changed_products(self) -> tuple[LogicalProduct, ...]:
        names = {v.package for v in self.changed}
        return tuple(p for p in self.products if p.package in names)

    def label_for(self, product: LogicalProduct) -> str:
        v = self.for_package(product.package)
        if v is None:
            raise KeyError(f"no version planned for package {product.package}")
        return v.current


@dataclass(frozen=True, slots=True)
class ReleasePolicy:
    publish_to_registry: bool
    draft: bool
    tag_enabled: bool


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    tag: str
    title: str
    notes: str
    draft: bool
    tag_enabled: bool
    assets: tuple[str, ...] = ()
    url: str | None = None


@dataclass(frozen=True, slots=True)
class RunOutcome:
    """What a run did, rendered by the CLI."""

    state: RunState | Literal["skipped"]
    run: Run | None
    error: PipelineError | None = None
    tasks: tuple[BuildTask, ...] = ()
    records: tuple[ReleaseRecord, ...] = ()
    uploaded: tuple[str, ...] = field(default_factory=tuple)
    notified: bool = False
    skip_reason: str | None = None

    @property
    def success(self) -> bool:
        return self.state in ("succeeded", "skipped")
