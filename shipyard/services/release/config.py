"""Typed pipeline configuration loaded from ``shipyard.toml``.

Target platforms and logical products are fixed configuration: they are read
once per run and never derived from build output.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import (
    StrDict,
    as_str_dict,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)
from shipyard.services.release.model import LogicalProduct, TargetPlatform

__all__ = [
    "BuildConfig",
    "ConfigError",
    "CONFIG_FILENAME",
    "DEFAULT_TARGETS",
    "NotifyConfig",
    "PipelineConfig",
    "RegistryConfig",
    "RepositoryConfig",
    "StorageConfig",
    "load_config",
]

CONFIG_FILENAME = "shipyard.toml"

DEFAULT_RELEASE_MARKER = "chore(release):"
DEFAULT_MODE_INPUT = "network_version_mode"
DEFAULT_MODE_ENV = "NETWORK_VERSION_MODE"
DEFAULT_BUILD_COMMAND: tuple[str, ...] = (
    "just",
    "build-release-artifacts",
    "{target}",
    "{out_dir}",
)
DEFAULT_EXCLUDE: tuple[str, ...] = (".cargo-lock",)
DEFAULT_REGISTRY_API = "https://crates.io/api/v1"
DEFAULT_WEBHOOK_ENV = "SLACK_GH_ACTIONS_WEBHOOK_URL"

DEFAULT_TARGETS: tuple[TargetPlatform, ...] = (
    TargetPlatform(triple="x86_64-pc-windows-msvc", runner="windows-latest"),
    TargetPlatform(triple="x86_64-apple-darwin", runner="macos-latest"),
    TargetPlatform(triple="x86_64-unknown-linux-musl", runner="ubuntu-latest"),
    TargetPlatform(triple="arm-unknown-linux-musleabi", runner="ubuntu-latest"),
    TargetPlatform(triple="armv7-unknown-linux-musleabihf", runner="ubuntu-latest"),
    TargetPlatform(triple="aarch64-unknown-linux-musl", runner="ubuntu-latest"),
)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class RepositoryConfig:
    owner: str
    slug: str
    workflow_url: str
    release_marker: str = DEFAULT_RELEASE_MARKER
    mode_input: str = DEFAULT_MODE_INPUT


@dataclass(frozen=True, slots=True)
class BuildConfig:
    command: tuple[str, ...] = DEFAULT_BUILD_COMMAND
    mode_env: str = DEFAULT_MODE_ENV
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    max_workers: int | None = None  # None: one worker per target


@dataclass(frozen=True, slots=True)
class StorageConfig:
    bucket: str | None = None
    region: str | None = None
    acl: str | None = None


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    api_url: str = DEFAULT_REGISTRY_API


@dataclass(frozen=True, slots=True)
class NotifyConfig:
    webhook_env: str = DEFAULT_WEBHOOK_ENV


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    repository: RepositoryConfig
    products: tuple[LogicalProduct, ...]
    targets: tuple[TargetPlatform, ...] = DEFAULT_TARGETS
    build: BuildConfig = field(default_factory=BuildConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)

    @property
    def packages(self) -> tuple[str, ...]:
        seen: list[str] = []
        for p in self.products:
            if p.package not in seen:
                seen.append(p.package)
        return tuple(seen)

    def target(self, triple: str) -> TargetPlatform | None:
        for t in self.targets:
            if t.triple == triple:
                return t
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Result[PipelineConfig, ConfigError]:
        """Create PipelineConfig from a mapping (parsed TOML)."""
        repo: StrDict = get_table(data, "repository") or {}
        build: StrDict = get_table(data, "build") or {}
        storage: StrDict = get_table(data, "storage") or {}
        registry: StrDict = get_table(data, "registry") or {}
        notify: StrDict = get_table(data, "notify") or {}

        owner = get_str(repo, "owner")
        slug = get_str(repo, "slug")
        workflow_url = get_str(repo, "workflow_url")
        if owner is None or slug is None or workflow_url is None:
            return Err(ConfigError("[repository] requires owner, slug and workflow_url"))

        targets = _parse_targets(data)
        if isinstance(targets, Err):
            return targets
        products = _parse_products(data)
        if isinstance(products, Err):
            return products

        command = get_str_list(build, "command")
        exclude = get_str_list(build, "exclude")
        max_workers = get_int(build, "max_workers")
        if max_workers is not None and max_workers < 1:
            return Err(ConfigError("[build] max_workers must be >= 1"))

        return Ok(
            cls(
                repository=RepositoryConfig(
                    owner=owner,
                    slug=slug,
                    workflow_url=workflow_url.rstrip("/"),
                    release_marker=get_str(repo, "release_marker") or DEFAULT_RELEASE_MARKER,
                    mode_input=get_str(repo, "mode_input") or DEFAULT_MODE_INPUT,
                ),
                products=products.value,
                targets=targets.value,
                build=BuildConfig(
                    command=tuple(command) if command else DEFAULT_BUILD_COMMAND,
                    mode_env=get_str(build, "mode_env") or DEFAULT_MODE_ENV,
                    exclude=tuple(exclude) if exclude is not None else DEFAULT_EXCLUDE,
                    max_workers=max_workers,
                ),
                storage=StorageConfig(
                    bucket=get_str(storage, "bucket"),
                    region=get_str(storage, "region"),
                    acl=get_str(storage, "acl"),
                ),
                registry=RegistryConfig(
                    api_url=(get_str(registry, "api_url") or DEFAULT_REGISTRY_API).rstrip("/"),
                ),
                notify=NotifyConfig(
                    webhook_env=get_str(notify, "webhook_env") or DEFAULT_WEBHOOK_ENV,
                ),
            )
        )


def _parse_targets(data: Mapping[str, object]) -> Result[tuple[TargetPlatform, ...], ConfigError]:
    raw = get_list(data, "targets")
    if raw is None:
        return Ok(DEFAULT_TARGETS)

    out: list[TargetPlatform] = []
    for item in raw:
        tbl = as_str_dict(item)
        if tbl is None:
            return Err(ConfigError("[[targets]] entries must be tables"))
        triple = get_str(tbl, "triple")
        runner = get_str(tbl, "runner")
        if triple is None or runner is None:
            return Err(ConfigError("[[targets]] entries require triple and runner"))
        out.append(TargetPlatform(triple=triple, runner=runner))

    triples = [t.triple for t in out]
    if len(set(triples)) != len(triples):
        return Err(ConfigError("[[targets]] triples must be unique"))
    if not out:
        return Err(ConfigError("at least one target is required"))
    return Ok(tuple(out))


def _parse_products(data: Mapping[str, object]) -> Result[tuple[LogicalProduct, ...], ConfigError]:
    raw = get_list(data, "products")
    if not raw:
        return Err(ConfigError("at least one [[products]] entry is required"))

    out: list[LogicalProduct] = []
    for item in raw:
        tbl = as_str_dict(item)
        if tbl is None:
            return Err(ConfigError("[[products]] entries must be tables"))
        name = get_str(tbl, "name")
        package = get_str(tbl, "package")
        manifest = get_str(tbl, "manifest")
        if name is None or package is None or manifest is None:
            return Err(ConfigError("[[products]] entries require name, package and manifest"))
        out.append(LogicalProduct(name=name, package=package, manifest=manifest))

    names = [p.name for p in out]
    if len(set(names)) != len(names):
        return Err(ConfigError("[[products]] names must be unique"))
    return Ok(tuple(out))


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[PipelineConfig, ConfigError]:
    """Load and validate ``shipyard.toml``."""
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    config = PipelineConfig.from_dict(result.value)
    if isinstance(config, Err):
        return Err(ConfigError(config.error.message, path=path))
    return config
