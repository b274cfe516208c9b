"""Wire a ReleasePipeline from configuration.

The pipeline itself only sees protocols; this module picks the concrete
adapters (command builder, S3 or local store, crates.io, gh, webhook).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.platform.http import HttpClient, RealHttpClient
from shipyard.services.release.builder import CommandBuilder
from shipyard.services.release.config import PipelineConfig
from shipyard.services.release.errors import PipelineError
from shipyard.services.release.gh import GhReleaseHost
from shipyard.services.release.matrix import BuildMatrixRunner
from shipyard.services.release.notifier import (
    ConsoleNotifier,
    FailureNotifier,
    Notifier,
    WebhookNotifier,
)
from shipyard.services.release.packager import ArchivePackager
from shipyard.services.release.pipeline import ReleasePipeline
from shipyard.services.release.publisher import ReleasePublisher
from shipyard.services.release.registry import CratesRegistry
from shipyard.services.release.storage import LocalObjectStore, ObjectStore, S3ObjectStore
from shipyard.services.release.timeouts import HTTP_TIMEOUT_SECONDS
from shipyard.services.release.uploader import ArtifactUploader
from shipyard.services.release.versions import ManifestVersionSource


def artifacts_root(workspace_root: Path) -> Path:
    return workspace_root / "artifacts"


def work_root(workspace_root: Path) -> Path:
    return workspace_root / ".shipyard" / "work"


def dist_root(workspace_root: Path) -> Path:
    return workspace_root / "dist"


def create_builder(config: PipelineConfig, *, workspace_root: Path) -> CommandBuilder:
    return CommandBuilder(
        workspace_root=workspace_root,
        command=config.build.command,
        artifacts_root=artifacts_root(workspace_root),
        work_root=work_root(workspace_root),
        exclude=config.build.exclude,
    )


def create_store(
    config: PipelineConfig, *, workspace_root: Path, local_store: Path | None
) -> Result[ObjectStore, PipelineError]:
    if local_store is not None:
        return Ok(LocalObjectStore(local_store))

    storage = config.storage
    if storage.bucket is None:
        return Err(
            PipelineError(
                kind="config_invalid",
                message="no storage bucket configured",
                hint="Set [storage] bucket in shipyard.toml or pass --local-store DIR.",
            )
        )
    return Ok(
        S3ObjectStore(
            bucket=storage.bucket,
            workspace_root=workspace_root,
            region=storage.region,
            acl=storage.acl,
        )
    )


def create_notifier(
    config: PipelineConfig,
    *,
    console: ConsoleProtocol,
    http: HttpClient,
    environ: Mapping[str, str] | None = None,
) -> Notifier:
    env = os.environ if environ is None else environ
    url = env.get(config.notify.webhook_env, "").strip()
    if url:
        return WebhookNotifier(url=url, http=http)
    console.warning(f"{config.notify.webhook_env} not set; failure alerts go to the console")
    return ConsoleNotifier(console)


def create_pipeline(
    config: PipelineConfig,
    *,
    workspace_root: Path,
    console: ConsoleProtocol,
    local_store: Path | None = None,
    http: HttpClient | None = None,
    target_sha: str | None = None,
) -> Result[ReleasePipeline, PipelineError]:
    store = create_store(config, workspace_root=workspace_root, local_store=local_store)
    if isinstance(store, Err):
        return store

    client = http or RealHttpClient(timeout=HTTP_TIMEOUT_SECONDS)
    repo = config.repository
    uploader = ArtifactUploader(store.value, console)

    publisher = ReleasePublisher(
        versions=ManifestVersionSource(workspace_root),
        registry=CratesRegistry(
            api_url=config.registry.api_url,
            http=client,
            workspace_root=workspace_root,
        ),
        host=GhReleaseHost(
            workspace_root=workspace_root,
            repo=f"{repo.owner}/{repo.slug}",
            target=target_sha,
        ),
        uploader=uploader,
        console=console,
    )

    notifier = FailureNotifier(
        create_notifier(config, console=console, http=client),
        workflow_url=repo.workflow_url,
        console=console,
    )

    matrix = BuildMatrixRunner(
        create_builder(config, workspace_root=workspace_root),
        console,
        mode_env=config.build.mode_env,
        max_workers=config.build.max_workers,
    )

    return Ok(
        ReleasePipeline(
            config=config,
            matrix=matrix,
            packager=ArchivePackager(dist_root=dist_root(workspace_root), console=console),
            uploader=uploader,
            publisher=publisher,
            notifier=notifier,
            console=console,
        )
    )
