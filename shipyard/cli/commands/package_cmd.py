"""Package command - archive staged bundles for every configured target."""

from __future__ import annotations

import typer

from shipyard.cli.commands._helpers import exit_on_error
from shipyard.cli.context import build_context
from shipyard.services.release.builder import load_bundle
from shipyard.services.release.model import LATEST
from shipyard.services.release.packager import ArchivePackager
from shipyard.services.release.service import artifacts_root, dist_root


def package(
    label: str = typer.Option(LATEST, "--label", help="Archive label: a version or 'latest'"),
) -> None:
    """Package staged artifacts into tar.gz and zip archives."""
    ctx = build_context()
    cfg = ctx.config

    bundles = [
        exit_on_error(
            load_bundle(
                target=t,
                artifacts_root=artifacts_root(ctx.workspace_root),
                exclude=cfg.build.exclude,
            ),
            ctx,
        )
        for t in cfg.targets
    ]

    packager = ArchivePackager(dist_root=dist_root(ctx.workspace_root), console=ctx.console)
    labels = {p.name: label for p in cfg.products}
    archives = exit_on_error(packager.package_all(bundles, cfg.products, labels), ctx)
    for a in archives:
        ctx.console.success(str(a.path))
