"""Build command - run one build task (one matrix leg in CI)."""

from __future__ import annotations

import typer

from shipyard.cli.commands._helpers import exit_on_error, exit_with_code
from shipyard.cli.context import build_context
from shipyard.core.cancel import CancelToken
from shipyard.core.errors import ErrorCode
from shipyard.services.release.matrix import build_env
from shipyard.services.release.service import create_builder


def build(
    target: str = typer.Argument(..., help="Target triple (e.g. x86_64-unknown-linux-musl)"),
    mode: str = typer.Option(
        "", "--mode", help="Mode override passed to the build environment"
    ),
) -> None:
    """Build release artifacts for a single target."""
    ctx = build_context()
    platform = ctx.config.target(target)
    if platform is None:
        known = ", ".join(t.triple for t in ctx.config.targets)
        ctx.console.error(f"unknown target: {target}")
        ctx.console.print(f"hint: configured targets: {known}")
        exit_with_code(int(ErrorCode.USER_ERROR))

    builder = create_builder(ctx.config, workspace_root=ctx.workspace_root)
    env = build_env(ctx.config.build.mode_env, mode)
    bundle = exit_on_error(builder.build(platform, env=env, cancel=CancelToken()), ctx)

    ctx.console.success(f"{target}: staged {len(bundle.files)} file(s) at {bundle.root}")
