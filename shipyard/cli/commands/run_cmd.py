"""Run command - execute the whole release pipeline for one event."""

from __future__ import annotations

from pathlib import Path

import typer

from shipyard.cli.commands._helpers import exit_code_for, exit_on_error, exit_with_code, load_event
from shipyard.cli.context import build_context
from shipyard.output.console import Style
from shipyard.services.release.service import create_pipeline


def run(
    event_name: str = typer.Option(
        ..., "--event-name", envvar="GITHUB_EVENT_NAME", help="GitHub event name"
    ),
    event_path: Path = typer.Option(
        ..., "--event-path", envvar="GITHUB_EVENT_PATH", help="Path to the event payload JSON"
    ),
    run_id: str | None = typer.Option(
        None, "--run-id", envvar="GITHUB_RUN_ID", help="Run identifier", show_default=False
    ),
    target_sha: str | None = typer.Option(
        None,
        "--target-sha",
        envvar="GITHUB_SHA",
        help="Commit the release tags point at",
        show_default=False,
    ),
    local_store: Path | None = typer.Option(
        None,
        "--local-store",
        help="Upload archives to this directory instead of the configured bucket",
        show_default=False,
    ),
) -> None:
    """Gate, build, package, upload and publish a release."""
    ctx = build_context()
    event = exit_on_error(load_event(event_name, event_path), ctx)
    pipeline = exit_on_error(
        create_pipeline(
            ctx.config,
            workspace_root=ctx.workspace_root,
            console=ctx.console,
            local_store=local_store,
            target_sha=target_sha,
        ),
        ctx,
    )

    outcome = pipeline.run(event, run_id=run_id)
    for key in outcome.uploaded:
        ctx.console.print(f"  uploaded {key}", Style.DIM)
    for record in outcome.records:
        ctx.console.print(f"  release {record.tag} {record.url or ''}".rstrip(), Style.DIM)

    if outcome.error is not None:
        exit_with_code(int(exit_code_for(outcome.error)))
