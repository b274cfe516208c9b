"""Gate command - decide whether the triggering event starts a release run."""

from __future__ import annotations

from pathlib import Path

import typer

from shipyard.cli.commands._helpers import exit_on_error, load_event
from shipyard.cli.context import build_context
from shipyard.services.release.gate import Proceed, evaluate


def gate(
    event_name: str = typer.Option(
        ..., "--event-name", envvar="GITHUB_EVENT_NAME", help="GitHub event name"
    ),
    event_path: Path = typer.Option(
        ..., "--event-path", envvar="GITHUB_EVENT_PATH", help="Path to the event payload JSON"
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        envvar="GITHUB_OUTPUT",
        help="Append step outputs (proceed, branch_class, mode) to this file",
        show_default=False,
    ),
) -> None:
    """Evaluate the trigger gate for an event."""
    ctx = build_context()
    event = exit_on_error(load_event(event_name, event_path), ctx)

    repo = ctx.config.repository
    decision = evaluate(
        event,
        owner=repo.owner,
        release_marker=repo.release_marker,
        mode_input=repo.mode_input,
    )
    if isinstance(decision, Proceed):
        ctx.console.success(f"proceed: {decision.ref} ({decision.branch_class.name})")
    else:
        ctx.console.info(f"skip: {decision.reason}")

    lines = decision.outputs()
    if output is None:
        for line in lines:
            typer.echo(line)
        return
    with output.open("a", encoding="utf-8") as f:
        f.writelines(f"{line}\n" for line in lines)
