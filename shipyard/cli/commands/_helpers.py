"""Shared helpers for CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import typer

from shipyard.core.errors import ErrorCode
from shipyard.core.result import Err, Result
from shipyard.core.structured import as_str_dict
from shipyard.output.console import Style
from shipyard.services.release.errors import PipelineError, PipelineErrorKind
from shipyard.services.release.gate import TriggerEvent

if TYPE_CHECKING:
    from shipyard.cli.context import CLIContext


_EXIT_CODES: dict[PipelineErrorKind, ErrorCode] = {
    "invalid_event": ErrorCode.USER_ERROR,
    "config_invalid": ErrorCode.CONFIG_ERROR,
    "build_task_failed": ErrorCode.BUILD_ERROR,
    "package_failed": ErrorCode.BUILD_ERROR,
    "publish_failed": ErrorCode.PUBLISH_ERROR,
    "upload_conflict": ErrorCode.UPLOAD_ERROR,
    "upload_failed": ErrorCode.UPLOAD_ERROR,
    "superseded": ErrorCode.SUPERSEDED,
    "notification_failed": ErrorCode.OK,
}


def exit_code_for(error: PipelineError) -> ErrorCode:
    return _EXIT_CODES.get(error.kind, ErrorCode.USER_ERROR)


def exit_on_error[T](result: Result[T, PipelineError], ctx: CLIContext) -> T:
    """Return the Ok value, or print the error and exit with its code."""
    if isinstance(result, Err):
        error = result.error
        ctx.console.error(error.message)
        if error.hint:
            ctx.console.print(f"hint: {error.hint}", Style.DIM)
        exit_with_code(int(exit_code_for(error)))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)


def load_event(event_name: str, event_path: Path) -> Result[TriggerEvent, PipelineError]:
    """Read a GitHub event payload from disk."""
    try:
        data: object = json.loads(event_path.read_text(encoding="utf-8"))
    except OSError as e:
        return Err(PipelineError(kind="invalid_event", message=f"cannot read event: {e}"))
    except json.JSONDecodeError as e:
        return Err(PipelineError(kind="invalid_event", message=f"invalid event JSON: {e}"))

    payload = as_str_dict(data)
    if payload is None:
        return Err(PipelineError(kind="invalid_event", message="event payload must be an object"))
    return TriggerEvent.from_github(event_name, payload)
