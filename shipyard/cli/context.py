from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from shipyard.core.errors import ErrorCode
from shipyard.core.result import Err
from shipyard.output.console import ConsoleProtocol, RichConsole
from shipyard.services.release.config import CONFIG_FILENAME, PipelineConfig, load_config

CONFIG_ENV = "SHIPYARD_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    workspace_root: Path
    config: PipelineConfig
    console: ConsoleProtocol


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / CONFIG_FILENAME


def build_context() -> CLIContext:
    path = config_path()
    result = load_config(path)
    if isinstance(result, Err):
        typer.echo(f"error: {result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    return CLIContext(
        workspace_root=path.resolve().parent,
        config=result.value,
        console=RichConsole(),
    )
