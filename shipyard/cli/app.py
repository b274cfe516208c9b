from __future__ import annotations

import os
from pathlib import Path

import typer

from shipyard import __version__
from shipyard.cli.commands.build_cmd import build
from shipyard.cli.commands.gate_cmd import gate
from shipyard.cli.commands.matrix_cmd import matrix
from shipyard.cli.commands.package_cmd import package
from shipyard.cli.commands.run_cmd import run
from shipyard.cli.context import CONFIG_ENV
from shipyard.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(gate)
app.command()(matrix)
app.command()(build)
app.command()(package)
app.command()(run)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to shipyard.toml (default: ./shipyard.toml)",
    ),
) -> None:
    del version
    if config is not None:
        path = config.expanduser()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' does not exist", err=True)
            raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
        os.environ[CONFIG_ENV] = str(path.resolve())


def main() -> None:
    app()
