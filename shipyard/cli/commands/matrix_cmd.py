"""Matrix command - emit the build matrix as CI JSON."""

from __future__ import annotations

import json

import typer

from shipyard.cli.context import build_context
from shipyard.services.release.matrix import ci_matrix


def matrix(
    pretty: bool = typer.Option(False, "--pretty", help="Indent the JSON output"),
) -> None:
    """Print the target matrix (``{"include": [{os, target}, ...]}``)."""
    ctx = build_context()
    doc = ci_matrix(ctx.config.targets)
    typer.echo(json.dumps(doc, indent=2 if pretty else None))
