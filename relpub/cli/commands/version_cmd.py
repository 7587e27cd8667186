from __future__ import annotations

from pathlib import Path

import typer

from relpub.cli.commands._helpers import exit_on_error
from relpub.cli.context import build_context
from relpub.core.errors import ErrorCode
from relpub.publish.version import read_metadata


def version(
    project: Path | None = typer.Option(None, "--project", help="Project root."),
    tag_only: bool = typer.Option(False, "--tag", help="Print only the release tag."),
) -> None:
    """Show the version and release tag resolved from project metadata."""
    ctx = build_context(project=project)
    meta = exit_on_error(
        read_metadata(ctx.project_root, descriptor=ctx.config.metadata),
        ctx,
        ErrorCode.FATAL_FAILURE,
    )

    if tag_only:
        typer.echo(meta.version.tag)
        return

    ctx.console.print(f"descriptor: {meta.descriptor.name}")
    ctx.console.print(f"version: {meta.version}")
    ctx.console.print(f"tag: {meta.version.tag}")
