from __future__ import annotations

from pathlib import Path

import typer

from relpub.cli.commands._helpers import exit_on_error
from relpub.cli.context import build_context, target_table_or_exit
from relpub.core.errors import ErrorCode
from relpub.output.console import Style


def stage(
    target: str = typer.Argument(..., help="Target triple, e.g. x86_64-unknown-linux-gnu."),
    file: Path = typer.Argument(..., help="Build output to hand over to the publisher."),
    project: Path | None = typer.Option(None, "--project", help="Project root."),
) -> None:
    """Stage a build output in the artifacts directory under its target key."""
    ctx = build_context(project=project)
    table = target_table_or_exit(ctx)

    entry = table.get(target)
    if entry is None:
        ctx.console.error(f"unknown build target: {target}")
        ctx.console.print("hint: see `relpub targets`", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    # Refuse a file that would later be published under the wrong name.
    canonical = exit_on_error(table.map_name(entry, file.name), ctx, ErrorCode.USER_ERROR)
    dest = exit_on_error(ctx.transfer.put(entry.id, file), ctx, ErrorCode.IO_ERROR)
    ctx.console.success(f"staged {dest} (publishes as {canonical})")
