from __future__ import annotations

import json
from pathlib import Path

import typer

from relpub.cli.context import build_context, target_table_or_exit
from relpub.output.console import Style


def targets(
    project: Path | None = typer.Option(None, "--project", help="Project root."),
    as_json: bool = typer.Option(
        False, "--json", help="Emit the GitHub Actions matrix (strategy.matrix) as JSON."
    ),
) -> None:
    """List build targets and their published artifact names."""
    ctx = build_context(project=project)
    table = target_table_or_exit(ctx)

    if as_json:
        typer.echo(json.dumps({"include": table.matrix()}))
        return

    ctx.console.header("Build targets")
    for t in table:
        ctx.console.print(f"{t.id}  ({t.display_name}, {t.runner})", Style.BOLD)
        ctx.console.print(f"  {t.raw_name} -> {t.canonical_name}", Style.DIM)
