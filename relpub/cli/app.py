from __future__ import annotations

import typer

from relpub import __version__
from relpub.cli.commands.publish_cmd import publish
from relpub.cli.commands.stage_cmd import stage
from relpub.cli.commands.targets_cmd import targets
from relpub.cli.commands.version_cmd import version


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(publish)
app.command()(targets)
app.command()(version)
app.command()(stage)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    show_version: bool = typer.Option(
        False,
        "--version",
        help="Show relpub version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
) -> None:
    del show_version


def main() -> None:
    app()
