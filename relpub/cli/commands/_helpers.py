"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from relpub.core.errors import ErrorCode
from relpub.core.result import Err, Result
from relpub.output.console import Style

if TYPE_CHECKING:
    from relpub.cli.context import CLIContext

T = TypeVar("T")
E = TypeVar("E")


def exit_on_error(
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.FATAL_FAILURE,
) -> T:
    """Return the Ok value, or print the error and exit with `error_code`.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        exit_with_code(int(error_code))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)
