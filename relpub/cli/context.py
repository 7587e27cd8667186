from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from relpub.cli.commands._helpers import exit_on_error
from relpub.core.errors import ErrorCode
from relpub.core.result import Err, Ok, Result
from relpub.output.console import ConsoleProtocol, RichConsole
from relpub.publish.config import FALLBACK_TOKEN_ENV, PublishConfig, load_config_or_default
from relpub.publish.errors import PublishError
from relpub.publish.targets import TargetTable, default_targets
from relpub.publish.transfer import DirectoryTransfer
from relpub.publish.version import read_metadata

PROJECT_ROOT_ENV = "RELPUB_PROJECT_ROOT"


@dataclass(frozen=True, slots=True)
class CLIContext:
    project_root: Path
    config: PublishConfig
    console: ConsoleProtocol

    @property
    def transfer(self) -> DirectoryTransfer:
        return DirectoryTransfer(self.project_root / self.config.artifacts_dir)


def detect_project_root(override: Path | None = None) -> Path:
    if override is not None:
        return override.expanduser().resolve()
    env = os.environ.get(PROJECT_ROOT_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return Path.cwd().resolve()


def make_console(*, verbose: bool = False) -> ConsoleProtocol:
    return RichConsole(verbose=verbose)


def load_context(
    console: ConsoleProtocol, *, project: Path | None = None
) -> Result[CLIContext, PublishError]:
    root = detect_project_root(project)
    if not root.is_dir():
        return Err(
            PublishError(
                kind="invalid_config",
                message=f"project root is not a directory: {root}",
            )
        )

    config = load_config_or_default(root)
    if isinstance(config, Err):
        return Err(
            PublishError(
                kind="invalid_config",
                message=config.error.message,
                hint=str(config.error.path) if config.error.path else None,
            )
        )

    return Ok(CLIContext(project_root=root, config=config.value, console=console))


def build_context(*, project: Path | None = None, verbose: bool = False) -> CLIContext:
    console = make_console(verbose=verbose)
    ctx = load_context(console, project=project)
    if isinstance(ctx, Err):
        where = f" ({ctx.error.hint})" if ctx.error.hint else ""
        console.error(f"{ctx.error.message}{where}")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    return ctx.value


def read_token(config: PublishConfig) -> str | None:
    """Token for the registry; its value must never be printed."""
    for name in (config.token_env, FALLBACK_TOKEN_ENV):
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


def target_table(ctx: CLIContext) -> Result[TargetTable, PublishError]:
    if ctx.config.targets:
        return TargetTable.build(ctx.config.targets)

    binary = ctx.config.binary
    if binary is None:
        meta = read_metadata(ctx.project_root, descriptor=ctx.config.metadata)
        if isinstance(meta, Err):
            return meta
        binary = meta.value.name
    if binary is None:
        return Err(
            PublishError(
                kind="invalid_config",
                message="cannot derive artifact names: no package name in metadata",
                hint="Set release.binary or [[targets]] in relpub.toml",
            )
        )
    return TargetTable.build(default_targets(binary))


def target_table_or_exit(ctx: CLIContext) -> TargetTable:
    table = target_table(ctx)
    if isinstance(table, Ok):
        return table.value
    code = ErrorCode.FATAL_FAILURE if table.error.kind == "metadata_parse" else ErrorCode.USER_ERROR
    return exit_on_error(table, ctx, code)
