from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from types import FrameType
from typing import NoReturn

import typer

from relpub.cli.context import CLIContext, load_context, make_console, read_token, target_table
from relpub.core.result import Err, Ok, Result
from relpub.output.console import ConsoleProtocol
from relpub.publish.cancel import CancelToken
from relpub.publish.errors import PublishError
from relpub.publish.model import PublishReport
from relpub.publish.orchestrator import PublicationOrchestrator, fatal_report
from relpub.publish.registry import GhReleaseRegistry, RetryPolicy, ensure_gh_available
from relpub.publish.summary import exit_code_for, print_summary
from relpub.publish.version import resolve_version


def publish(
    project: Path | None = typer.Option(
        None, "--project", help="Project root (default: $RELPUB_PROJECT_ROOT or cwd)."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Resolve and map artifacts without touching the release."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show each gh invocation."),
) -> None:
    """Create the release if needed and upload every build artifact.

    Exits 0 when every artifact is published, 3 on a partial release and 4
    when nothing was published, including failures before the first upload.
    """
    console = make_console(verbose=verbose)
    loaded = load_context(console, project=project)
    if isinstance(loaded, Err):
        _finish(console, fatal_report(loaded.error))
    ctx = loaded.value

    table = target_table(ctx)
    if isinstance(table, Err):
        _finish(ctx.console, fatal_report(table.error))

    token: str | None = None
    if not dry_run:
        ready = _preflight(ctx)
        if isinstance(ready, Err):
            _finish(ctx.console, fatal_report(ready.error, table=table.value))
        token = ready.value

    cancel = CancelToken()
    orchestrator = PublicationOrchestrator(
        version_source=lambda: resolve_version(ctx.project_root, descriptor=ctx.config.metadata),
        table=table.value,
        transfer=ctx.transfer,
        registry=_registry(ctx, token=token, cancel=cancel),
        console=ctx.console,
        title=ctx.config.title,
        notes=ctx.config.notes,
        cancel=cancel,
    )

    with cancel_on_signals(cancel, ctx.console):
        report = orchestrator.run(dry_run=dry_run)

    _finish(ctx.console, report)


def _preflight(ctx: CLIContext) -> Result[str, PublishError]:
    """Check gh and the token; returns the token."""
    gh = ensure_gh_available()
    if isinstance(gh, Err):
        return gh
    token = read_token(ctx.config)
    if token is None:
        return Err(
            PublishError(
                kind="auth_required",
                message=f"missing registry token: set {ctx.config.token_env}",
                hint="GITHUB_TOKEN is used when the configured variable is unset",
            )
        )
    return Ok(token)


def _finish(console: ConsoleProtocol, report: PublishReport) -> NoReturn:
    print_summary(console, report)
    raise typer.Exit(code=int(exit_code_for(report)))


def _registry(ctx: CLIContext, *, token: str | None, cancel: CancelToken) -> GhReleaseRegistry:
    return GhReleaseRegistry(
        workdir=ctx.project_root,
        token=token,
        repo=ctx.config.repo,
        policy=RetryPolicy.from_config(ctx.config.retry),
        cancel=cancel,
        trace=ctx.console.debug,
    )


@contextmanager
def cancel_on_signals(cancel: CancelToken, console: ConsoleProtocol) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a cancellation request for the duration."""

    def handler(signum: int, frame: FrameType | None) -> None:
        del frame
        name = signal.Signals(signum).name
        if not cancel.cancelled:
            console.warning(f"{name} received: finishing the current upload, then stopping")
        cancel.cancel(f"interrupted by {name}")

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)
