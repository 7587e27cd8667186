from __future__ import annotations

from relpub.core.errors import ErrorCode
from relpub.output.console import ConsoleProtocol, Style
from relpub.publish.model import PublishReport, PublishState, UploadOutcome


_OUTCOME_STYLE: dict[UploadOutcome, Style] = {
    "uploaded": Style.SUCCESS,
    "failed": Style.ERROR,
    "skipped": Style.DIM,
}


def exit_code_for(report: PublishReport) -> ErrorCode:
    match report.state:
        case PublishState.SUCCESS:
            return ErrorCode.OK
        case PublishState.PARTIAL_FAILURE:
            return ErrorCode.PARTIAL_FAILURE
        case PublishState.FATAL_FAILURE:
            return ErrorCode.FATAL_FAILURE


def print_summary(console: ConsoleProtocol, report: PublishReport) -> None:
    """Print one line per configured target, whatever the final state."""
    tag = report.tag or "(unresolved)"
    title = "Dry run" if report.dry_run else "Publish summary"
    console.header(f"{title}: {tag}")
    if not report.results:
        console.print("no targets resolved", Style.DIM)

    width = max((len(r.target.display_name) for r in report.results), default=0)
    for r in report.results:
        line = f"{r.outcome:<8} {r.target.display_name:<{width}}  {r.canonical_name}"
        if r.attempts > 1:
            line += f" ({r.attempts} attempts)"
        console.print(line, _OUTCOME_STYLE[r.outcome])
        if r.error is not None and r.outcome == "failed":
            console.print(f"         {r.error.pretty()}", Style.DIM)

    if report.release_created:
        console.print(f"release {tag} was created by this run", Style.DIM)

    uploaded = len(report.uploaded)
    total = len(report.results)
    match report.state:
        case PublishState.SUCCESS if report.dry_run:
            console.success(f"{total} artifact(s) ready; nothing uploaded (dry run)")
        case PublishState.SUCCESS:
            console.success(f"{uploaded}/{total} artifact(s) published")
        case PublishState.PARTIAL_FAILURE:
            failed = ", ".join(r.target.id for r in report.results if not r.succeeded)
            console.warning(f"partial release: {uploaded}/{total} published; missing: {failed}")
        case PublishState.FATAL_FAILURE:
            reason = report.error.pretty() if report.error else "no artifact was published"
            console.error(f"publish failed: {reason}")
