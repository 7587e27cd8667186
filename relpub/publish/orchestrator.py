"""Publication state machine.

ResolveVersion -> MapArtifacts -> EnsureRelease -> UploadAll -> Finalize

Artifacts are mapped before the release is touched so that a build/config
mismatch never leaves an empty release behind. Upload failures are collected
per target and never stop the loop.
"""

from __future__ import annotations

from collections.abc import Callable

from relpub.core.result import Err, Ok, Result
from relpub.output.console import ConsoleProtocol, Style
from relpub.publish.cancel import CancelToken
from relpub.publish.config import DEFAULT_NOTES, DEFAULT_TITLE
from relpub.publish.errors import PublishError
from relpub.publish.model import (
    MappedArtifact,
    PublishReport,
    PublishState,
    UploadResult,
    Version,
)
from relpub.publish.registry import ReleaseRegistry
from relpub.publish.targets import TargetTable
from relpub.publish.transfer import ArtifactTransfer

VersionSource = Callable[[], Result[Version, PublishError]]


class PublicationOrchestrator:
    def __init__(
        self,
        *,
        version_source: VersionSource,
        table: TargetTable,
        transfer: ArtifactTransfer,
        registry: ReleaseRegistry,
        console: ConsoleProtocol,
        title: str = DEFAULT_TITLE,
        notes: str = DEFAULT_NOTES,
        cancel: CancelToken | None = None,
    ) -> None:
        self._version_source = version_source
        self._table = table
        self._transfer = transfer
        self._registry = registry
        self._console = console
        self._title = title
        self._notes = notes
        self._cancel = cancel or CancelToken()

    def run(self, *, dry_run: bool = False) -> PublishReport:
        version_r = self._version_source()
        if isinstance(version_r, Err):
            return self._fatal(version_r.error)
        version = version_r.value
        tag = version.tag
        self._console.print(f"version: {version} (tag {tag})", Style.DIM)

        mapped_r = self.map_artifacts()
        if isinstance(mapped_r, Err):
            return self._fatal(mapped_r.error, version=version)
        mapped = mapped_r.value

        if dry_run:
            for a in mapped:
                self._console.print(
                    f"would upload {a.canonical_name} ({len(a.content)} bytes)", Style.DIM
                )
            return PublishReport(
                state=PublishState.SUCCESS,
                results=tuple(_skipped(a) for a in mapped),
                version=version,
                dry_run=True,
            )

        if self._cancel.cancelled:
            return self._fatal(self._cancelled_error(), version=version)

        ensured = self.ensure_release(tag)
        if isinstance(ensured, Err):
            return self._fatal(ensured.error, version=version)
        created = ensured.value

        results = self.upload_all(tag, mapped)
        return self._finalize(version=version, results=results, release_created=created)

    def map_artifacts(self) -> Result[tuple[MappedArtifact, ...], PublishError]:
        """Fetch and rename every configured target; all-or-nothing."""
        errors: list[PublishError] = []

        for key in self._transfer.keys():
            if key not in self._table:
                errors.append(
                    PublishError(
                        kind="unknown_target",
                        message=f"artifact {key!r} does not belong to any configured target",
                        hint="Add it to [[targets]] or stop building it",
                    )
                )

        mapped: list[MappedArtifact] = []
        for target in self._table:
            fetched = self._transfer.get(target.id)
            if isinstance(fetched, Err):
                errors.append(fetched.error)
                continue

            name = self._table.map_name(target, fetched.value.raw_name)
            if isinstance(name, Err):
                errors.append(name.error)
                continue

            mapped.append(
                MappedArtifact(
                    target=target,
                    canonical_name=name.value,
                    content=fetched.value.content,
                )
            )

        if errors:
            for e in errors:
                self._console.error(e.pretty())
            first = errors[0]
            if len(errors) == 1:
                return Err(first)
            return Err(
                PublishError(
                    kind=first.kind,
                    message=f"{first.message} (+{len(errors) - 1} more)",
                    hint=first.hint,
                )
            )
        return Ok(tuple(mapped))

    def ensure_release(self, tag: str) -> Result[bool, PublishError]:
        """Make sure the release exists; Ok(True) when this run created it."""
        exists = self._registry.exists(tag)
        if isinstance(exists, Err):
            return exists
        if exists.value:
            self._console.print(f"release {tag}: exists", Style.DIM)
            return Ok(False)
        if self._cancel.cancelled:
            return Err(self._cancelled_error())

        created = self._registry.create(
            tag,
            self._title.format(tag=tag),
            self._notes.format(tag=tag),
        )
        if isinstance(created, Err):
            if created.error.kind == "release_exists":
                # Another run created it between our check and our create.
                self._console.warning(f"release {tag} was created concurrently; reusing it")
                return Ok(False)
            return created

        self._console.success(f"release {tag}: created")
        return Ok(True)

    def upload_all(
        self, tag: str, artifacts: tuple[MappedArtifact, ...]
    ) -> tuple[UploadResult, ...]:
        results: list[UploadResult] = []
        for artifact in artifacts:
            if self._cancel.cancelled:
                results.append(_skipped(artifact, error=self._cancelled_error()))
                continue

            result = self._registry.upload(tag, artifact)
            if result.succeeded:
                self._console.success(f"uploaded {artifact.canonical_name}")
            else:
                detail = result.error.pretty() if result.error else "unknown error"
                self._console.error(f"{artifact.canonical_name}: {detail}")
            results.append(result)
        return tuple(results)

    def _finalize(
        self,
        *,
        version: Version,
        results: tuple[UploadResult, ...],
        release_created: bool,
    ) -> PublishReport:
        uploaded = sum(1 for r in results if r.succeeded)
        error: PublishError | None = None
        if self._cancel.cancelled:
            error = self._cancelled_error()

        if results and uploaded == len(results):
            state = PublishState.SUCCESS
        elif uploaded > 0:
            state = PublishState.PARTIAL_FAILURE
        else:
            state = PublishState.FATAL_FAILURE
            if error is None:
                error = next((r.error for r in results if r.error is not None), None)

        return PublishReport(
            state=state,
            results=results,
            version=version,
            release_created=release_created,
            error=error,
        )

    def _fatal(self, error: PublishError, *, version: Version | None = None) -> PublishReport:
        return fatal_report(error, table=self._table, version=version)

    def _cancelled_error(self) -> PublishError:
        return PublishError(kind="cancelled", message=self._cancel.reason or "cancelled")


def fatal_report(
    error: PublishError,
    *,
    table: TargetTable | None = None,
    version: Version | None = None,
) -> PublishReport:
    """Report for a run that stopped before any upload; every target is skipped."""
    results = tuple(
        UploadResult(target=t, canonical_name=t.canonical_name, outcome="skipped")
        for t in table or ()
    )
    return PublishReport(
        state=PublishState.FATAL_FAILURE,
        results=results,
        version=version,
        error=error,
    )


def _skipped(artifact: MappedArtifact, *, error: PublishError | None = None) -> UploadResult:
    return UploadResult(
        target=artifact.target,
        canonical_name=artifact.canonical_name,
        outcome="skipped",
        error=error,
    )
