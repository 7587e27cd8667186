from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

from relpub.publish.errors import PublishError


UploadOutcome = Literal["uploaded", "failed", "skipped"]


@dataclass(frozen=True, slots=True, order=True)
class Version:
    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    def __str__(self) -> str:
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            out += f"-{self.prerelease}"
        if self.build:
            out += f"+{self.build}"
        return out

    @property
    def tag(self) -> str:
        return f"v{self}"


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """One row of the build matrix and its published identity."""

    id: str  # target triple, e.g. x86_64-pc-windows-msvc
    display_name: str
    runner: str
    raw_name: str  # glob pattern matched against the Builder's output filename
    canonical_name: str


@dataclass(frozen=True, slots=True)
class TransferredArtifact:
    key: str
    raw_name: str
    content: bytes


@dataclass(frozen=True, slots=True)
class MappedArtifact:
    target: BuildTarget
    canonical_name: str
    content: bytes


@dataclass(frozen=True, slots=True)
class Release:
    tag: str
    title: str
    notes: str
    assets: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class UploadResult:
    target: BuildTarget
    canonical_name: str
    outcome: UploadOutcome
    error: PublishError | None = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome == "uploaded"


class PublishState(StrEnum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True, slots=True)
class PublishReport:
    state: PublishState
    results: tuple[UploadResult, ...]
    version: Version | None = None
    release_created: bool = False
    error: PublishError | None = None
    dry_run: bool = False

    @property
    def tag(self) -> str | None:
        return None if self.version is None else self.version.tag

    @property
    def failed(self) -> tuple[UploadResult, ...]:
        return tuple(r for r in self.results if r.outcome == "failed")

    @property
    def uploaded(self) -> tuple[UploadResult, ...]:
        return tuple(r for r in self.results if r.succeeded)
