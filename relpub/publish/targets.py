"""Build target table and artifact name mapping.

The table is the single source of truth for both the CI build matrix
(`TargetTable.matrix`) and the rename step (`TargetTable.map_name`). A raw
build output is only ever published under the canonical name of the row it
was fetched for; the raw filename must also match that row's pattern, so a
binary built for one OS cannot end up under another OS's name.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from fnmatch import fnmatchcase

from relpub.core.result import Err, Ok, Result
from relpub.publish.errors import PublishError
from relpub.publish.model import BuildTarget


class TargetTable:
    """Immutable, validated collection of build targets keyed by target id."""

    __slots__ = ("_by_id",)

    def __init__(self, by_id: dict[str, BuildTarget]) -> None:
        self._by_id = by_id

    @classmethod
    def build(cls, targets: Iterable[BuildTarget]) -> Result[TargetTable, PublishError]:
        by_id: dict[str, BuildTarget] = {}
        by_canonical: dict[str, str] = {}
        for t in targets:
            if t.id in by_id:
                return Err(
                    PublishError(
                        kind="name_collision",
                        message=f"duplicate build target: {t.id}",
                    )
                )
            other = by_canonical.get(t.canonical_name)
            if other is not None:
                return Err(
                    PublishError(
                        kind="name_collision",
                        message=f"canonical name {t.canonical_name!r} used by {other} and {t.id}",
                        hint="Every target must publish under its own name.",
                    )
                )
            by_id[t.id] = t
            by_canonical[t.canonical_name] = t.id

        if not by_id:
            return Err(PublishError(kind="invalid_config", message="no build targets configured"))
        return Ok(cls(by_id))

    def __iter__(self) -> Iterator[BuildTarget]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._by_id

    def get(self, target_id: str) -> BuildTarget | None:
        return self._by_id.get(target_id)

    def map_name(self, target: BuildTarget, raw_name: str) -> Result[str, PublishError]:
        entry = self._by_id.get(target.id)
        if entry is None or entry != target:
            return Err(
                PublishError(
                    kind="unknown_target",
                    message=f"unknown build target: {target.id}",
                    hint="Known: " + ", ".join(self._by_id),
                )
            )

        if not fnmatchcase(raw_name, entry.raw_name):
            return Err(
                PublishError(
                    kind="unexpected_artifact",
                    message=f"{target.id}: raw artifact {raw_name!r} does not match {entry.raw_name!r}",
                    hint=f"Refusing to publish it as {entry.canonical_name}",
                )
            )
        return Ok(entry.canonical_name)

    def matrix(self) -> list[dict[str, str]]:
        """GitHub Actions `strategy.matrix.include` rows for the build job."""
        return [
            {
                "os": t.runner,
                "target": t.id,
                "name": t.display_name,
                "artifact_key": t.id,
                "raw_name": t.raw_name,
                "canonical_name": t.canonical_name,
            }
            for t in self
        ]


def default_targets(binary: str) -> tuple[BuildTarget, ...]:
    exe = f"{binary}.exe"
    return (
        BuildTarget(
            id="x86_64-pc-windows-msvc",
            display_name="Windows x64",
            runner="windows-latest",
            raw_name=exe,
            canonical_name=f"{binary}-windows-x64.exe",
        ),
        BuildTarget(
            id="aarch64-apple-darwin",
            display_name="macOS Apple Silicon",
            runner="macos-15",
            raw_name=binary,
            canonical_name=f"{binary}-macos-arm64",
        ),
        BuildTarget(
            id="x86_64-apple-darwin",
            display_name="macOS Intel",
            runner="macos-15",
            raw_name=binary,
            canonical_name=f"{binary}-macos-x64",
        ),
        BuildTarget(
            id="aarch64-unknown-linux-gnu",
            display_name="Linux ARM64",
            runner="ubuntu-latest",
            raw_name=binary,
            canonical_name=f"{binary}-linux-arm64",
        ),
        BuildTarget(
            id="x86_64-unknown-linux-gnu",
            display_name="Linux x64",
            runner="ubuntu-latest",
            raw_name=binary,
            canonical_name=f"{binary}-linux-x64",
        ),
    )
