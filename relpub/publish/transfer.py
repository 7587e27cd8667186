"""Artifact transfer between build workers and the publisher.

`DirectoryTransfer` reads and writes the layout produced by
`actions/download-artifact` when it downloads every artifact of a run:
one sub-directory per artifact key holding exactly one raw build output.

    artifacts/
      x86_64-pc-windows-msvc/app.exe
      x86_64-unknown-linux-gnu/app
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from relpub.core.result import Err, Ok, Result
from relpub.platform.files import atomic_write_bytes
from relpub.publish.errors import PublishError
from relpub.publish.model import TransferredArtifact


class ArtifactTransfer(Protocol):
    def keys(self) -> tuple[str, ...]: ...

    def put(self, key: str, source: Path) -> Result[Path, PublishError]: ...

    def get(self, key: str) -> Result[TransferredArtifact, PublishError]: ...


class DirectoryTransfer:
    def __init__(self, root: Path) -> None:
        self.root = root

    def keys(self) -> tuple[str, ...]:
        if not self.root.is_dir():
            return ()
        return tuple(sorted(p.name for p in self.root.iterdir() if p.is_dir()))

    def put(self, key: str, source: Path) -> Result[Path, PublishError]:
        """Store `source` under `key`, replacing whatever was staged before."""
        try:
            content = source.read_bytes()
        except OSError as e:
            return Err(
                PublishError(
                    kind="missing_artifact",
                    message=f"cannot read build output {source}: {e}",
                )
            )

        slot = self.root / key
        dest = slot / source.name
        try:
            if slot.is_dir():
                for stale in slot.iterdir():
                    if stale.is_file() and stale.name != source.name:
                        stale.unlink()
            atomic_write_bytes(dest, content)
        except OSError as e:
            return Err(
                PublishError(
                    kind="missing_artifact",
                    message=f"cannot stage {key}: {e}",
                    hint=str(dest),
                )
            )
        return Ok(dest)

    def get(self, key: str) -> Result[TransferredArtifact, PublishError]:
        slot = self.root / key
        if not slot.is_dir():
            return Err(
                PublishError(
                    kind="missing_artifact",
                    message=f"no artifact for {key}",
                    hint=str(slot),
                )
            )

        files = sorted(p for p in slot.iterdir() if p.is_file() and not p.name.startswith("."))
        if len(files) != 1:
            found = ", ".join(p.name for p in files) or "nothing"
            return Err(
                PublishError(
                    kind="missing_artifact",
                    message=f"expected exactly one file for {key}, found {found}",
                    hint=str(slot),
                )
            )

        path = files[0]
        try:
            content = path.read_bytes()
        except OSError as e:
            return Err(
                PublishError(
                    kind="missing_artifact",
                    message=f"cannot read artifact for {key}: {e}",
                    hint=str(path),
                )
            )
        return Ok(TransferredArtifact(key=key, raw_name=path.name, content=content))
