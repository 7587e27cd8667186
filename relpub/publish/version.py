from __future__ import annotations

import json
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path

from relpub.core.result import Err, Ok, Result
from relpub.core.structured import StrDict, as_str_dict, get_str, get_table
from relpub.publish.errors import PublishError
from relpub.publish.model import Version


# https://semver.org grammar, without a leading "v".
_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

DESCRIPTORS: tuple[str, ...] = ("Cargo.toml", "pyproject.toml", "package.json")


@dataclass(frozen=True, slots=True)
class ProjectMetadata:
    name: str | None
    version: Version
    descriptor: Path


def parse_version(text: str) -> Version | None:
    m = _SEMVER_RE.match(text.strip())
    if m is None:
        return None
    return Version(
        major=int(m.group(1)),
        minor=int(m.group(2)),
        patch=int(m.group(3)),
        prerelease=m.group(4),
        build=m.group(5),
    )


def find_descriptor(project_root: Path) -> Path | None:
    for name in DESCRIPTORS:
        path = project_root / name
        if path.is_file():
            return path
    return None


def read_metadata(
    project_root: Path, *, descriptor: str | None = None
) -> Result[ProjectMetadata, PublishError]:
    """Read name and version from the project descriptor.

    `descriptor` (relative to `project_root`) overrides the lookup order
    Cargo.toml, pyproject.toml, package.json.
    """
    if descriptor is not None:
        path: Path | None = project_root / descriptor
    else:
        path = find_descriptor(project_root)

    if path is None or not path.is_file():
        return Err(
            PublishError(
                kind="metadata_parse",
                message=f"no project descriptor found in {project_root}",
                hint=descriptor or ", ".join(DESCRIPTORS),
            )
        )

    data = _load_descriptor(path)
    if isinstance(data, Err):
        return data

    name, raw = _name_and_version(path.name, data.value)
    if raw is None:
        return Err(
            PublishError(
                kind="metadata_parse",
                message=f"missing version in {path.name}",
                hint=str(path),
            )
        )

    version = parse_version(raw)
    if version is None:
        return Err(
            PublishError(
                kind="metadata_parse",
                message=f"invalid semantic version in {path.name}: {raw!r}",
                hint="Expected MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]",
            )
        )

    return Ok(ProjectMetadata(name=name, version=version, descriptor=path))


def resolve_version(
    project_root: Path, *, descriptor: str | None = None
) -> Result[Version, PublishError]:
    meta = read_metadata(project_root, descriptor=descriptor)
    if isinstance(meta, Err):
        return meta
    return Ok(meta.value.version)


def _load_descriptor(path: Path) -> Result[StrDict, PublishError]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            PublishError(
                kind="metadata_parse",
                message=f"failed to read {path.name}: {e}",
                hint=str(path),
            )
        )

    obj: object
    if path.suffix == ".json":
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as e:
            return Err(
                PublishError(
                    kind="metadata_parse",
                    message=f"invalid JSON in {path.name}: {e}",
                    hint=str(path),
                )
            )
    else:
        try:
            obj = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            return Err(
                PublishError(
                    kind="metadata_parse",
                    message=f"invalid TOML in {path.name}: {e}",
                    hint=str(path),
                )
            )

    data = as_str_dict(obj)
    if data is None:
        return Err(
            PublishError(
                kind="metadata_parse",
                message=f"invalid root in {path.name}",
                hint=str(path),
            )
        )
    return Ok(data)


def _name_and_version(filename: str, data: StrDict) -> tuple[str | None, str | None]:
    if filename == "package.json":
        return (get_str(data, "name"), get_str(data, "version"))

    if filename == "pyproject.toml":
        project = get_table(data, "project") or {}
        return (get_str(project, "name"), get_str(project, "version"))

    # Cargo.toml: a member crate may inherit `version.workspace = true`.
    package = get_table(data, "package") or {}
    workspace = get_table(data, "workspace") or {}
    workspace_package = get_table(workspace, "package") or {}
    name = get_str(package, "name")
    version = get_str(package, "version") or get_str(workspace_package, "version")
    return (name, version)
