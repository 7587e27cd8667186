"""Typed loading of relpub.toml.

Every field has a default, so a project without relpub.toml publishes the
five standard targets of its metadata package name.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from relpub.core.result import Err, Ok, Result
from relpub.core.structured import StrDict, as_str_dict, get_float, get_int, get_list, get_str, get_table
from relpub.publish.model import BuildTarget
from relpub.publish.timeouts import (
    GH_ATTEMPT_TIMEOUT_SECONDS,
    GH_OPERATION_TIMEOUT_SECONDS,
    GH_RETRY_ATTEMPTS,
    GH_RETRY_BASE_DELAY_SECONDS,
    GH_RETRY_MAX_DELAY_SECONDS,
)

__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "PublishConfig",
    "RetryConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "relpub.toml"

DEFAULT_TITLE = "Release {tag}"
DEFAULT_NOTES = "Auto-generated release for version {tag}"
DEFAULT_TOKEN_ENV = "GH_TOKEN"
FALLBACK_TOKEN_ENV = "GITHUB_TOKEN"


@dataclass(frozen=True, slots=True)
class ConfigError:
    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class RetryConfig:
    attempts: int = GH_RETRY_ATTEMPTS
    base_delay: float = GH_RETRY_BASE_DELAY_SECONDS
    max_delay: float = GH_RETRY_MAX_DELAY_SECONDS
    attempt_timeout: float = GH_ATTEMPT_TIMEOUT_SECONDS
    total_timeout: float = GH_OPERATION_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class PublishConfig:
    repo: str | None = None  # owner/name; gh infers it from the checkout when None
    binary: str | None = None
    metadata: str | None = None
    artifacts_dir: str = "artifacts"
    title: str = DEFAULT_TITLE
    notes: str = DEFAULT_NOTES
    token_env: str = DEFAULT_TOKEN_ENV
    retry: RetryConfig = field(default_factory=RetryConfig)
    targets: tuple[BuildTarget, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Result[PublishConfig, ConfigError]:
        release: StrDict = get_table(data, "release") or {}
        retry: StrDict = get_table(data, "retry") or {}

        targets = _parse_targets(get_list(data, "targets") or [])
        if isinstance(targets, Err):
            return targets

        for key, template in (("title", get_str(release, "title")), ("notes", get_str(release, "notes"))):
            if template is None:
                continue
            try:
                template.format(tag="v0.0.0")
            except (KeyError, IndexError, ValueError) as e:
                return Err(ConfigError(f"invalid release.{key} template: {e}"))

        attempts = get_int(retry, "attempts")
        if attempts is not None and attempts < 1:
            return Err(ConfigError("retry.attempts must be >= 1"))

        for key in ("attempt_timeout", "total_timeout"):
            timeout = get_float(retry, key)
            if timeout is not None and timeout <= 0:
                return Err(ConfigError(f"retry.{key} must be > 0"))

        return Ok(
            cls(
                repo=get_str(release, "repo"),
                binary=get_str(release, "binary"),
                metadata=get_str(release, "metadata"),
                artifacts_dir=get_str(release, "artifacts_dir") or "artifacts",
                title=get_str(release, "title") or DEFAULT_TITLE,
                notes=get_str(release, "notes") or DEFAULT_NOTES,
                token_env=get_str(release, "token_env") or DEFAULT_TOKEN_ENV,
                retry=RetryConfig(
                    attempts=attempts or GH_RETRY_ATTEMPTS,
                    base_delay=_non_negative(get_float(retry, "base_delay"), GH_RETRY_BASE_DELAY_SECONDS),
                    max_delay=_non_negative(get_float(retry, "max_delay"), GH_RETRY_MAX_DELAY_SECONDS),
                    attempt_timeout=get_float(retry, "attempt_timeout") or GH_ATTEMPT_TIMEOUT_SECONDS,
                    total_timeout=get_float(retry, "total_timeout") or GH_OPERATION_TIMEOUT_SECONDS,
                ),
                targets=targets.value,
            )
        )


def _non_negative(value: float | None, default: float) -> float:
    if value is None or value < 0:
        return default
    return value


def _parse_targets(items: list[object]) -> Result[tuple[BuildTarget, ...], ConfigError]:
    out: list[BuildTarget] = []
    for i, item in enumerate(items):
        row = as_str_dict(item)
        if row is None:
            return Err(ConfigError(f"targets[{i}] must be a table"))

        target_id = get_str(row, "id")
        raw = get_str(row, "raw")
        canonical = get_str(row, "canonical")
        if target_id is None or raw is None or canonical is None:
            return Err(ConfigError(f"targets[{i}] requires id, raw and canonical"))
        if "/" in canonical or "\\" in canonical:
            return Err(ConfigError(f"targets[{i}].canonical must be a flat filename: {canonical}"))

        out.append(
            BuildTarget(
                id=target_id,
                display_name=get_str(row, "name") or target_id,
                runner=get_str(row, "runner") or "ubuntu-latest",
                raw_name=raw,
                canonical_name=canonical,
            )
        )
    return Ok(tuple(out))


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[PublishConfig, ConfigError]:
    """Load and validate relpub.toml.

    Args:
        path: Path to the config file.

    Returns:
        Ok(PublishConfig) on success, Err(ConfigError) on failure.
    """
    data = _parse_toml(path)
    if isinstance(data, Err):
        return data

    result = PublishConfig.from_dict(data.value)
    if isinstance(result, Err):
        return Err(ConfigError(result.error.message, path=path))
    return result


def load_config_or_default(project_root: Path) -> Result[PublishConfig, ConfigError]:
    path = project_root / CONFIG_FILENAME
    if not path.exists():
        return Ok(PublishConfig())
    return load_config(path)
