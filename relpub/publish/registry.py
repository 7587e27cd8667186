"""GitHub release registry client built on the `gh` CLI.

Every call goes through `_run_gh`, which applies the retry policy: transient
failures (timeouts, connection errors, HTTP 429/5xx) are retried with
exponential backoff inside a bounded total time, everything else is returned
to the caller on the first attempt.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from time import monotonic, sleep
from typing import Protocol

from relpub.core.result import Err, Ok, Result
from relpub.core.structured import as_str_dict, get_list, get_str
from relpub.platform.process import ProcessError
from relpub.platform.process import run as run_process
from relpub.publish.cancel import CancelToken
from relpub.publish.config import RetryConfig
from relpub.publish.errors import PublishError, PublishErrorKind
from relpub.publish.model import MappedArtifact, Release, UploadResult
from relpub.publish.timeouts import (
    GH_ATTEMPT_TIMEOUT_SECONDS,
    GH_OPERATION_TIMEOUT_SECONDS,
    GH_RETRY_ATTEMPTS,
    GH_RETRY_BASE_DELAY_SECONDS,
    GH_RETRY_MAX_DELAY_SECONDS,
)

_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
    "no such host",
    "unexpected eof",
    "rate limit",
    "http 429",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)

_AUTH_MARKERS = (
    "http 401",
    "bad credentials",
    "gh auth login",
    "authentication required",
    "requires authentication",
    "resource not accessible by integration",
)


class ReleaseRegistry(Protocol):
    def exists(self, tag: str) -> Result[bool, PublishError]: ...

    def create(self, tag: str, title: str, notes: str) -> Result[Release, PublishError]: ...

    def upload(self, tag: str, artifact: MappedArtifact) -> UploadResult: ...


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    attempts: int = GH_RETRY_ATTEMPTS
    base_delay: float = GH_RETRY_BASE_DELAY_SECONDS
    max_delay: float = GH_RETRY_MAX_DELAY_SECONDS
    attempt_timeout: float = GH_ATTEMPT_TIMEOUT_SECONDS
    total_timeout: float = GH_OPERATION_TIMEOUT_SECONDS

    @classmethod
    def from_config(cls, cfg: RetryConfig) -> RetryPolicy:
        return cls(
            attempts=max(1, cfg.attempts),
            base_delay=cfg.base_delay,
            max_delay=cfg.max_delay,
            attempt_timeout=cfg.attempt_timeout,
            total_timeout=cfg.total_timeout,
        )

    def delay(self, attempt: int) -> float:
        """Backoff before retry number `attempt + 1` (0-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay)


@dataclass(frozen=True, slots=True)
class _GhOutcome:
    result: Result[str, ProcessError]
    attempts: int
    interrupted: bool = False


def is_transient_gh_error(error: ProcessError) -> bool:
    if error.timed_out:
        return True
    text = f"{error.stderr}\n{error.stdout}".lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


def is_auth_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return any(marker in text for marker in _AUTH_MARKERS)


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "release not found" in text or "http 404" in text


def _is_already_exists(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "already_exists" in text or "already exists" in text


def ensure_gh_available() -> Result[None, PublishError]:
    if shutil.which("gh") is None:
        return Err(
            PublishError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


class GhReleaseRegistry:
    """Release registry backed by GitHub Releases.

    The token is only ever placed in the child environment as GH_TOKEN and is
    scrubbed from anything this class returns or traces.
    """

    def __init__(
        self,
        *,
        workdir: Path,
        token: str | None,
        repo: str | None = None,
        policy: RetryPolicy | None = None,
        cancel: CancelToken | None = None,
        env: Mapping[str, str] | None = None,
        trace: Callable[[str], None] | None = None,
    ) -> None:
        self._workdir = workdir
        self._token = token
        self._repo = repo
        self._policy = policy or RetryPolicy()
        self._cancel = cancel
        self._trace = trace

        child_env = dict(os.environ if env is None else env)
        child_env["GH_PROMPT_DISABLED"] = "1"
        if token:
            child_env["GH_TOKEN"] = token
        self._env = child_env

    def view(self, tag: str) -> Result[Release | None, PublishError]:
        outcome = self._run_gh(
            ["release", "view", tag, "--json", "tagName,name,body,assets"],
        )
        if isinstance(outcome.result, Err):
            error = outcome.result.error
            if _is_not_found(error):
                return Ok(None)
            return Err(
                self._failure(outcome, op=f"release view {tag}", rejected_kind="registry_rejected")
            )

        try:
            obj: object = json.loads(outcome.result.value)
        except json.JSONDecodeError as e:
            return Err(
                PublishError(
                    kind="registry_unavailable",
                    message=f"gh release view returned invalid JSON: {e}",
                    hint=tag,
                )
            )

        data = as_str_dict(obj)
        if data is None:
            return Err(
                PublishError(kind="registry_unavailable", message=f"unexpected release payload: {tag}")
            )

        assets: list[str] = []
        for item in get_list(data, "assets") or []:
            asset = as_str_dict(item)
            if asset is None:
                continue
            name = get_str(asset, "name")
            if name is not None:
                assets.append(name)

        return Ok(
            Release(
                tag=get_str(data, "tagName") or tag,
                title=get_str(data, "name") or "",
                notes=get_str(data, "body") or "",
                assets=tuple(sorted(assets)),
            )
        )

    def exists(self, tag: str) -> Result[bool, PublishError]:
        found = self.view(tag)
        if isinstance(found, Err):
            return found
        return Ok(found.value is not None)

    def create(self, tag: str, title: str, notes: str) -> Result[Release, PublishError]:
        outcome = self._run_gh(
            ["release", "create", tag, "--title", title, "--notes", notes],
        )
        if isinstance(outcome.result, Err):
            if _is_already_exists(outcome.result.error):
                return Err(
                    PublishError(
                        kind="release_exists",
                        message=f"release {tag} already exists",
                    )
                )
            return Err(
                self._failure(outcome, op=f"release create {tag}", rejected_kind="registry_rejected")
            )
        return Ok(Release(tag=tag, title=title, notes=notes))

    def upload(self, tag: str, artifact: MappedArtifact) -> UploadResult:
        name = artifact.canonical_name
        if not artifact.content:
            return UploadResult(
                target=artifact.target,
                canonical_name=name,
                outcome="failed",
                error=PublishError(
                    kind="upload_rejected",
                    message=f"{name}: artifact is empty",
                ),
            )

        with tempfile.TemporaryDirectory(prefix="relpub-") as tmp:
            staged = Path(tmp) / name
            staged.write_bytes(artifact.content)
            # --clobber replaces an existing asset of the same name instead of
            # adding a second one.
            outcome = self._run_gh(["release", "upload", tag, str(staged), "--clobber"])

        if isinstance(outcome.result, Err):
            return UploadResult(
                target=artifact.target,
                canonical_name=name,
                outcome="failed",
                error=self._failure(outcome, op=f"upload {name}", rejected_kind="upload_rejected"),
                attempts=outcome.attempts,
            )
        return UploadResult(
            target=artifact.target,
            canonical_name=name,
            outcome="uploaded",
            attempts=outcome.attempts,
        )

    def _command(self, args: list[str]) -> list[str]:
        cmd = ["gh", *args]
        if self._repo:
            cmd += ["--repo", self._repo]
        return cmd

    def _redact(self, text: str) -> str:
        if self._token:
            return text.replace(self._token, "***")
        return text

    def _run_gh(self, args: list[str]) -> _GhOutcome:
        policy = self._policy
        cmd = self._command(args)
        deadline = monotonic() + policy.total_timeout

        attempts = 0
        last: Result[str, ProcessError] = Err(
            ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr="Command timed out before start")
        )
        for attempt in range(max(1, policy.attempts)):
            if attempt > 0 and self._cancel is not None and self._cancel.cancelled:
                return _GhOutcome(result=last, attempts=attempts, interrupted=True)

            remaining = deadline - monotonic()
            if remaining <= 0:
                break

            if self._trace is not None:
                self._trace(self._redact("$ " + " ".join(cmd)))
            attempts += 1
            last = run_process(
                cmd,
                cwd=self._workdir,
                env=self._env,
                timeout=min(policy.attempt_timeout, remaining),
                new_session=True,
            )
            if isinstance(last, Ok):
                return _GhOutcome(result=last, attempts=attempts)

            if attempt == policy.attempts - 1 or not is_transient_gh_error(last.error):
                break

            delay = policy.delay(attempt)
            if monotonic() + delay >= deadline:
                break
            if self._trace is not None:
                self._trace(f"transient gh failure, retrying in {delay:.1f}s")
            sleep(delay)

        return _GhOutcome(result=last, attempts=attempts)

    def _failure(
        self, outcome: _GhOutcome, *, op: str, rejected_kind: PublishErrorKind
    ) -> PublishError:
        assert isinstance(outcome.result, Err)
        error = outcome.result.error
        detail = self._redact(error.stderr.strip() or error.stdout.strip()) or None

        if outcome.interrupted:
            return PublishError(kind="cancelled", message=f"{op}: cancelled before retry", hint=detail)
        if is_transient_gh_error(error):
            return PublishError(
                kind="registry_unavailable",
                message=f"{op}: registry unavailable after {outcome.attempts} attempt(s)",
                hint=detail,
            )
        if is_auth_gh_error(error):
            return PublishError(
                kind="auth_required",
                message=f"{op}: authentication failed",
                hint="Check the token in the configured environment variable",
            )
        return PublishError(
            kind=rejected_kind,
            message=f"{op}: rejected by registry",
            hint=detail,
        )
