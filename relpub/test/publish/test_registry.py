from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path

import pytest

from relpub.core.result import Err, Ok, Result
from relpub.platform.process import ProcessError
from relpub.publish import registry as registry_mod
from relpub.publish.cancel import CancelToken
from relpub.publish.model import BuildTarget, MappedArtifact
from relpub.publish.registry import GhReleaseRegistry, RetryPolicy

TOKEN = "ghp_secret_token_value"

LINUX = BuildTarget(
    id="x86_64-unknown-linux-gnu",
    display_name="Linux x64",
    runner="ubuntu-latest",
    raw_name="app",
    canonical_name="app-linux-x64",
)


def _err(*, stderr: str, returncode: int = 1) -> Err[ProcessError]:
    return Err(
        ProcessError(
            command=("gh", "release"),
            returncode=returncode,
            stdout="",
            stderr=stderr,
        )
    )


class FakeGh:
    def __init__(self, responses: list[Result[str, ProcessError]]) -> None:
        self.responses = responses
        self.calls: list[list[str]] = []
        self.envs: list[Mapping[str, str] | None] = []
        self.staged: list[bytes] = []

    def __call__(
        self,
        cmd: list[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        new_session: bool = False,
    ) -> Result[str, ProcessError]:
        del cwd, timeout
        assert new_session is True
        self.calls.append(cmd)
        self.envs.append(env)
        if cmd[1:3] == ["release", "upload"]:
            self.staged.append(Path(cmd[4]).read_bytes())
        return self.responses.pop(0)


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(registry_mod, "sleep", recorded.append)
    return recorded


def _registry(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    responses: list[Result[str, ProcessError]],
    **kwargs: object,
) -> tuple[GhReleaseRegistry, FakeGh]:
    fake = FakeGh(responses)
    monkeypatch.setattr(registry_mod, "run_process", fake)
    reg = GhReleaseRegistry(workdir=tmp_path, token=TOKEN, env={"PATH": "/usr/bin"}, **kwargs)  # type: ignore[arg-type]
    return reg, fake


def _artifact(content: bytes = b"ELF") -> MappedArtifact:
    return MappedArtifact(target=LINUX, canonical_name="app-linux-x64", content=content)


class TestRetryPolicy:
    def test_exponential_backoff_is_capped(self) -> None:
        policy = RetryPolicy(base_delay=1.0, max_delay=3.0)
        assert [policy.delay(n) for n in range(4)] == [1.0, 2.0, 3.0, 3.0]


class TestExists:
    def test_found(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]) -> None:
        payload = json.dumps(
            {"tagName": "v1.0.0", "name": "Release v1.0.0", "body": "", "assets": [{"name": "app-linux-x64"}]}
        )
        reg, fake = _registry(monkeypatch, tmp_path, [Ok(payload)])

        assert reg.exists("v1.0.0") == Ok(True)
        assert fake.calls[0][:4] == ["gh", "release", "view", "v1.0.0"]

    def test_not_found_is_false_not_error(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(monkeypatch, tmp_path, [_err(stderr="release not found")])

        assert reg.exists("v1.0.0") == Ok(False)
        assert len(fake.calls) == 1
        assert sleeps == []

    def test_retries_transient_then_succeeds(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(
            monkeypatch,
            tmp_path,
            [_err(stderr="HTTP 503 Service Unavailable"), Ok('{"tagName": "v1.0.0"}')],
        )

        assert reg.exists("v1.0.0") == Ok(True)
        assert len(fake.calls) == 2
        assert sleeps == [1.0]

    def test_exhausted_retries_are_registry_unavailable(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(
            monkeypatch,
            tmp_path,
            [_err(stderr="HTTP 502 Bad Gateway")] * 3,
        )

        result = reg.exists("v1.0.0")

        assert isinstance(result, Err)
        assert result.error.kind == "registry_unavailable"
        assert len(fake.calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_timeout_is_transient(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(
            monkeypatch,
            tmp_path,
            [_err(stderr="Command timed out after 60.0s", returncode=-1), Ok("{}")],
        )

        assert reg.exists("v1.0.0") == Ok(True)
        assert len(fake.calls) == 2

    def test_auth_failure_is_not_retried(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(monkeypatch, tmp_path, [_err(stderr="HTTP 401: Bad credentials")])

        result = reg.exists("v1.0.0")

        assert isinstance(result, Err)
        assert result.error.kind == "auth_required"
        assert len(fake.calls) == 1


class TestCreate:
    def test_created(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]) -> None:
        reg, fake = _registry(monkeypatch, tmp_path, [Ok("https://github.com/o/r/releases/tag/v2.0.0\n")])

        result = reg.create("v2.0.0", "Release v2.0.0", "notes")

        assert isinstance(result, Ok)
        assert result.value.title == "Release v2.0.0"
        cmd = fake.calls[0]
        assert cmd[:4] == ["gh", "release", "create", "v2.0.0"]
        assert cmd[cmd.index("--title") + 1] == "Release v2.0.0"

    def test_already_exists(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]) -> None:
        reg, _ = _registry(
            monkeypatch,
            tmp_path,
            [_err(stderr="HTTP 422: Validation Failed\nRelease.tag_name already exists")],
        )

        result = reg.create("v2.0.0", "Release v2.0.0", "notes")

        assert isinstance(result, Err)
        assert result.error.kind == "release_exists"

    def test_repo_flag(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]) -> None:
        reg, fake = _registry(monkeypatch, tmp_path, [Ok("")], repo="owner/name")

        reg.create("v2.0.0", "t", "n")

        assert fake.calls[0][-2:] == ["--repo", "owner/name"]


class TestUpload:
    def test_uploads_with_clobber_under_canonical_name(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(monkeypatch, tmp_path, [Ok("")])

        result = reg.upload("v1.0.0", _artifact(b"binary"))

        assert result.succeeded
        assert result.attempts == 1
        cmd = fake.calls[0]
        assert cmd[:4] == ["gh", "release", "upload", "v1.0.0"]
        assert Path(cmd[4]).name == "app-linux-x64"
        assert "--clobber" in cmd
        assert fake.staged == [b"binary"]
        assert not Path(cmd[4]).exists()

    def test_empty_content_is_rejected_without_network(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(monkeypatch, tmp_path, [])

        result = reg.upload("v1.0.0", _artifact(b""))

        assert result.outcome == "failed"
        assert result.error is not None and result.error.kind == "upload_rejected"
        assert fake.calls == []

    def test_permanent_rejection_not_retried(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(monkeypatch, tmp_path, [_err(stderr="HTTP 422: Validation Failed")])

        result = reg.upload("v1.0.0", _artifact())

        assert result.outcome == "failed"
        assert result.error is not None and result.error.kind == "upload_rejected"
        assert len(fake.calls) == 1

    def test_transient_retried(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(
            monkeypatch,
            tmp_path,
            [_err(stderr="connection reset by peer"), _err(stderr="HTTP 500"), Ok("")],
        )

        result = reg.upload("v1.0.0", _artifact())

        assert result.succeeded
        assert result.attempts == 3
        assert len(fake.calls) == 3

    def test_cancel_stops_retrying(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        cancel = CancelToken()
        reg, fake = _registry(
            monkeypatch,
            tmp_path,
            [_err(stderr="HTTP 503"), Ok("")],
            cancel=cancel,
        )
        monkeypatch.setattr(registry_mod, "sleep", lambda _s: cancel.cancel("stop"))

        result = reg.upload("v1.0.0", _artifact())

        assert result.outcome == "failed"
        assert result.error is not None and result.error.kind == "cancelled"
        assert len(fake.calls) == 1


class TestToken:
    def test_token_only_in_child_env(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, fake = _registry(monkeypatch, tmp_path, [Ok("{}")])

        reg.exists("v1.0.0")

        env = fake.envs[0]
        assert env is not None and env["GH_TOKEN"] == TOKEN
        assert env["GH_PROMPT_DISABLED"] == "1"
        assert all(TOKEN not in part for part in fake.calls[0])

    def test_token_redacted_from_errors(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        reg, _ = _registry(
            monkeypatch,
            tmp_path,
            [_err(stderr=f"HTTP 422: bad request for token {TOKEN}")],
        )

        result = reg.upload("v1.0.0", _artifact())

        assert result.error is not None
        assert TOKEN not in result.error.pretty()
        assert "***" in result.error.pretty()

    def test_trace_never_contains_token(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, sleeps: list[float]
    ) -> None:
        lines: list[str] = []
        reg, _ = _registry(monkeypatch, tmp_path, [Ok("")], trace=lines.append)

        reg.create("v1.0.0", TOKEN, "notes")

        assert lines
        assert all(TOKEN not in line for line in lines)
