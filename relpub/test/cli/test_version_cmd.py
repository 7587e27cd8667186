from __future__ import annotations

from pathlib import Path

import pytest
import typer

from relpub.core.errors import ErrorCode
from relpub.output.console import MockConsole
from relpub.test.cli._support import make_ctx, make_project


def test_version_tag_only(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    import relpub.cli.commands.version_cmd as version_cmd

    ctx = make_ctx(make_project(tmp_path, staged=0))
    monkeypatch.setattr(version_cmd, "build_context", lambda **_: ctx)

    version_cmd.version(project=None, tag_only=True)

    assert capsys.readouterr().out.strip() == "v1.2.3"


def test_version_details(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relpub.cli.commands.version_cmd as version_cmd

    ctx = make_ctx(make_project(tmp_path, staged=0))
    monkeypatch.setattr(version_cmd, "build_context", lambda **_: ctx)

    version_cmd.version(project=None, tag_only=False)

    console = ctx.console
    assert isinstance(console, MockConsole)
    assert console.messages == ["descriptor: Cargo.toml", "version: 1.2.3", "tag: v1.2.3"]


def test_version_without_metadata(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relpub.cli.commands.version_cmd as version_cmd

    ctx = make_ctx(tmp_path)
    monkeypatch.setattr(version_cmd, "build_context", lambda **_: ctx)

    with pytest.raises(typer.Exit) as exc:
        version_cmd.version(project=None, tag_only=False)

    assert exc.value.exit_code == int(ErrorCode.FATAL_FAILURE)
