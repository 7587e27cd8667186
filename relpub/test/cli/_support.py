from __future__ import annotations

from pathlib import Path

from relpub.cli.context import CLIContext
from relpub.output.console import MockConsole
from relpub.publish.config import PublishConfig
from relpub.publish.targets import default_targets

CARGO_TOML = """\
[package]
name = "app"
version = "1.2.3"
edition = "2021"
"""


def make_project(root: Path, *, staged: int = 5) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "Cargo.toml").write_text(CARGO_TOML, encoding="utf-8")
    for t in default_targets("app")[:staged]:
        slot = root / "artifacts" / t.id
        slot.mkdir(parents=True)
        (slot / t.raw_name).write_bytes(t.id.encode())
    return root


def make_ctx(root: Path, config: PublishConfig | None = None) -> CLIContext:
    return CLIContext(project_root=root, config=config or PublishConfig(), console=MockConsole())
