from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PublishErrorKind = Literal[
    "metadata_parse",
    "unknown_target",
    "unexpected_artifact",
    "missing_artifact",
    "name_collision",
    "invalid_config",
    "registry_unavailable",
    "release_exists",
    "registry_rejected",
    "upload_rejected",
    "auth_required",
    "gh_missing",
    "cancelled",
]


@dataclass(frozen=True, slots=True)
class PublishError:
    """Error payload shared by every publication step.

    `hint` carries registry stderr or a remediation; it never contains the
    authentication token.
    """

    kind: PublishErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
