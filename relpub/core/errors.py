"""Exit codes for the relpub CLI.

Calling automation relies on these values to tell "some artifacts missing"
apart from "nothing published", so they must remain stable:
- 0: Success (every artifact uploaded)
- 1: User error in `stage`, `targets` or `version` (bad arguments, invalid config)
- 3: Partial failure (some artifacts uploaded, some not)
- 4: Fatal failure (nothing published; every `publish` failure before the
  first upload, including config, gh and token problems)
- 5: I/O error (unreadable file, unwritable transfer dir)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    PARTIAL_FAILURE = 3
    FATAL_FAILURE = 4
    IO_ERROR = 5
