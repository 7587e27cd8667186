"""Process and filesystem helpers."""

from .files import atomic_write_bytes
from .process import ProcessError, run

__all__ = ["ProcessError", "atomic_write_bytes", "run"]
