"""Result type for explicit error handling.

Registry calls, metadata parsing and transfer lookups all return a Result
instead of raising, so each caller decides how a failure maps onto the
publication state machine.

Usage:
    def parse_port(text: str) -> Result[int, str]:
        if not text.isdigit():
            return Err(f"not a port: {text}")
        return Ok(int(text))

    match parse_port("443"):
        case Ok(value):
            print(value)
        case Err(error):
            print(error)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result holding `value`."""

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed result holding `error`."""

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Union[Ok[T], Err[E]]
