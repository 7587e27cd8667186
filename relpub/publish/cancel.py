from __future__ import annotations

import threading


class CancelToken:
    """Externally raised stop signal.

    Checked between operations only; an in-flight `gh` call is always allowed
    to finish or time out so no artifact is left half-written.
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason
