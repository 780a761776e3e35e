"""Cooperative cancellation signal shared by every layer of a batch."""

from __future__ import annotations

import threading

from integrity.errors import BatchCancelledError


class CancelToken:
    """A one-way flag that may be set from any thread or signal handler."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise BatchCancelledError()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<CancelToken {state}>"


__all__ = ["CancelToken"]
