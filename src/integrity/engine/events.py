"""Progress events emitted while records are built or verified."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from integrity.record.model import Entry


@dataclass(frozen=True)
class FileProcessed:
    """A file was hashed while building a record."""

    path: str
    entry: Entry
    elapsed: float


@dataclass(frozen=True)
class CheckFailed:
    """A recomputed digest did not match the stored one."""

    entry: Entry
    actual_digest: str
    elapsed: float


@dataclass(frozen=True)
class CheckFinished:
    """An entry was verified; `failed` tells whether its digest mismatched."""

    entry: Entry
    failed: bool
    elapsed: float


Event = Union[FileProcessed, CheckFailed, CheckFinished]
Listener = Callable[[Event], None]


class EventHub:
    """Fan-out of events to subscribed listeners.

    Listeners may be called from any worker; delivery order across workers
    is not defined.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener` and return a callable that removes it again."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: Event) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)


__all__ = ["CheckFailed", "CheckFinished", "Event", "EventHub", "FileProcessed", "Listener"]
