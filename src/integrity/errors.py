"""Exception hierarchy shared by the record codec and the processing engine."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence


class IntegrityError(RuntimeError):
    """Base class for every error raised by the integrity core."""


class InvalidArgumentError(IntegrityError, ValueError):
    """Raised when a call receives malformed parameters."""


class UnsupportedAlgorithmError(IntegrityError):
    """Raised when a digest algorithm is not known to the registry."""

    def __init__(self, name: str, known: Sequence[str] = ()) -> None:
        self.name = name
        self.known = tuple(known)
        message = f"Unsupported digest algorithm {name!r}"
        if self.known:
            message += f"; supported: {', '.join(self.known)}"
        super().__init__(message)


class CorruptFormatError(IntegrityError):
    """Raised when a persisted record is truncated or malformed."""


class UnsupportedVersionError(IntegrityError):
    """Raised when a record was written by a newer format revision."""

    def __init__(self, version: int, supported: int) -> None:
        self.version = version
        self.supported = supported
        super().__init__(f"Unsupported record version {version} (this reader understands <= {supported})")


class FileAccessError(IntegrityError):
    """Raised when a file cannot be opened or read."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        super().__init__(f"Cannot read {self.path}: {reason}")


@dataclass(frozen=True)
class ItemFailure:
    """An item of a batch together with the exception its operation raised."""

    item: Any
    error: BaseException


class BatchError(IntegrityError):
    """Common base for batch outcomes that did not fully succeed."""

    def __init__(self, message: str, failures: Sequence[ItemFailure] = (), partial: Any = None) -> None:
        self.failures = list(failures)
        self.partial = partial
        super().__init__(message)


class BatchCancelledError(BatchError):
    """Raised once all in-flight work unwound after cancellation was requested."""

    def __init__(self, failures: Sequence[ItemFailure] = (), partial: Any = None) -> None:
        super().__init__("Batch cancelled", failures, partial)


class PartialFailureError(BatchError):
    """Raised when some items of a batch failed while the others were processed."""

    def __init__(self, failures: Sequence[ItemFailure], partial: Any = None) -> None:
        count = len(failures)
        noun = "item" if count == 1 else "items"
        super().__init__(f"{count} {noun} failed", failures, partial)


__all__ = [
    "BatchCancelledError",
    "BatchError",
    "CorruptFormatError",
    "FileAccessError",
    "IntegrityError",
    "InvalidArgumentError",
    "ItemFailure",
    "PartialFailureError",
    "UnsupportedAlgorithmError",
    "UnsupportedVersionError",
]
