"""Value objects describing a digest record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from integrity.errors import InvalidArgumentError


@dataclass(frozen=True)
class Entry:
    """A file path relative to the audited root and its hex digest."""

    relative_path: str
    hex_digest: str

    def matches(self, digest: str) -> bool:
        """Compare `digest` against the stored one, ignoring case."""
        return self.hex_digest.lower() == digest.lower()


@dataclass(frozen=True, init=False)
class IntegrityRecord:
    """The algorithm used and the entries produced with it.

    Entries keep their insertion order; duplicate paths are allowed.
    """

    algorithm: str
    entries: tuple[Entry, ...]

    def __init__(self, algorithm: str, entries: Iterable[Entry] = ()) -> None:
        if not algorithm:
            raise InvalidArgumentError("Record algorithm name must be non-empty.")
        object.__setattr__(self, "algorithm", algorithm)
        object.__setattr__(self, "entries", tuple(entries))

    def sorted(self) -> "IntegrityRecord":
        """Return a copy with entries ordered by path."""
        return IntegrityRecord(self.algorithm, sorted(self.entries, key=lambda entry: entry.relative_path))

    def paths(self) -> list[str]:
        return [entry.relative_path for entry in self.entries]


__all__ = ["Entry", "IntegrityRecord"]
