"""Root resolution and glob expansion producing the paths to hash."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from integrity.errors import InvalidArgumentError


def resolve_root(root: str | Path) -> Path:
    """Return the resolved audit root, which must be an existing directory."""
    resolved = Path(root).expanduser().resolve()
    if not resolved.is_dir():
        raise InvalidArgumentError(f"Root directory {resolved} could not be found")
    return resolved


def expand_globs(root: Path, patterns: Iterable[str]) -> list[str]:
    """Return the sorted, de-duplicated files under `root` matching any pattern.

    Paths are relative to `root` and always use forward slashes.
    """
    found: set[str] = set()
    for pattern in patterns:
        if not pattern:
            raise InvalidArgumentError("Glob patterns must be non-empty.")
        try:
            matches = list(root.glob(pattern))
        except (NotImplementedError, ValueError) as exc:
            raise InvalidArgumentError(f"Invalid glob {pattern!r}: {exc}") from exc
        for candidate in matches:
            if candidate.is_file():
                found.add(candidate.relative_to(root).as_posix())
    return sorted(found)


__all__ = ["expand_globs", "resolve_root"]
