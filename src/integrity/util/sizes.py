"""Parsing of human-readable byte sizes such as ``16KiB``."""

from __future__ import annotations

import re

from integrity.errors import InvalidArgumentError

KiB = 1024
MiB = 1024 * KiB
GiB = 1024 * MiB

_UNITS = {
    "": 1,
    "b": 1,
    "k": KiB,
    "kb": KiB,
    "kib": KiB,
    "m": MiB,
    "mb": MiB,
    "mib": MiB,
    "g": GiB,
    "gb": GiB,
    "gib": GiB,
}

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


def parse_size(value: str | int) -> int:
    """Return the number of bytes described by `value`.

    Units are binary multiples and case-insensitive, so ``16k``, ``16KB`` and
    ``16KiB`` all mean 16384 bytes.
    """
    if isinstance(value, bool):
        raise InvalidArgumentError(f"Invalid size {value!r}")
    if isinstance(value, int):
        return value

    match = _SIZE_RE.match(str(value))
    if not match:
        raise InvalidArgumentError(f"Invalid size {value!r}")
    number, unit = match.groups()
    multiplier = _UNITS.get(unit.lower())
    if multiplier is None:
        raise InvalidArgumentError(f"Unknown size unit {unit!r} in {value!r}")
    return int(float(number) * multiplier)


def format_size(size: int) -> str:
    """Render `size` bytes with the largest binary unit that keeps it >= 1."""
    for unit, multiplier in (("GiB", GiB), ("MiB", MiB), ("KiB", KiB)):
        if size >= multiplier:
            return f"{size / multiplier:.2f} {unit}"
    return f"{size} B"


__all__ = ["GiB", "KiB", "MiB", "format_size", "parse_size"]
