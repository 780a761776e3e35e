from __future__ import annotations

import asyncio
import hashlib
import struct
import threading
from pathlib import Path
from typing import Mapping

from integrity.util.sizes import MiB

SAMPLE_FILES: Mapping[str, bytes] = {
    "empty.bin": b"",
    "ten.txt": b"0123456789",
    "docs/readme.md": b"# integrity\n" * 40,
    "docs/nested/large.bin": bytes(range(256)) * (MiB // 256),
    "images/photo.raw": b"\x89RAW" + b"\x00\x01" * 5000,
}


def write_tree(root: Path, files: Mapping[str, bytes] = SAMPLE_FILES) -> dict[str, str]:
    """Write `files` under `root` and return their expected SHA-256 digests."""

    expected: dict[str, str] = {}
    for relative, content in files.items():
        dest = root / relative
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(content)
        expected[relative] = hashlib.sha256(content).hexdigest()
    return expected


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""

    return asyncio.run(coro)


def varint_string(value: str) -> bytes:
    """Encode `value` with a 7-bit variable-length byte count prefix."""

    raw = value.encode("utf-8")
    length = len(raw)
    prefix = bytearray()
    while length >= 0x80:
        prefix.append((length & 0x7F) | 0x80)
        length >>= 7
    prefix.append(length)
    return bytes(prefix) + raw


def int32(value: int) -> bytes:
    return struct.pack("<i", value)


def legacy_v1_record(algorithm: str, globs: list[str], entries: list[tuple[str, str]]) -> bytes:
    """Hand-craft a version 1 record carrying `globs` in its header."""

    parts = [b"INTEGRITY", int32(1), varint_string(algorithm), int32(len(globs))]
    parts.extend(varint_string(glob) for glob in globs)
    parts.append(int32(len(entries)))
    for path, digest in entries:
        parts.append(varint_string(path))
        parts.append(varint_string(digest))
    return b"".join(parts)


class GatedHash:
    """A hash state whose ``update`` holds its thread until `expected` threads are inside.

    `peak` records the most threads seen in ``update`` at once; the gate opens
    after `timeout` seconds even if fewer arrive.
    """

    def __init__(self, expected: int, timeout: float = 5.0) -> None:
        self.expected = expected
        self.timeout = timeout
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()
        self._gate = threading.Event()

    def factory(self):
        hash_state = hashlib.sha256()
        outer = self

        class _State:
            def update(self, data: bytes) -> None:
                with outer._lock:
                    outer.active += 1
                    outer.peak = max(outer.peak, outer.active)
                    if outer.active >= outer.expected:
                        outer._gate.set()
                outer._gate.wait(outer.timeout)
                with outer._lock:
                    outer.active -= 1
                hash_state.update(data)

            def digest(self) -> bytes:
                return hash_state.digest()

        return _State()
