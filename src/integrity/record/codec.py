"""Binary encoding of integrity records.

Layout (little-endian)::

    magic      9 bytes  b"INTEGRITY"
    version    int32    currently 2
    algorithm  string
    [v1 only]  int32 glob count, then that many strings (discarded)
    count      int32
    entries    count x (path string, digest string)

Strings are UTF-8 prefixed by their byte length as a 7-bit variable-length
integer, low group first.
"""

from __future__ import annotations

import io
import logging
import struct
from pathlib import Path
from typing import BinaryIO

from integrity.errors import CorruptFormatError, FileAccessError, InvalidArgumentError, UnsupportedVersionError
from integrity.record.model import Entry, IntegrityRecord

LOGGER = logging.getLogger(__name__)

MAGIC = b"INTEGRITY"
CURRENT_VERSION = 2
LEGACY_GLOBS_VERSION = 1

_INT32 = struct.Struct("<i")
_MAX_VARINT_BYTES = 5
_READ_SLICE = 64 * 1024


def encode(record: IntegrityRecord) -> bytes:
    """Return the current-version binary form of `record`."""
    buffer = io.BytesIO()
    write_record(record, buffer)
    return buffer.getvalue()


def decode(data: bytes) -> IntegrityRecord:
    """Parse a record from `data`; trailing bytes are ignored."""
    return read_record(io.BytesIO(data))


def write_record(record: IntegrityRecord, sink: BinaryIO) -> None:
    """Write `record` to `sink`. Legacy fields are never written."""
    if not record.algorithm:
        raise InvalidArgumentError("Record algorithm name must be non-empty.")
    sink.write(MAGIC)
    sink.write(_INT32.pack(CURRENT_VERSION))
    _write_string(sink, record.algorithm)
    sink.write(_INT32.pack(len(record.entries)))
    for entry in record.entries:
        _write_string(sink, entry.relative_path)
        _write_string(sink, entry.hex_digest)


def read_record(source: BinaryIO) -> IntegrityRecord:
    """Read one record from `source`, accepting every version up to the current one."""
    magic = source.read(len(MAGIC))
    if magic != MAGIC:
        raise CorruptFormatError("Invalid file header")

    version = _read_int32(source, "version")
    if version > CURRENT_VERSION:
        raise UnsupportedVersionError(version, CURRENT_VERSION)
    if version < LEGACY_GLOBS_VERSION:
        raise CorruptFormatError(f"Invalid record version {version}")

    algorithm = _read_string(source, "algorithm name")
    if not algorithm:
        raise CorruptFormatError("Empty algorithm name")

    if version == LEGACY_GLOBS_VERSION:
        glob_count = _read_int32(source, "glob count")
        if glob_count < 0:
            raise CorruptFormatError(f"Invalid glob count {glob_count}")
        for _ in range(glob_count):
            _read_string(source, "glob")
        LOGGER.debug("Skipped %d legacy glob(s) in version %d record", glob_count, version)

    count = _read_int32(source, "entry count")
    if count < 0:
        raise CorruptFormatError(f"Invalid file count {count}")

    entries = []
    for _ in range(count):
        path = _read_string(source, "entry path")
        digest = _read_string(source, "entry digest")
        entries.append(Entry(path, digest))
    return IntegrityRecord(algorithm, entries)


def save_record(record: IntegrityRecord, dest: Path) -> Path:
    """Persist `record` at `dest`, replacing any existing file."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = dest.with_suffix(dest.suffix + ".tmp")
    try:
        with tmp_path.open("wb") as handle:
            write_record(record, handle)
        tmp_path.replace(dest)
    except OSError as exc:
        raise FileAccessError(dest, exc.strerror or str(exc)) from exc
    return dest


def load_record(path: Path) -> IntegrityRecord:
    """Read the record stored at `path`."""
    try:
        with path.open("rb") as handle:
            return read_record(handle)
    except OSError as exc:
        raise FileAccessError(path, exc.strerror or str(exc)) from exc


def _read_exact(source: BinaryIO, size: int, what: str) -> bytes:
    """Read `size` bytes without trusting `size` for the allocation."""
    parts: list[bytes] = []
    remaining = size
    while remaining > 0:
        part = source.read(min(remaining, _READ_SLICE))
        if not part:
            raise CorruptFormatError(f"Truncated record while reading {what}")
        parts.append(part)
        remaining -= len(part)
    return b"".join(parts)


def _read_int32(source: BinaryIO, what: str) -> int:
    (value,) = _INT32.unpack(_read_exact(source, _INT32.size, what))
    return value


def _read_varint(source: BinaryIO, what: str) -> int:
    value = 0
    for index in range(_MAX_VARINT_BYTES):
        byte = _read_exact(source, 1, what)[0]
        value |= (byte & 0x7F) << (7 * index)
        if not byte & 0x80:
            return value
    raise CorruptFormatError(f"Malformed length prefix for {what}")


def _write_varint(sink: BinaryIO, value: int) -> None:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    sink.write(bytes(out))


def _read_string(source: BinaryIO, what: str) -> str:
    length = _read_varint(source, what)
    if length > 0x7FFFFFFF:
        raise CorruptFormatError(f"Invalid string length {length} for {what}")
    raw = _read_exact(source, length, what)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptFormatError(f"Invalid UTF-8 in {what}") from exc


def _write_string(sink: BinaryIO, value: str) -> None:
    raw = value.encode("utf-8")
    _write_varint(sink, len(raw))
    sink.write(raw)


__all__ = [
    "CURRENT_VERSION",
    "MAGIC",
    "decode",
    "encode",
    "load_record",
    "read_record",
    "save_record",
    "write_record",
]
