"""File tree integrity auditing: build, persist and verify digest records."""

from .engine.cancel import CancelToken
from .engine.checker import RecordVerifier, verify_record
from .engine.generator import RecordBuilder, build_record
from .record import Entry, IntegrityRecord, decode, encode

__version__ = "0.3.0"

__all__ = [
    "CancelToken",
    "Entry",
    "IntegrityRecord",
    "RecordBuilder",
    "RecordVerifier",
    "build_record",
    "decode",
    "encode",
    "verify_record",
]
