"""In-memory digest records and their binary on-disk form."""

from .codec import CURRENT_VERSION, MAGIC, decode, encode, load_record, read_record, save_record, write_record
from .model import Entry, IntegrityRecord

__all__ = [
    "CURRENT_VERSION",
    "Entry",
    "IntegrityRecord",
    "MAGIC",
    "decode",
    "encode",
    "load_record",
    "read_record",
    "save_record",
    "write_record",
]
