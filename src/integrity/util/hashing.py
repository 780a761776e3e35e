"""Streaming digest helpers and the named algorithm registry."""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import BinaryIO, Protocol

from integrity.errors import FileAccessError, InvalidArgumentError, UnsupportedAlgorithmError

DEFAULT_CHUNK_SIZE = 16 * 1024


class HashState(Protocol):
    """The incremental interface exposed by ``hashlib`` objects."""

    def update(self, data: bytes, /) -> None: ...

    def digest(self) -> bytes: ...


HashFactory = Callable[[], HashState]


class DigestRegistry:
    """Maps algorithm names to constructors of streaming hash states.

    Lookups are case-insensitive; names are reported upper-cased.
    """

    def __init__(self, factories: Mapping[str, HashFactory] | None = None) -> None:
        self._factories: dict[str, HashFactory] = {}
        for name, factory in (factories or {}).items():
            self.register(name, factory)

    def register(self, name: str, factory: HashFactory) -> None:
        key = _normalise(name)
        if not key:
            raise InvalidArgumentError("Algorithm name must be non-empty.")
        self._factories[key] = factory

    def create(self, name: str) -> HashState:
        """Return a fresh hash state for `name`."""
        key = _normalise(name)
        if not key:
            raise InvalidArgumentError("Algorithm name must be non-empty.")
        try:
            factory = self._factories[key]
        except KeyError:
            raise UnsupportedAlgorithmError(name, self.names) from None
        return factory()

    def require(self, name: str) -> str:
        """Validate `name` and return its canonical spelling."""
        key = _normalise(name)
        if not key:
            raise InvalidArgumentError("Algorithm name must be non-empty.")
        if key not in self._factories:
            raise UnsupportedAlgorithmError(name, self.names)
        return key

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _normalise(name) in self._factories


def default_registry(names: Iterable[str] | None = None) -> DigestRegistry:
    """Build a registry backed by ``hashlib``.

    SHA-256/384/512 are always available; MD5 and SHA-1 are included so that
    records produced with them can still be verified.
    """
    factories: dict[str, HashFactory] = {
        "SHA256": hashlib.sha256,
        "SHA384": hashlib.sha384,
        "SHA512": hashlib.sha512,
        "SHA1": hashlib.sha1,
        "MD5": hashlib.md5,
    }
    if names is not None:
        wanted = {_normalise(name) for name in names}
        factories = {name: factory for name, factory in factories.items() if name in wanted}
    return DigestRegistry(factories)


def digest_stream(
    algorithm: str,
    stream: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    *,
    registry: DigestRegistry | None = None,
) -> str:
    """Return the lowercase hex digest of everything left in `stream`.

    The stream is read `chunk_size` bytes at a time and left exhausted.
    """
    if chunk_size < 1:
        raise InvalidArgumentError(f"chunk_size must be >= 1, got {chunk_size}")
    state = (registry or default_registry()).create(algorithm)
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        state.update(chunk)
    return state.digest().hex()


def digest_bytes(
    algorithm: str,
    data: bytes | str,
    *,
    encoding: str = "utf-8",
    registry: DigestRegistry | None = None,
) -> str:
    """Return the hex digest of an in-memory buffer or string."""
    if isinstance(data, str):
        data = data.encode(encoding)
    state = (registry or default_registry()).create(algorithm)
    state.update(data)
    return state.digest().hex()


def digest_file(
    algorithm: str,
    path: Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    *,
    registry: DigestRegistry | None = None,
) -> str:
    """Return the hex digest of the file at `path`."""
    try:
        with path.open("rb") as handle:
            return digest_stream(algorithm, handle, chunk_size, registry=registry)
    except OSError as exc:
        raise FileAccessError(path, exc.strerror or str(exc)) from exc


def _normalise(name: str) -> str:
    return name.strip().upper().replace("-", "")


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DigestRegistry",
    "HashFactory",
    "HashState",
    "default_registry",
    "digest_bytes",
    "digest_file",
    "digest_stream",
]
