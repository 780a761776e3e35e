"""Build an integrity record by hashing a set of files under a root."""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Iterable
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path

from integrity.engine.cancel import CancelToken
from integrity.engine.events import EventHub, FileProcessed, Listener
from integrity.engine.parallel import for_each, resolve_parallelism
from integrity.errors import BatchError, InvalidArgumentError
from integrity.record.model import Entry, IntegrityRecord
from integrity.util.hashing import DEFAULT_CHUNK_SIZE, DigestRegistry, default_registry, digest_file

LOGGER = logging.getLogger(__name__)


class RecordBuilder:
    """Hashes files relative to `root` and collects them into a record.

    Subscribe to :attr:`events` before calling :meth:`build` to receive a
    :class:`FileProcessed` event per hashed file.
    """

    def __init__(
        self,
        algorithm: str,
        root: str | Path,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        registry: DigestRegistry | None = None,
    ) -> None:
        if chunk_size < 1:
            raise InvalidArgumentError(f"chunk_size must be >= 1, got {chunk_size}")
        self.registry = registry or default_registry()
        self.algorithm = self.registry.require(algorithm)
        self.root = Path(root)
        self.chunk_size = chunk_size
        self.events = EventHub()

    async def build(
        self,
        paths: Iterable[str],
        *,
        parallelism: int = 0,
        cancel_token: CancelToken | None = None,
        fail_fast: bool = False,
    ) -> IntegrityRecord:
        """Hash every path and return the complete record.

        If any file fails, the batch error carries the record of the files
        that did succeed as ``partial``.
        """
        entries: list[Entry] = []
        workers = resolve_parallelism(parallelism)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="integrity-gen") as pool:

            async def process(path: str) -> None:
                entries.append(await self.process_file(path, executor=pool))

            try:
                await for_each(
                    paths,
                    process,
                    parallelism=workers,
                    cancel_token=cancel_token,
                    fail_fast=fail_fast,
                )
            except BatchError as exc:
                exc.partial = IntegrityRecord(self.algorithm, entries)
                raise

        LOGGER.debug("Hashed %d file(s) with %s", len(entries), self.algorithm)
        return IntegrityRecord(self.algorithm, entries)

    async def process_file(self, path: str, *, executor: Executor | None = None) -> Entry:
        """Hash a single file on `executor` and emit its :class:`FileProcessed` event."""
        job = functools.partial(digest_file, self.algorithm, self.root / path, self.chunk_size, registry=self.registry)
        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        digest = await loop.run_in_executor(executor, job)
        entry = Entry(path, digest)
        self.events.emit(FileProcessed(path, entry, time.perf_counter() - start))
        return entry


async def build_record(
    paths: Iterable[str],
    algorithm: str,
    root: str | Path,
    parallelism: int = 0,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel_token: CancelToken | None = None,
    *,
    listeners: Iterable[Listener] = (),
    registry: DigestRegistry | None = None,
    fail_fast: bool = False,
) -> IntegrityRecord:
    """Functional front door to :class:`RecordBuilder`."""
    builder = RecordBuilder(algorithm, root, chunk_size=chunk_size, registry=registry)
    for listener in listeners:
        builder.events.subscribe(listener)
    return await builder.build(
        paths,
        parallelism=parallelism,
        cancel_token=cancel_token,
        fail_fast=fail_fast,
    )


__all__ = ["RecordBuilder", "build_record"]
