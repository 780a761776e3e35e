"""Re-hash the entries of a record and report the ones that changed."""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Iterable
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path

from integrity.engine.cancel import CancelToken
from integrity.engine.events import CheckFailed, CheckFinished, EventHub, Listener
from integrity.engine.parallel import for_each, resolve_parallelism
from integrity.errors import BatchError, InvalidArgumentError
from integrity.record.model import Entry, IntegrityRecord
from integrity.util.hashing import DEFAULT_CHUNK_SIZE, DigestRegistry, default_registry, digest_file

LOGGER = logging.getLogger(__name__)


class RecordVerifier:
    """Checks files under `root` against the digests stored in a record.

    A mismatch is a violation, not an error: :meth:`verify` returns the
    violated entries. Unreadable files are batch failures.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        registry: DigestRegistry | None = None,
    ) -> None:
        if chunk_size < 1:
            raise InvalidArgumentError(f"chunk_size must be >= 1, got {chunk_size}")
        self.registry = registry or default_registry()
        self.root = Path(root)
        self.chunk_size = chunk_size
        self.events = EventHub()

    async def verify(
        self,
        record: IntegrityRecord,
        *,
        parallelism: int = 0,
        cancel_token: CancelToken | None = None,
        fail_fast: bool = False,
    ) -> set[Entry]:
        """Return the set of entries whose files no longer match."""
        algorithm = self.registry.require(record.algorithm)
        violations: set[Entry] = set()
        workers = resolve_parallelism(parallelism)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="integrity-check") as pool:

            async def check(entry: Entry) -> None:
                if not await self.check_entry(algorithm, entry, executor=pool):
                    violations.add(entry)

            try:
                await for_each(
                    record.entries,
                    check,
                    parallelism=workers,
                    cancel_token=cancel_token,
                    fail_fast=fail_fast,
                )
            except BatchError as exc:
                exc.partial = violations
                raise

        LOGGER.debug("Checked %d entr(ies), %d violation(s)", len(record.entries), len(violations))
        return violations

    async def check_entry(self, algorithm: str, entry: Entry, *, executor: Executor | None = None) -> bool:
        """Re-hash one entry, emit its events and return whether it still matches."""
        job = functools.partial(
            digest_file, algorithm, self.root / entry.relative_path, self.chunk_size, registry=self.registry
        )
        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        digest = await loop.run_in_executor(executor, job)
        elapsed = time.perf_counter() - start

        failed = not entry.matches(digest)
        if failed:
            self.events.emit(CheckFailed(entry, digest, elapsed))
        self.events.emit(CheckFinished(entry, failed, elapsed))
        return not failed


async def verify_record(
    record: IntegrityRecord,
    root: str | Path,
    parallelism: int = 0,
    cancel_token: CancelToken | None = None,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    listeners: Iterable[Listener] = (),
    registry: DigestRegistry | None = None,
    fail_fast: bool = False,
) -> set[Entry]:
    """Functional front door to :class:`RecordVerifier`."""
    verifier = RecordVerifier(root, chunk_size=chunk_size, registry=registry)
    for listener in listeners:
        verifier.events.subscribe(listener)
    return await verifier.verify(
        record,
        parallelism=parallelism,
        cancel_token=cancel_token,
        fail_fast=fail_fast,
    )


__all__ = ["RecordVerifier", "verify_record"]
