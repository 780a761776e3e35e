"""Command-line entry points: generate, check and print integrity records."""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import typer

from integrity.config import ConfigError, IntegrityConfig, dump_example_config, load_config
from integrity.engine.cancel import CancelToken
from integrity.engine.checker import RecordVerifier
from integrity.engine.events import CheckFailed, CheckFinished, Event, FileProcessed
from integrity.engine.generator import RecordBuilder
from integrity.errors import BatchCancelledError, BatchError, IntegrityError, PartialFailureError
from integrity.record.codec import load_record, save_record
from integrity.util.logging import configure_logging, format_elapsed
from integrity.util.paths import expand_globs, resolve_root
from integrity.util.report import write_report
from integrity.util.sizes import format_size

T = TypeVar("T")

EXIT_VIOLATIONS = 1
EXIT_ERROR = 2
EXIT_CANCELLED = 130

app = typer.Typer(add_completion=False, help="File tree integrity auditing CLI")


class ProgressLogger:
    """Logs `Progress: n/total` roughly every `step_percent` of the items."""

    def __init__(self, logger: logging.Logger, total: int, step_percent: float) -> None:
        self.logger = logger
        self.total = total
        self.delta = max(int(total * step_percent / 100), 1)
        self.count = 0
        self._lock = threading.Lock()

    def tick(self) -> None:
        with self._lock:
            self.count += 1
            count = self.count
        if count % self.delta == 0:
            self.logger.info("Progress: %d/%d", count, self.total)


def _load(config: Optional[Path], overrides: dict[str, Any]) -> IntegrityConfig:
    try:
        return load_config(config, overrides={key: value for key, value in overrides.items() if value is not None})
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=EXIT_ERROR) from exc


def _run(batch: Callable[[], Awaitable[T]], token: CancelToken) -> T:
    """Run `batch` on a fresh event loop, turning SIGINT into a cancel request."""

    async def main() -> T:
        loop = asyncio.get_running_loop()
        installed = False
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel)
            installed = True
        except (NotImplementedError, RuntimeError, ValueError):
            logging.getLogger("integrity").debug("SIGINT handler unavailable; Ctrl+C aborts without cleanup")
        try:
            return await batch()
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)

    return asyncio.run(main())


def _log_failures(logger: logging.Logger, exc: BatchError) -> list[dict[str, str]]:
    rows = []
    for failure in exc.failures:
        logger.error("Failed %s: %s", failure.item, failure.error)
        rows.append({"item": str(getattr(failure.item, "relative_path", failure.item)), "error": str(failure.error)})
    return rows


@app.command()
def gen(
    globs: List[str] = typer.Argument(..., help="The globs to search with"),
    file: Path = typer.Option(..., "--file", "-f", help="The integrity file to write to"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="The directory to use as root"),
    hash_name: Optional[str] = typer.Option(
        None, "--hash", "-h", help="Digest algorithm (SHA256, SHA384 or SHA512 by default)"
    ),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Parallel workers; -1 uses every CPU"),
    buffer_size: Optional[str] = typer.Option(None, "--buffer-size", "-b", help="Read chunk size, e.g. 16KiB"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every hashed file"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML/TOML/JSON configuration file"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON run report here"),
) -> None:
    """Generate a hash integrity file."""

    cfg = _load(
        config,
        {
            "runtime.root": root,
            "runtime.parallelism": threads,
            "runtime.chunk_size": buffer_size,
        },
    )
    logger = configure_logging(log_path=cfg.logging.log_path, verbose=verbose)
    algorithm = (hash_name or cfg.hashing.default_algorithm).strip().upper()

    if len(globs) > cfg.hashing.max_globs:
        logger.error("At most %d globs are accepted, got %d", cfg.hashing.max_globs, len(globs))
        raise typer.Exit(code=EXIT_ERROR)
    if not cfg.hashing.is_allowed(algorithm):
        logger.error(
            "Invalid hash algorithm chosen. Supported ones are: %s", ", ".join(cfg.hashing.allowed_algorithms)
        )
        raise typer.Exit(code=EXIT_ERROR)

    try:
        root_dir = resolve_root(cfg.runtime.root)
        paths = expand_globs(root_dir, globs)
        builder = RecordBuilder(algorithm, root_dir, chunk_size=cfg.runtime.chunk_size)
    except IntegrityError as exc:
        logger.error("Error matching globs: %s", exc)
        raise typer.Exit(code=EXIT_ERROR) from exc

    logger.info("Hashing %d file(s) under %s with %s", len(paths), root_dir, algorithm)
    logger.debug("Chunk size %s, parallelism %d", format_size(cfg.runtime.chunk_size), cfg.runtime.parallelism)
    progress = ProgressLogger(logger, len(paths), cfg.logging.progress_step_percent)

    def on_event(event: Event) -> None:
        if isinstance(event, FileProcessed):
            logger.debug("Hashed '%s' in %s", event.path, format_elapsed(event.elapsed))
            progress.tick()

    builder.events.subscribe(on_event)
    token = CancelToken()
    payload: dict[str, Any] = {"command": "gen", "algorithm": algorithm, "root": root_dir, "files": len(paths)}
    try:
        record = _run(
            lambda: builder.build(
                paths,
                parallelism=cfg.runtime.parallelism,
                cancel_token=token,
                fail_fast=cfg.runtime.fail_fast,
            ),
            token,
        )
    except BatchCancelledError as exc:
        logger.warning("Hashing cancelled after %d file(s); nothing written", progress.count)
        _finish_report(report, {**payload, "status": "cancelled", "failures": _log_failures(logger, exc)})
        raise typer.Exit(code=EXIT_CANCELLED) from exc
    except PartialFailureError as exc:
        failures = _log_failures(logger, exc)
        logger.error("%d file(s) could not be hashed; %s was not written", len(failures), file)
        _finish_report(report, {**payload, "status": "failed", "failures": failures})
        raise typer.Exit(code=EXIT_VIOLATIONS) from exc
    except IntegrityError as exc:
        logger.error("Error while hashing files: %s", exc)
        _finish_report(report, {**payload, "status": "failed", "failures": [{"item": "", "error": str(exc)}]})
        raise typer.Exit(code=EXIT_VIOLATIONS) from exc

    if cfg.runtime.sort_entries:
        record = record.sorted()
    try:
        save_record(record, file)
    except IntegrityError as exc:
        logger.error("Could not write %s: %s", file, exc)
        raise typer.Exit(code=EXIT_ERROR) from exc

    logger.info("Wrote %d entr(ies) to %s", len(record.entries), file)
    _finish_report(report, {**payload, "status": "ok", "record": file})


@app.command()
def check(
    file: Path = typer.Argument(..., help="The integrity file to check"),
    root: Optional[Path] = typer.Argument(None, help="The path to use as root"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Parallel workers; -1 uses every CPU"),
    buffer_size: Optional[str] = typer.Option(None, "--buffer-size", "-b", help="Read chunk size, e.g. 16KiB"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every passed check"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML/TOML/JSON configuration file"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON run report here"),
) -> None:
    """Check files against a hash integrity file."""

    cfg = _load(
        config,
        {"runtime.root": root, "runtime.parallelism": threads, "runtime.chunk_size": buffer_size},
    )
    logger = configure_logging(log_path=cfg.logging.log_path, verbose=verbose)

    try:
        root_dir = resolve_root(cfg.runtime.root)
        record = load_record(file)
        verifier = RecordVerifier(root_dir, chunk_size=cfg.runtime.chunk_size)
        verifier.registry.require(record.algorithm)
    except IntegrityError as exc:
        logger.error("Error while checking the integrity of the files: %s", exc)
        raise typer.Exit(code=EXIT_ERROR) from exc

    total = len(record.entries)
    progress = ProgressLogger(logger, total, cfg.logging.progress_step_percent)

    def on_event(event: Event) -> None:
        if isinstance(event, CheckFailed):
            logger.warning(
                "Integrity violation for '%s' failed in %s.", event.entry.relative_path, format_elapsed(event.elapsed)
            )
        elif isinstance(event, CheckFinished):
            if not event.failed:
                logger.debug(
                    "Integrity check passed for '%s' in %s.",
                    event.entry.relative_path,
                    format_elapsed(event.elapsed),
                )
            progress.tick()

    verifier.events.subscribe(on_event)
    token = CancelToken()
    payload: dict[str, Any] = {"command": "check", "record": file, "algorithm": record.algorithm, "root": root_dir}
    try:
        violations = _run(
            lambda: verifier.verify(
                record,
                parallelism=cfg.runtime.parallelism,
                cancel_token=token,
                fail_fast=cfg.runtime.fail_fast,
            ),
            token,
        )
    except BatchCancelledError as exc:
        logger.warning("Check cancelled after %d of %d file(s)", progress.count, total)
        _finish_report(report, {**payload, "status": "cancelled", "failures": _log_failures(logger, exc)})
        raise typer.Exit(code=EXIT_CANCELLED) from exc
    except BatchError as exc:
        failures = _log_failures(logger, exc)
        violated = sorted(entry.relative_path for entry in (exc.partial or ()))
        logger.error("%d file(s) could not be read, %d violation(s) seen", len(failures), len(violated))
        _finish_report(report, {**payload, "status": "error", "violations": violated, "failures": failures})
        raise typer.Exit(code=EXIT_ERROR) from exc
    except IntegrityError as exc:
        logger.error("Error while checking the integrity of the files: %s", exc)
        raise typer.Exit(code=EXIT_ERROR) from exc

    percentage = len(violations) / total * 100 if total else 0.0
    logger.info("Files checked:         %d", total)
    logger.info("Files violated:        %d", len(violations))
    logger.info("Corruption percentage: %.2f%%", percentage)

    violated = sorted(entry.relative_path for entry in violations)
    _finish_report(
        report,
        {**payload, "status": "violated" if violated else "ok", "files": total, "violations": violated},
    )
    if violations:
        raise typer.Exit(code=EXIT_VIOLATIONS)


@app.command()
def pretty(
    file: Path = typer.Argument(..., help="The integrity file to format"),
) -> None:
    """Print out an integrity file in a human-readable format."""

    try:
        record = load_record(file)
    except IntegrityError as exc:
        typer.echo(f"Error while printing: {exc}", err=True)
        raise typer.Exit(code=EXIT_ERROR) from exc

    typer.echo(f"Hash algorithm used: {record.algorithm}")
    typer.echo(f"Entry count: {len(record.entries)}")
    width = max((len(entry.relative_path) for entry in record.entries), default=0)
    for entry in record.entries:
        typer.echo(f"  {entry.relative_path.ljust(width)}: {entry.hex_digest}")


@app.command("init-config")
def init_config(
    dest: Path = typer.Argument(Path("integrity.yaml"), help="Where to write the default configuration"),
) -> None:
    """Write the default configuration as a starting point."""

    try:
        dump_example_config(dest)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=EXIT_ERROR) from exc
    typer.echo(f"Wrote {dest}")


def _finish_report(dest: Optional[Path], payload: dict[str, Any]) -> None:
    if dest is not None:
        write_report(payload, dest)


def main() -> None:
    app()


__all__ = ["app", "main"]
