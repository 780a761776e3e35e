from __future__ import annotations

import hashlib
import os
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from integrity.engine.cancel import CancelToken
from integrity.engine.checker import RecordVerifier, verify_record
from integrity.engine.events import CheckFailed, CheckFinished, Event
from integrity.errors import BatchCancelledError, FileAccessError, PartialFailureError, UnsupportedAlgorithmError
from integrity.record.model import Entry, IntegrityRecord
from integrity.util.hashing import DigestRegistry
from tests.helpers import GatedHash, run, write_tree


def _record_for(expected: dict[str, str]) -> IntegrityRecord:
    return IntegrityRecord("SHA256", [Entry(path, digest) for path, digest in expected.items()])


class RecordVerifierTests(unittest.TestCase):
    def test_intact_tree_has_no_violations(self) -> None:
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            record = _record_for(write_tree(root))

            for parallelism in (0, 4, -1):
                with self.subTest(parallelism=parallelism):
                    self.assertEqual(run(verify_record(record, root, parallelism)), set())

    def test_single_mutation_is_reported(self) -> None:
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            record = _record_for(write_tree(root))
            (root / "ten.txt").write_bytes(b"0123456780")

            violations = run(verify_record(record, root, 2))

        self.assertEqual([entry.relative_path for entry in violations], ["ten.txt"])

    def test_stored_digest_comparison_ignores_case(self) -> None:
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "a.txt").write_bytes(b"abc")
            record = IntegrityRecord("sha256", [Entry("a.txt", hashlib.sha256(b"abc").hexdigest().upper())])

            self.assertEqual(run(verify_record(record, root)), set())

    def test_events_for_pass_and_fail(self) -> None:
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            record = _record_for(write_tree(root))
            (root / "docs" / "readme.md").write_bytes(b"tampered")
            events: list[Event] = []

            verifier = RecordVerifier(root, chunk_size=512)
            verifier.events.subscribe(events.append)
            run(verifier.verify(record, parallelism=3))

        failed = [event for event in events if isinstance(event, CheckFailed)]
        finished = [event for event in events if isinstance(event, CheckFinished)]
        self.assertEqual([event.entry.relative_path for event in failed], ["docs/readme.md"])
        self.assertEqual(failed[0].actual_digest, hashlib.sha256(b"tampered").hexdigest())
        self.assertEqual(len(finished), len(record.entries))
        self.assertEqual(
            {event.entry.relative_path for event in finished if event.failed},
            {"docs/readme.md"},
        )

    def test_missing_file_is_an_error_not_a_violation(self) -> None:
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            record = _record_for(write_tree(root))
            (root / "empty.bin").unlink()
            (root / "ten.txt").write_bytes(b"changed")

            with self.assertRaises(PartialFailureError) as ctx:
                run(verify_record(record, root, 2))

        failure = ctx.exception.failures[0]
        self.assertEqual(failure.item.relative_path, "empty.bin")
        self.assertIsInstance(failure.error, FileAccessError)
        self.assertEqual({entry.relative_path for entry in ctx.exception.partial}, {"ten.txt"})

    def test_cancellation(self) -> None:
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            record = _record_for(write_tree(root))
            token = CancelToken()
            checked: list[CheckFinished] = []

            def cancel_after_first(event: Event) -> None:
                if isinstance(event, CheckFinished):
                    checked.append(event)
                    token.cancel()

            with self.assertRaises(BatchCancelledError):
                run(verify_record(record, root, 0, token, listeners=[cancel_after_first]))

        self.assertEqual(len(checked), 1)

    def test_parallelism_above_default_executor_size(self) -> None:
        workers = (os.cpu_count() or 1) + 5
        gate = GatedHash(workers)
        registry = DigestRegistry({"GATED": gate.factory})

        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            entries = []
            for index in range(workers):
                name = f"file-{index:04d}.bin"
                content = bytes([index % 256])
                (root / name).write_bytes(content)
                entries.append(Entry(name, hashlib.sha256(content).hexdigest()))

            violations = run(verify_record(IntegrityRecord("GATED", entries), root, workers, registry=registry))

        self.assertEqual(gate.peak, workers)
        self.assertEqual(violations, set())

    def test_cancel_after_last_entry_keeps_result(self) -> None:
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            record = _record_for(write_tree(root))
            (root / "ten.txt").write_bytes(b"changed")
            token = CancelToken()
            seen: list[CheckFinished] = []

            def cancel_on_last(event: Event) -> None:
                if isinstance(event, CheckFinished):
                    seen.append(event)
                    if len(seen) == len(record.entries):
                        token.cancel()

            violations = run(verify_record(record, root, 3, token, listeners=[cancel_on_last]))

        self.assertTrue(token.cancelled)
        self.assertEqual({entry.relative_path for entry in violations}, {"ten.txt"})

    def test_unknown_record_algorithm(self) -> None:
        record = IntegrityRecord("ADLER32", [Entry("a", "00")])
        with self.assertRaises(UnsupportedAlgorithmError):
            run(verify_record(record, "."))


if __name__ == "__main__":
    unittest.main()
