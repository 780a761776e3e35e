from __future__ import annotations

import hashlib
import io
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from integrity.errors import FileAccessError, InvalidArgumentError, UnsupportedAlgorithmError
from integrity.util.hashing import DigestRegistry, default_registry, digest_bytes, digest_file, digest_stream


class CountingStream(io.BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.reads: list[int] = []

    def read(self, size: int = -1) -> bytes:  # type: ignore[override]
        self.reads.append(size)
        return super().read(size)


class StreamingDigestTests(unittest.TestCase):
    def test_empty_stream_matches_reference(self) -> None:
        self.assertEqual(
            digest_stream("SHA256", io.BytesIO(b""), 4),
            hashlib.sha256(b"").hexdigest(),
        )

    def test_single_chunk_matches_reference(self) -> None:
        data = b"abc"
        self.assertEqual(digest_stream("SHA384", io.BytesIO(data), 64), hashlib.sha384(data).hexdigest())

    def test_multi_chunk_reads_bounded_chunks(self) -> None:
        data = bytes(range(256)) * 10
        stream = CountingStream(data)

        digest = digest_stream("sha512", stream, 100)

        self.assertEqual(digest, hashlib.sha512(data).hexdigest())
        self.assertTrue(all(size == 100 for size in stream.reads))
        self.assertEqual(len(stream.reads), 27)
        self.assertEqual(stream.read(), b"")

    def test_digest_is_lowercase_hex(self) -> None:
        digest = digest_stream("SHA256", io.BytesIO(b"hello world"), 3)
        self.assertEqual(digest, digest.lower())
        self.assertEqual(len(digest), 64)

    def test_invalid_chunk_size(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            digest_stream("SHA256", io.BytesIO(b"x"), 0)

    def test_unsupported_algorithm(self) -> None:
        with self.assertRaises(UnsupportedAlgorithmError) as ctx:
            digest_stream("WHIRLPOOL", io.BytesIO(b"x"), 8)
        self.assertIn("SHA256", ctx.exception.known)

    def test_empty_algorithm_name(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            digest_stream("", io.BytesIO(b"x"), 8)

    def test_digest_bytes_for_text_uses_encoding(self) -> None:
        self.assertEqual(
            digest_bytes("SHA256", "héllo", encoding="latin-1"),
            hashlib.sha256("héllo".encode("latin-1")).hexdigest(),
        )
        self.assertEqual(digest_bytes("md5", b"payload"), hashlib.md5(b"payload").hexdigest())

    def test_digest_file_wraps_os_errors(self) -> None:
        with TemporaryDirectory() as tmpdir:
            missing = Path(tmpdir) / "missing.bin"
            with self.assertRaises(FileAccessError) as ctx:
                digest_file("SHA256", missing)
        self.assertEqual(ctx.exception.path, str(missing))
        self.assertIsInstance(ctx.exception.__cause__, FileNotFoundError)


class FakeHash:
    def __init__(self) -> None:
        self.size = 0

    def update(self, data: bytes) -> None:
        self.size += len(data)

    def digest(self) -> bytes:
        return self.size.to_bytes(2, "big")


class DigestRegistryTests(unittest.TestCase):
    def test_lookup_is_case_insensitive(self) -> None:
        registry = default_registry()
        self.assertIn("sha-256", registry)
        self.assertEqual(registry.require("sha256"), "SHA256")

    def test_restricted_default_registry(self) -> None:
        registry = default_registry(["sha256"])
        self.assertEqual(registry.names, ("SHA256",))
        with self.assertRaises(UnsupportedAlgorithmError):
            registry.create("SHA512")

    def test_injected_factory_is_used(self) -> None:
        registry = DigestRegistry({"length": FakeHash})
        digest = digest_stream("LENGTH", io.BytesIO(b"x" * 300), 7, registry=registry)
        self.assertEqual(digest, "012c")

    def test_register_rejects_empty_name(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            DigestRegistry().register("  ", FakeHash)


if __name__ == "__main__":
    unittest.main()
