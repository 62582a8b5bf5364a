import tempfile
import unittest
from pathlib import Path

from helpers import chunks, drain

from ghinfo.service.tee import BlobWriter, tee


class TestTee(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.destination = self.dir / "blob.bin"
        self.committed: list[Path] = []

    def tearDown(self):
        self.tmp.cleanup()

    async def _commit(self, path: Path) -> None:
        self.committed.append(path)

    def _writer(self, **kwargs) -> BlobWriter:
        return BlobWriter(self.destination, self._commit, **kwargs).start()

    def _leftovers(self) -> list[str]:
        return sorted(p.name for p in self.dir.iterdir())

    async def test_client_and_file_get_identical_bytes(self):
        parts = [bytes([i]) * 1000 for i in range(20)]
        body = await drain(tee(chunks(*parts), self._writer()))

        self.assertEqual(body, b"".join(parts))
        self.assertEqual(self.destination.read_bytes(), body)
        self.assertEqual(self.committed, [self.destination])
        self.assertEqual(self._leftovers(), ["blob.bin"])

    async def test_origin_error_aborts_write(self):
        """An origin failure mid-stream reaches the client and no blob is kept."""

        async def failing():
            yield b"partial"
            raise ConnectionError("reset")

        writer = self._writer()
        with self.assertRaises(ConnectionError):
            await drain(tee(failing(), writer))

        self.assertTrue(writer.failed)
        self.assertEqual(self.committed, [])
        # Let the cancelled writer task clean up its part file.
        await writer.finish()
        self.assertEqual(self._leftovers(), [])

    async def test_consumer_closing_early_aborts_write(self):
        writer = self._writer()
        stream = tee(chunks(b"a", b"b", b"c"), writer)
        await stream.__anext__()
        await stream.aclose()

        self.assertTrue(writer.failed)
        self.assertFalse(await writer.finish())
        self.assertEqual(self.committed, [])
        self.assertFalse(self.destination.exists())

    async def test_queue_overflow_abandons_caching(self):
        """A writer that falls behind is dropped; the client still gets every byte."""
        parts = [b"x" * 10 for _ in range(50)]
        writer = self._writer(queue_depth=1)

        body = await drain(tee(chunks(*parts), writer))

        self.assertEqual(body, b"x" * 500)
        self.assertTrue(writer.failed)
        self.assertEqual(self.committed, [])
        self.assertFalse(self.destination.exists())

    async def test_write_failure_does_not_affect_client(self):
        self.destination = self.dir / "missing" / "blob.bin"
        writer = self._writer()
        with self.assertLogs("ghinfo.service.tee", level="WARNING"):
            body = await drain(tee(chunks(b"a", b"b"), writer))

        self.assertEqual(body, b"ab")
        self.assertEqual(self.committed, [])

    async def test_commit_failure_is_logged(self):
        async def broken_commit(path: Path) -> None:
            raise RuntimeError("index unavailable")

        writer = BlobWriter(self.destination, broken_commit).start()
        with self.assertLogs("ghinfo.service.tee", level="ERROR"):
            body = await drain(tee(chunks(b"a"), writer))
        self.assertEqual(body, b"a")

    async def test_without_writer(self):
        self.assertEqual(await drain(tee(chunks(b"a", b"b"), None)), b"ab")


if __name__ == "__main__":
    unittest.main()
