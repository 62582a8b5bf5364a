"""
Tee a download to the client and into the blob directory at the same time.

The producer side (``tee``) forwards every origin chunk to the consumer and
hands a reference to a ``BlobWriter`` without waiting. The writer drains a
bounded queue into a private ``.part`` file on its own task. Only when the
origin stream completed and every chunk reached disk is the file renamed
into place and the commit callback run.
"""

import asyncio
import logging
import os
import secrets
from contextlib import aclosing
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional

import aiofiles

logger = logging.getLogger(__name__)

QUEUE_DEPTH = 100


class BlobWriter:
    """Background writer for one blob file."""

    def __init__(
        self,
        file_path: Path,
        on_commit: Callable[[Path], Awaitable[None]],
        queue_depth: int = QUEUE_DEPTH,
    ) -> None:
        self.file_path = Path(file_path)
        self.part_path = self.file_path.with_name(
            f".{self.file_path.name}.{secrets.token_hex(4)}.part"
        )
        self._on_commit = on_commit
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue(maxsize=queue_depth)
        self._failed = False
        self._sealed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def failed(self) -> bool:
        return self._failed

    def start(self) -> "BlobWriter":
        self._task = asyncio.create_task(
            self._run(), name=f"blob-writer:{self.file_path.name}"
        )
        return self

    def feed(self, chunk: bytes) -> None:
        """Queue ``chunk`` for writing without blocking the caller."""
        if self._failed or self._task is None:
            return
        try:
            self._queue.put_nowait(chunk)
        except asyncio.QueueFull:
            logger.warning(
                "Blob writer queue full, not caching %s", self.file_path.name
            )
            self.abort()

    async def finish(self) -> bool:
        """Signal end of stream and wait for the commit. True if the blob was stored."""
        if self._task is None:
            return False
        if self._failed:
            self.abort()
            await asyncio.wait([self._task])
            return False
        await self._queue.put(None)
        self._sealed = True
        # The origin body is complete; let the commit finish even if our caller goes away.
        return await asyncio.shield(self._task)

    def abort(self) -> None:
        """
        Give up on this blob; the partial file is removed.

        No-op once the whole body was queued or the writer has finished.
        """
        if self._sealed or (self._task is not None and self._task.done()):
            return
        self._failed = True
        if self._task is not None:
            self._task.cancel()

    async def _run(self) -> bool:
        try:
            async with aiofiles.open(self.part_path, "wb") as fh:
                while (chunk := await self._queue.get()) is not None:
                    await fh.write(chunk)
                await fh.flush()
            os.replace(self.part_path, self.file_path)
        except asyncio.CancelledError:
            self._discard()
            raise
        except OSError as e:
            logger.warning("Unable to write cache file %s: %s", self.file_path, e)
            self._failed = True
            self._discard()
            # Keep consuming so a producer waiting in finish() is not stuck.
            while await self._queue.get() is not None:
                pass
            return False

        try:
            await self._on_commit(self.file_path)
        except Exception:
            logger.exception("Unable to register cache file %s", self.file_path)
            return False
        return True

    def _discard(self) -> None:
        try:
            self.part_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Unable to remove partial file %s: %s", self.part_path, e)


async def tee(
    source: AsyncIterator[bytes], writer: Optional[BlobWriter]
) -> AsyncIterator[bytes]:
    """
    Yield every chunk of ``source`` while feeding a copy to ``writer``.

    The writer is finished only if ``source`` ran to completion; an origin
    error or the consumer closing the stream early aborts it.
    """
    completed = False
    try:
        async with aclosing(source) as chunks:
            async for chunk in chunks:
                if writer is not None:
                    writer.feed(chunk)
                yield chunk
        completed = True
    finally:
        if writer is not None and not completed:
            writer.abort()
    if writer is not None:
        await writer.finish()
