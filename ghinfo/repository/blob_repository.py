"""Index of downloaded asset bodies kept in the blob directory."""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from ghinfo.repository.keys import blob_key
from ghinfo.repository.ttl_store import DEFAULT_CAPACITY, TTLStore, unix_now
from ghinfo.schema.cache import BlobDescriptor

logger = logging.getLogger(__name__)


class BlobRepository:
    """
    Maps upstream URLs to cached files and evicts the least recently used.

    Two maps are kept: key -> descriptor (expiring with the descriptor) and
    file path -> key, used to find the descriptor of a file found on disk
    during cleanup. Both are updated under one lock so a ``store`` is never
    observed in one map but not the other.
    """

    def __init__(
        self,
        blob_dir: str | Path,
        ttl_seconds: int,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self.blob_dir = Path(blob_dir).resolve()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._descriptors: TTLStore[BlobDescriptor] = TTLStore(
            ttl_seconds, capacity=capacity, clock=clock
        )
        self._path_to_key: dict[Path, str] = {}
        self._lock = asyncio.Lock()

    async def lookup(self, url: str) -> Optional[BlobDescriptor]:
        """
        Return the descriptor for ``url`` if its file exists and has not expired.

        A hit refreshes ``last_accessed_at``. A stale descriptor is left in
        place; the next ``store`` for the URL or a cleanup replaces it.
        """
        key = blob_key(url)
        async with self._lock:
            descriptor = self._descriptors.get(key)
            if descriptor is None:
                return None
            now = self._clock()
            if descriptor.expires_at <= now:
                return None
            if not await asyncio.to_thread(descriptor.file_path.exists):
                return None
            touched = descriptor.model_copy(
                update={"last_accessed_at": max(descriptor.last_accessed_at, now)}
            )
            self._descriptors.insert(key, touched, expires_at=touched.expires_at)
        return touched.model_copy()

    async def store(
        self,
        url: str,
        file_path: str | Path,
        original_filename: str,
        content_type: Optional[str],
    ) -> BlobDescriptor:
        """Register a fully written file for ``url``, replacing any previous entry."""
        key = blob_key(url)
        now = self._clock()
        descriptor = BlobDescriptor(
            url=url,
            file_path=self._normalize(file_path),
            original_filename=original_filename,
            content_type=content_type,
            expires_at=now + self.ttl_seconds,
            last_accessed_at=now,
        )
        async with self._lock:
            self._descriptors.insert(key, descriptor, expires_at=descriptor.expires_at)
            self._path_to_key[descriptor.file_path] = key
        logger.debug("Blob cached: %s -> %s", url, descriptor.file_path)
        return descriptor

    async def cleanup(self, max_files: int) -> int:
        """
        Keep the ``max_files`` most recently accessed blobs and delete the rest.

        Only files with a reverse-map entry and a live descriptor take part;
        orphans and expired entries are left alone. Returns the number of
        files deleted. Directory scans and deletes run in a worker thread.
        """
        async with self._lock:
            candidates = await asyncio.to_thread(self._collect_live)
            candidates.sort(key=lambda d: d.last_accessed_at, reverse=True)
            if len(candidates) <= max_files:
                return 0

            deleted = await asyncio.to_thread(self._unlink_all, candidates[max_files:])
            for descriptor in deleted:
                self._path_to_key.pop(descriptor.file_path, None)
                self._descriptors.invalidate(blob_key(descriptor.url))
                logger.debug(
                    "Evicted cached file %s (url: %s)", descriptor.file_path, descriptor.url
                )

        logger.info(
            "Blob cache cleanup finished: kept %d files, deleted %d files",
            max_files,
            len(deleted),
        )
        return len(deleted)

    def _unlink_all(self, descriptors: list[BlobDescriptor]) -> list[BlobDescriptor]:
        deleted = []
        for descriptor in descriptors:
            try:
                descriptor.file_path.unlink()
            except OSError as e:
                logger.warning(
                    "Unable to delete cached file %s: %s", descriptor.file_path, e
                )
                continue
            deleted.append(descriptor)
        return deleted

    # Runs in a worker thread while the caller holds the lock, so neither map changes meanwhile.
    def _collect_live(self) -> list[BlobDescriptor]:
        try:
            files = [path for path in self.blob_dir.iterdir() if path.is_file()]
        except OSError as e:
            logger.warning("Unable to read blob directory %s: %s", self.blob_dir, e)
            return []

        now = self._clock()
        live = []
        for path in files:
            key = self._path_to_key.get(path)
            if key is None:
                continue
            descriptor = self._descriptors.peek(key)
            if descriptor is None:
                continue
            if descriptor.expires_at > now and descriptor.file_path.exists():
                live.append(descriptor)
        return live

    def _normalize(self, file_path: str | Path) -> Path:
        path = Path(file_path)
        if not path.is_absolute():
            path = self.blob_dir / path
        return path.parent.resolve() / path.name
