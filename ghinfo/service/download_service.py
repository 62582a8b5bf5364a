"""Release asset downloads served from the blob cache or streamed from GitHub."""

import logging
from contextlib import AsyncExitStack, aclosing
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles
import httpx

from ghinfo.repository.base_repository import CacheRepository
from ghinfo.repository.github_repository import GitHubRepository
from ghinfo.repository.keys import blob_filename, original_filename
from ghinfo.service.errors import StreamInterruptedError
from ghinfo.service.gate import DownloadGate
from ghinfo.service.rate_limit import throttle
from ghinfo.service.tee import BlobWriter, tee

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class DownloadStream:
    """A download ready to be sent: headers, a body and what it holds open."""

    filename: str
    content_type: str
    body: AsyncIterator[bytes]
    cache_status: str
    resources: AsyncExitStack = field(default_factory=AsyncExitStack, repr=False)

    async def aclose(self) -> None:
        """
        Release the permit, abandon an unfinished blob and close the source.

        Safe to call more than once, and also when the body was never iterated.
        """
        await self.resources.aclose()


class DownloadService:
    """Serves asset downloads under the shared concurrency budget."""

    def __init__(
        self,
        cache_repo: CacheRepository,
        github_repo: GitHubRepository,
        gate: DownloadGate,
        speed_limit: int = 0,
    ) -> None:
        self.cache_repo = cache_repo
        self.github_repo = github_repo
        self.gate = gate
        self.speed_limit = speed_limit

    async def open(self, url: str) -> DownloadStream:
        """
        Acquire a permit and open ``url`` from the cache or the origin.

        The permit is held by the returned download until its body is
        exhausted or closed, or ``DownloadStream.aclose`` is called. If
        opening fails the permit is released and the error propagates.
        """
        permit = await self.gate.acquire()
        resources = AsyncExitStack()
        await resources.enter_async_context(permit)
        try:
            download = await self._open_cached(url, resources)
            if download is None:
                download = await self._open_origin(url, resources)
        except BaseException:
            await resources.aclose()
            raise

        download.body = _close_after(download, throttle(download.body, self.speed_limit))
        return download

    async def _open_cached(
        self, url: str, resources: AsyncExitStack
    ) -> Optional[DownloadStream]:
        descriptor = await self.cache_repo.lookup_blob(url)
        if descriptor is None:
            return None
        try:
            fh = await aiofiles.open(descriptor.file_path, "rb")
        except OSError as e:
            logger.warning("Unable to open cached file %s: %s", descriptor.file_path, e)
            return None
        resources.push_async_callback(fh.close)

        logger.debug("Cache HIT: serving %s from %s", url, descriptor.file_path)
        return DownloadStream(
            filename=descriptor.original_filename,
            content_type=descriptor.content_type or DEFAULT_CONTENT_TYPE,
            body=_read_file(fh),
            cache_status="HIT",
            resources=resources,
        )

    async def _open_origin(self, url: str, resources: AsyncExitStack) -> DownloadStream:
        logger.debug("Cache MISS: streaming %s from GitHub", url)
        response = await self.github_repo.open_download(url)
        resources.push_async_callback(response.aclose)
        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        filename = original_filename(url)

        writer = None
        if self.cache_repo.enabled:
            destination = Path(self.cache_repo.blob_dir) / blob_filename(url)

            async def commit(file_path: Path) -> None:
                await self.cache_repo.store_blob(url, file_path, filename, content_type)
                logger.info("Downloaded and cached %s", url)

            writer = BlobWriter(destination, commit).start()
            resources.callback(writer.abort)

        return DownloadStream(
            filename=filename,
            content_type=content_type,
            body=tee(_read_response(response, url), writer),
            cache_status="MISS",
            resources=resources,
        )


async def _close_after(
    download: DownloadStream, stream: AsyncIterator[bytes]
) -> AsyncIterator[bytes]:
    try:
        async with aclosing(stream) as chunks:
            async for chunk in chunks:
                yield chunk
    finally:
        await download.aclose()


async def _read_file(fh) -> AsyncIterator[bytes]:
    try:
        while chunk := await fh.read(READ_CHUNK_SIZE):
            yield chunk
    finally:
        await fh.close()


async def _read_response(response: httpx.Response, url: str) -> AsyncIterator[bytes]:
    try:
        async with aclosing(response.aiter_bytes()) as chunks:
            async for chunk in chunks:
                yield chunk
    except httpx.HTTPError as e:
        logger.warning("Download of %s interrupted: %s", url, e)
        raise StreamInterruptedError(f"Streaming download failed: {e}") from e
    finally:
        await response.aclose()
