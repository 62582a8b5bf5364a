"""Per-client request windows and download speed throttling."""

import asyncio
import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from ghinfo.service.errors import RateLimitedError


@dataclass
class _WindowRecord:
    count: int
    window_start: float


class RequestWindow:
    """Fixed-window counter of download requests per client IP."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: dict[str, _WindowRecord] = {}

    def check(self, client_ip: str) -> None:
        """Count one request for ``client_ip``; raise once the window is used up."""
        now = self._clock()
        self._records = {
            ip: record
            for ip, record in self._records.items()
            if now - record.window_start < self.window_seconds
        }
        record = self._records.setdefault(client_ip, _WindowRecord(0, now))
        if record.count >= self.max_requests:
            raise RateLimitedError(
                f"Too many requests: at most {self.max_requests} downloads "
                f"every {self.window_seconds:g} seconds"
            )
        record.count += 1


async def throttle(
    stream: AsyncIterator[bytes], bytes_per_second: int
) -> AsyncIterator[bytes]:
    """Pass ``stream`` through, pausing whenever a second's byte budget is spent."""
    async with aclosing(stream) as chunks:
        if bytes_per_second <= 0:
            async for chunk in chunks:
                yield chunk
            return

        loop = asyncio.get_running_loop()
        window_start = loop.time()
        sent = 0
        async for chunk in chunks:
            now = loop.time()
            if now - window_start >= 1.0:
                window_start, sent = now, 0
            if sent >= bytes_per_second:
                await asyncio.sleep(max(0.0, 1.0 - (now - window_start)))
                window_start, sent = loop.time(), 0
            sent += len(chunk)
            yield chunk
