"""Bounded pool of permits for concurrent origin downloads."""

import asyncio


class Permit:
    """One unit of the download budget. Releasing twice is harmless."""

    def __init__(self, gate: "DownloadGate") -> None:
        self._gate = gate
        self._released = False

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._gate._release()

    async def __aenter__(self) -> "Permit":
        return self

    async def __aexit__(self, *args: object) -> None:
        self.release()


class DownloadGate:
    """Counting semaphore handing out ``Permit`` objects."""

    def __init__(self, max_concurrent: int = 10) -> None:
        self.max_concurrent = max(1, max_concurrent)
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def acquire(self) -> Permit:
        """Wait for a free slot."""
        await self._semaphore.acquire()
        self._in_flight += 1
        return Permit(self)

    def _release(self) -> None:
        self._in_flight -= 1
        self._semaphore.release()
