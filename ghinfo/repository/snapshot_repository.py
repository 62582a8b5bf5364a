"""JSON snapshot of the metadata caches, written periodically to disk."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ghinfo.repository.ttl_store import unix_now
from ghinfo.schema.cache import ENTRY_MODELS, CacheKind, CacheSnapshot

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """
    Shadow copy of every metadata ``set`` plus its persistence.

    The shadow is independent of the in-memory TTL stores: those may evict
    on their own, while the shadow keeps whatever was set until it expires.
    ``save`` writes the live part of the shadow to ``path`` atomically;
    ``load`` restores it after a restart.
    """

    def __init__(self, path: str | Path, clock: Callable[[], int] = unix_now) -> None:
        self.path = Path(path)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._shadow = CacheSnapshot()
        self._task: Optional[asyncio.Task] = None

    async def record(self, kind: CacheKind, key: str, value: Any, expires_at: int) -> None:
        entry = ENTRY_MODELS[kind](value=value, expires_at=expires_at)
        async with self._lock:
            self._shadow.section(kind)[key] = entry

    async def entries(self) -> CacheSnapshot:
        """Live entries currently held by the shadow."""
        async with self._lock:
            return self._shadow.live(self._clock())

    async def load(self) -> CacheSnapshot:
        """
        Read the snapshot file and rebuild the shadow from its live entries.

        A missing file is normal on first start. Any other read or parse
        failure is logged and the cache starts empty.
        """
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return CacheSnapshot()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Unable to read cache file %s: %s", self.path, e)
            return CacheSnapshot()

        try:
            stored = CacheSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Unable to parse cache file %s: %s", self.path, e)
            return CacheSnapshot()

        live = stored.live(self._clock())
        async with self._lock:
            self._shadow = live.model_copy(deep=True)
        return live

    async def save(self) -> bool:
        """Write live shadow entries to disk. Failures are logged, never raised."""
        async with self._lock:
            self._shadow = self._shadow.live(self._clock())
            payload = self._shadow.model_dump_json(indent=2)

        try:
            await asyncio.to_thread(self._write_atomic, payload)
        except OSError as e:
            logger.warning("Unable to save cache file %s: %s", self.path, e)
            return False
        return True

    def _write_atomic(self, payload: str) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self.path)

    def start(self, interval: float) -> None:
        """Start the periodic snapshot task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(
                self._run(interval), name="cache-snapshot"
            )

    async def stop(self) -> None:
        """Stop the periodic task and write one final snapshot."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.save()

    async def _run(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.save()
