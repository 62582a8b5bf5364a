"""Two-tier cache: in-memory metadata with a JSON snapshot, and on-disk blobs."""

import logging
from pathlib import Path
from typing import Callable, Optional, TypeVar

from ghinfo.config.settings import Settings
from ghinfo.repository.base_repository import CacheRepository
from ghinfo.repository.blob_repository import BlobRepository
from ghinfo.repository.keys import meta_key
from ghinfo.repository.snapshot_repository import SnapshotRepository
from ghinfo.repository.ttl_store import DEFAULT_CAPACITY, TTLStore, unix_now
from ghinfo.schema.cache import BlobDescriptor, CacheKind
from ghinfo.schema.github import LatestReleaseInfo, ReleaseInfo, RepoInfo

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_MAX_FILES = 50


class TieredCacheRepository(CacheRepository):
    """The cache the services talk to.

    Metadata lives in three TTL stores mirrored into a snapshot shadow.
    Download bodies live as files in ``blob_dir``, indexed by ``BlobRepository``.
    When disabled every getter misses and every setter is a no-op.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        ttl_seconds: int = 3600,
        cache_file: str | Path = "cache.json",
        blob_dir: str | Path | None = None,
        snapshot_interval: float = 30.0,
        max_files: int = DEFAULT_MAX_FILES,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self._enabled = enabled
        self.ttl_seconds = ttl_seconds
        self.cache_file = Path(cache_file)
        self.snapshot_interval = snapshot_interval
        self.max_files = max_files
        self._clock = clock
        if blob_dir is None:
            blob_dir = self.cache_file.parent / "cache_files"

        self._stores: dict[CacheKind, TTLStore] = {
            kind: TTLStore(ttl_seconds, capacity=capacity, clock=clock)
            for kind in CacheKind
        }
        self.snapshots = SnapshotRepository(self.cache_file, clock=clock)
        self.blobs = BlobRepository(blob_dir, ttl_seconds, capacity=capacity, clock=clock)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TieredCacheRepository":
        return cls(
            enabled=settings.cache_enabled,
            ttl_seconds=settings.cache_ttl_seconds,
            cache_file=settings.cache_file,
            blob_dir=settings.blob_dir,
            snapshot_interval=settings.cache_snapshot_interval_seconds,
            max_files=settings.cache_max_files,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def blob_dir(self) -> Path:
        return self.blobs.blob_dir

    async def connect(self) -> None:
        """Create cache directories, restore the snapshot and start persisting."""
        for directory in (self.cache_file.parent, self.blob_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning("Unable to create cache directory %s: %s", directory, e)

        if not self._enabled:
            logger.info("Cache disabled")
            return

        logger.info("Cache enabled, TTL: %d seconds", self.ttl_seconds)
        snapshot = await self.snapshots.load()
        for kind in CacheKind:
            store = self._stores[kind]
            for key, entry in snapshot.section(kind).items():
                store.insert(key, entry.value, expires_at=entry.expires_at)
        logger.info("Loaded %d cache entries from %s", len(snapshot), self.cache_file)
        self.snapshots.start(self.snapshot_interval)

    async def disconnect(self) -> None:
        if self._enabled:
            await self.snapshots.stop()

    async def _get(self, kind: CacheKind, owner: str, repo: str) -> Optional[V]:
        if not self._enabled:
            return None
        return self._stores[kind].get(meta_key(kind, owner, repo))

    async def _set(self, kind: CacheKind, owner: str, repo: str, value: V) -> None:
        if not self._enabled:
            return
        key = meta_key(kind, owner, repo)
        expires_at = self._stores[kind].insert(key, value)
        await self.snapshots.record(kind, key, value, expires_at)

    async def get_repo_info(self, owner: str, repo: str) -> Optional[RepoInfo]:
        return await self._get(CacheKind.REPO_INFO, owner, repo)

    async def set_repo_info(self, owner: str, repo: str, info: RepoInfo) -> None:
        await self._set(CacheKind.REPO_INFO, owner, repo, info)

    async def get_releases(self, owner: str, repo: str) -> Optional[list[ReleaseInfo]]:
        return await self._get(CacheKind.RELEASES, owner, repo)

    async def set_releases(
        self, owner: str, repo: str, releases: list[ReleaseInfo]
    ) -> None:
        await self._set(CacheKind.RELEASES, owner, repo, list(releases))

    async def get_latest_release(
        self, owner: str, repo: str
    ) -> Optional[LatestReleaseInfo]:
        return await self._get(CacheKind.LATEST_RELEASE, owner, repo)

    async def set_latest_release(
        self, owner: str, repo: str, release: LatestReleaseInfo
    ) -> None:
        await self._set(CacheKind.LATEST_RELEASE, owner, repo, release)

    async def lookup_blob(self, url: str) -> Optional[BlobDescriptor]:
        if not self._enabled:
            return None
        return await self.blobs.lookup(url)

    async def store_blob(
        self,
        url: str,
        file_path: Path,
        original_filename: str,
        content_type: Optional[str],
    ) -> None:
        if not self._enabled:
            return
        await self.blobs.store(url, file_path, original_filename, content_type)
        await self.blobs.cleanup(self.max_files)
