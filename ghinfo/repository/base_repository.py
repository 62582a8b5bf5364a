"""Base interface for cache repositories."""

from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from ghinfo.schema.cache import BlobDescriptor
from ghinfo.schema.github import LatestReleaseInfo, ReleaseInfo, RepoInfo


@runtime_checkable
class CacheRepository(Protocol):
    """Protocol for the cache consumed by the services."""

    @property
    def enabled(self) -> bool: ...

    @property
    def blob_dir(self) -> Path: ...

    async def get_repo_info(self, owner: str, repo: str) -> Optional[RepoInfo]: ...

    async def set_repo_info(self, owner: str, repo: str, info: RepoInfo) -> None: ...

    async def get_releases(
        self, owner: str, repo: str
    ) -> Optional[list[ReleaseInfo]]: ...

    async def set_releases(
        self, owner: str, repo: str, releases: list[ReleaseInfo]
    ) -> None: ...

    async def get_latest_release(
        self, owner: str, repo: str
    ) -> Optional[LatestReleaseInfo]: ...

    async def set_latest_release(
        self, owner: str, repo: str, release: LatestReleaseInfo
    ) -> None: ...

    async def lookup_blob(self, url: str) -> Optional[BlobDescriptor]: ...

    async def store_blob(
        self,
        url: str,
        file_path: Path,
        original_filename: str,
        content_type: Optional[str],
    ) -> None: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...
