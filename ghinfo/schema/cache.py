"""Cache-related data schemas."""

from enum import Enum
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ghinfo.schema.github import LatestReleaseInfo, ReleaseInfo, RepoInfo

T = TypeVar("T")


class CacheKind(str, Enum):
    """The three kinds of cached metadata, also the snapshot's top-level keys."""

    REPO_INFO = "repo_info"
    RELEASES = "releases"
    LATEST_RELEASE = "latest_release"


class CachedEntry(BaseModel, Generic[T]):
    """A cached value together with its absolute expiry (unix seconds)."""

    model_config = ConfigDict(frozen=True)

    value: T
    expires_at: int

    def is_live(self, now: int) -> bool:
        return self.expires_at > now


class CacheSnapshot(BaseModel):
    """On-disk shape of the metadata snapshot file."""

    model_config = ConfigDict(extra="ignore")

    repo_info: dict[str, CachedEntry[RepoInfo]] = Field(default_factory=dict)
    releases: dict[str, CachedEntry[list[ReleaseInfo]]] = Field(default_factory=dict)
    latest_release: dict[str, CachedEntry[LatestReleaseInfo]] = Field(
        default_factory=dict
    )

    def section(self, kind: CacheKind) -> dict[str, CachedEntry]:
        return getattr(self, kind.value)

    def live(self, now: int) -> "CacheSnapshot":
        """Copy holding only entries that have not expired at ``now``."""
        return CacheSnapshot(
            **{
                kind.value: {
                    key: entry
                    for key, entry in self.section(kind).items()
                    if entry.is_live(now)
                }
                for kind in CacheKind
            }
        )

    def __len__(self) -> int:
        return sum(len(self.section(kind)) for kind in CacheKind)


ENTRY_MODELS: dict[CacheKind, type[CachedEntry]] = {
    CacheKind.REPO_INFO: CachedEntry[RepoInfo],
    CacheKind.RELEASES: CachedEntry[list[ReleaseInfo]],
    CacheKind.LATEST_RELEASE: CachedEntry[LatestReleaseInfo],
}


class BlobDescriptor(BaseModel):
    """Metadata for a downloaded asset body stored in the blob directory."""

    url: str = Field(..., description="Original upstream URL")
    file_path: Path = Field(..., description="Absolute path of the cached body")
    original_filename: str = Field(..., description="Presentation hint only")
    content_type: str | None = Field(None, description="MIME type from the origin")
    expires_at: int
    last_accessed_at: int
