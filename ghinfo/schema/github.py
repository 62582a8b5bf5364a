"""Upstream GitHub payloads and the response models built from them."""

from pydantic import BaseModel, ConfigDict, Field


class GithubRepo(BaseModel):
    """Repository as returned by ``GET /repos/{owner}/{repo}``."""

    model_config = ConfigDict(extra="ignore")

    name: str
    full_name: str
    html_url: str
    description: str | None = None
    stargazers_count: int = 0
    forks_count: int = 0
    updated_at: str


class GithubAsset(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    browser_download_url: str


class GithubRelease(BaseModel):
    """Release as returned by the releases endpoints."""

    model_config = ConfigDict(extra="ignore")

    tag_name: str
    name: str | None = None
    body: str | None = None
    published_at: str | None = None
    assets: list[GithubAsset] = Field(default_factory=list)

    def attachments(self) -> list[tuple[str, str]]:
        return [(asset.name, asset.browser_download_url) for asset in self.assets]


class RepoInfo(BaseModel):
    """Repository summary served to clients."""

    repo: str = Field(..., description="owner/repo as requested")
    name: str
    full_name: str
    html_url: str
    description: str | None = None
    stargazers_count: int
    forks_count: int
    updated_at: str


class ReleaseInfo(BaseModel):
    """One release with its downloadable attachments."""

    tag_name: str
    name: str | None = None
    changelog: str | None = None
    published_at: str | None = None
    attachments: list[tuple[str, str]] = Field(
        default_factory=list, description="(asset name, download URL) pairs"
    )


class LatestReleaseInfo(BaseModel):
    """Latest published release of a repository."""

    repo: str
    latest_version: str
    changelog: str | None = None
    published_at: str | None = None
    attachments: list[tuple[str, str]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class BatchRequest(BaseModel):
    """Batch lookup of several ``owner/repo`` strings."""

    repos: list[str]
    fields: list[str] = Field(
        default_factory=list,
        description="Any of repo_info, releases, latest_release; empty means all",
    )


class RepoBatchResult(BaseModel):
    repo: str
    success: bool
    error: str | None = None
    repo_info: RepoInfo | None = None
    releases: list[ReleaseInfo] | None = None
    latest_release: LatestReleaseInfo | None = None


class BatchResponse(BaseModel):
    results: list[RepoBatchResult]


class BatchResponseMap(BaseModel):
    results_map: dict[str, RepoBatchResult]
