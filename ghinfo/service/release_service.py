"""Read-through access to repository and release metadata."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ghinfo.repository.base_repository import CacheRepository
from ghinfo.repository.github_repository import GitHubRepository
from ghinfo.schema.cache import CacheKind
from ghinfo.schema.github import (
    LatestReleaseInfo,
    ReleaseInfo,
    RepoBatchResult,
    RepoInfo,
)
from ghinfo.service.errors import BadRequestError, ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALL_FIELDS = tuple(kind.value for kind in CacheKind)


def parse_repo(repo_str: str) -> Optional[tuple[str, str]]:
    """Split ``owner/repo``; anything but exactly two non-empty parts is invalid."""
    parts = repo_str.split("/")
    if len(parts) == 2 and parts[0] and parts[1]:
        return parts[0], parts[1]
    return None


class ReleaseService:
    """Serves metadata from the cache, filling misses from GitHub."""

    def __init__(
        self,
        cache_repo: CacheRepository,
        github_repo: GitHubRepository,
    ) -> None:
        self.cache_repo = cache_repo
        self.github_repo = github_repo

    async def get_repo_info(self, owner: str, repo: str) -> RepoInfo:
        cached = await self.cache_repo.get_repo_info(owner, repo)
        if cached is not None:
            logger.debug("Cache HIT: repo info for %s/%s", owner, repo)
            return cached

        logger.debug("Cache MISS: fetching repo info for %s/%s", owner, repo)
        github_repo = await self.github_repo.get_repo(owner, repo)
        info = RepoInfo(
            repo=f"{owner}/{repo}",
            name=github_repo.name,
            full_name=github_repo.full_name,
            html_url=github_repo.html_url,
            description=github_repo.description,
            stargazers_count=github_repo.stargazers_count,
            forks_count=github_repo.forks_count,
            updated_at=github_repo.updated_at,
        )
        await self.cache_repo.set_repo_info(owner, repo, info)
        return info

    async def get_releases(self, owner: str, repo: str) -> list[ReleaseInfo]:
        cached = await self.cache_repo.get_releases(owner, repo)
        if cached is not None:
            logger.debug(
                "Cache HIT: %d releases for %s/%s", len(cached), owner, repo
            )
            return cached

        logger.debug("Cache MISS: fetching releases for %s/%s", owner, repo)
        releases = [
            ReleaseInfo(
                tag_name=release.tag_name,
                name=release.name,
                changelog=release.body,
                published_at=release.published_at,
                attachments=release.attachments(),
            )
            for release in await self.github_repo.list_releases(owner, repo)
        ]
        await self.cache_repo.set_releases(owner, repo, releases)
        return releases

    async def get_latest_release(self, owner: str, repo: str) -> LatestReleaseInfo:
        cached = await self.cache_repo.get_latest_release(owner, repo)
        if cached is not None:
            logger.debug(
                "Cache HIT: latest release %s for %s/%s",
                cached.latest_version,
                owner,
                repo,
            )
            return cached

        logger.debug("Cache MISS: fetching latest release for %s/%s", owner, repo)
        release = await self.github_repo.get_latest_release(owner, repo)
        latest = LatestReleaseInfo(
            repo=f"{owner}/{repo}",
            latest_version=release.tag_name,
            changelog=release.body,
            published_at=release.published_at,
            attachments=release.attachments(),
        )
        await self.cache_repo.set_latest_release(owner, repo, latest)
        return latest

    async def batch(self, repos: list[str], fields: list[str]) -> list[RepoBatchResult]:
        """Fetch the requested fields for every ``owner/repo`` concurrently."""
        if not repos:
            raise BadRequestError("The repos list must not be empty")

        results = await asyncio.gather(
            *(self._process_single_repo(repo_str, fields) for repo_str in repos)
        )
        succeeded = sum(1 for result in results if result.success)
        logger.info("Batch request finished: %d/%d succeeded", succeeded, len(repos))
        return list(results)

    async def _process_single_repo(
        self, repo_str: str, fields: list[str]
    ) -> RepoBatchResult:
        parsed = parse_repo(repo_str)
        if parsed is None:
            return RepoBatchResult(
                repo=repo_str,
                success=False,
                error="Invalid repository format, expected 'owner/repo'",
            )
        owner, repo = parsed
        wanted = set(fields) if fields else set(ALL_FIELDS)

        async def maybe(name: str, fetch: Callable[[], Awaitable[T]]) -> Optional[T]:
            if name not in wanted:
                return None
            try:
                return await fetch()
            except ServiceError as e:
                logger.debug("Batch %s for %s failed: %s", name, repo_str, e)
                return None

        repo_info, releases, latest_release = await asyncio.gather(
            maybe(CacheKind.REPO_INFO.value, lambda: self.get_repo_info(owner, repo)),
            maybe(CacheKind.RELEASES.value, lambda: self.get_releases(owner, repo)),
            maybe(CacheKind.LATEST_RELEASE.value, lambda: self.get_latest_release(owner, repo)),
        )

        error_parts = []
        if CacheKind.REPO_INFO.value in wanted and repo_info is None:
            error_parts.append("failed to fetch repository info")
        if CacheKind.RELEASES.value in wanted and releases is None:
            error_parts.append("failed to fetch releases")
        if CacheKind.LATEST_RELEASE.value in wanted and latest_release is None:
            error_parts.append("failed to fetch latest release")

        return RepoBatchResult(
            repo=repo_str,
            success=not error_parts,
            error="; ".join(error_parts) or None,
            repo_info=repo_info,
            releases=releases,
            latest_release=latest_release,
        )
