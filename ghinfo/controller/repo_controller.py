import logging

from litestar import Controller, get, post

from ghinfo.schema.github import (
    BatchRequest,
    BatchResponse,
    BatchResponseMap,
    LatestReleaseInfo,
    ReleaseInfo,
    RepoInfo,
)
from ghinfo.service.release_service import ReleaseService

logger = logging.getLogger(__name__)


class RepoController(Controller):
    """Controller for repository and release metadata."""

    path = "/repos"
    tags = ["repos"]

    @get("/{owner:str}/{repo:str}")
    async def get_repo_info(
        self, owner: str, repo: str, release_service: ReleaseService
    ) -> RepoInfo:
        """Repository summary."""
        logger.info("Request: GET /repos/%s/%s", owner, repo)
        return await release_service.get_repo_info(owner, repo)

    @get("/{owner:str}/{repo:str}/releases")
    async def get_releases(
        self, owner: str, repo: str, release_service: ReleaseService
    ) -> list[ReleaseInfo]:
        """All releases of a repository."""
        logger.info("Request: GET /repos/%s/%s/releases", owner, repo)
        return await release_service.get_releases(owner, repo)

    @get("/{owner:str}/{repo:str}/releases/latest")
    async def get_latest_release(
        self, owner: str, repo: str, release_service: ReleaseService
    ) -> LatestReleaseInfo:
        """Latest published release of a repository."""
        logger.info("Request: GET /repos/%s/%s/releases/latest", owner, repo)
        return await release_service.get_latest_release(owner, repo)

    @post("/batch", status_code=200)
    async def batch_get_repos(
        self, data: BatchRequest, release_service: ReleaseService
    ) -> BatchResponse:
        """
        Fetch several repositories at once.

        Args:
            data: Repositories as ``owner/repo`` and the fields to include

        Returns:
            One result per requested repository, in request order
        """
        logger.info("Request: POST /repos/batch (%d repositories)", len(data.repos))
        results = await release_service.batch(data.repos, data.fields)
        return BatchResponse(results=results)

    @post("/batch/map", status_code=200)
    async def batch_get_repos_map(
        self, data: BatchRequest, release_service: ReleaseService
    ) -> BatchResponseMap:
        """Same as ``/repos/batch`` but keyed by the requested repository string."""
        logger.info("Request: POST /repos/batch/map (%d repositories)", len(data.repos))
        results = await release_service.batch(data.repos, data.fields)
        return BatchResponseMap(results_map={result.repo: result for result in results})
