"""GitHub REST API repository for release metadata and asset downloads."""

import logging
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from ghinfo.config.settings import Settings
from ghinfo.schema.github import GithubRelease, GithubRepo
from ghinfo.service.errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

USER_AGENT = "gh-info"

_releases_adapter = TypeAdapter(list[GithubRelease])


class GitHubRepository:
    """Repository for the GitHub API and the asset URLs it hands out."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize GitHub repository."""
        self.settings = settings
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github.v3+json",
        }
        if settings.github_token:
            headers["Authorization"] = f"Bearer {settings.github_token}"
        self.client = httpx.AsyncClient(
            base_url=self.settings.github_api_url,
            headers=headers,
            timeout=30.0,
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()

    async def _get_json(self, path: str) -> Any:
        try:
            response = await self.client.get(path)
        except httpx.RequestError as e:
            raise UpstreamError(f"GitHub API request failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError()
        if not response.is_success:
            raise UpstreamError(f"GitHub API returned status {response.status_code}")
        return response.json()

    async def get_repo(self, owner: str, repo: str) -> GithubRepo:
        data = await self._get_json(f"/repos/{owner}/{repo}")
        try:
            return GithubRepo.model_validate(data)
        except ValidationError as e:
            raise UpstreamError(f"Unexpected repository payload: {e}") from e

    async def list_releases(self, owner: str, repo: str) -> list[GithubRelease]:
        data = await self._get_json(f"/repos/{owner}/{repo}/releases")
        try:
            return _releases_adapter.validate_python(data)
        except ValidationError as e:
            raise UpstreamError(f"Unexpected releases payload: {e}") from e

    async def get_latest_release(self, owner: str, repo: str) -> GithubRelease:
        data = await self._get_json(f"/repos/{owner}/{repo}/releases/latest")
        try:
            return GithubRelease.model_validate(data)
        except ValidationError as e:
            raise UpstreamError(f"Unexpected release payload: {e}") from e

    async def open_download(self, url: str) -> httpx.Response:
        """
        Start downloading ``url`` and return once the response headers arrive.

        The body is left unread; the caller streams it and must close the
        response. Failures before the first byte raise ``UpstreamError``.
        """
        request = self.client.build_request("GET", url, headers={"Accept": "*/*"})
        try:
            response = await self.client.send(request, stream=True)
        except httpx.RequestError as e:
            raise UpstreamError(f"Download from GitHub failed: {e}") from e

        if not response.is_success:
            await response.aclose()
            raise UpstreamError(f"GitHub returned status {response.status_code}")
        return response
