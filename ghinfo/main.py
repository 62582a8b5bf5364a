"""Main Litestar application."""

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

import uvicorn
from litestar import Litestar, Request, Response, get
from litestar.config.cors import CORSConfig
from litestar.datastructures import State
from litestar.di import Provide
from litestar.exceptions import NotFoundException
from litestar.logging import LoggingConfig
from litestar.openapi import OpenAPIConfig

from ghinfo.config.settings import Settings, get_settings
from ghinfo.controller.download_controller import DownloadController
from ghinfo.controller.repo_controller import RepoController
from ghinfo.repository.base_repository import CacheRepository
from ghinfo.repository.cache_repository import TieredCacheRepository
from ghinfo.repository.github_repository import GitHubRepository
from ghinfo.schema.github import HealthResponse
from ghinfo.service.download_service import DownloadService
from ghinfo.service.errors import ServiceError
from ghinfo.service.gate import DownloadGate
from ghinfo.service.rate_limit import RequestWindow
from ghinfo.service.release_service import ReleaseService

logger = logging.getLogger("ghinfo.main")

SERVICE_NAME = "GitHub release info service"

try:
    VERSION = version("gh-info")
except PackageNotFoundError:
    VERSION = "0.1.0"


async def get_cache_repository(state: State) -> CacheRepository:
    """Dependency: Get cache repository instance from app state."""
    return state.cache_repo


async def get_github_repository(state: State) -> GitHubRepository:
    """Dependency: Get GitHub repository instance from app state."""
    return state.github_repo


async def get_request_window(state: State) -> RequestWindow:
    """Dependency: Get the per-client download window from app state."""
    return state.request_window


async def get_release_service(
    cache_repo: CacheRepository,
    github_repo: GitHubRepository,
) -> ReleaseService:
    """Dependency: Get release service instance."""
    return ReleaseService(cache_repo, github_repo)


async def get_download_service(
    state: State,
    cache_repo: CacheRepository,
    github_repo: GitHubRepository,
) -> DownloadService:
    """Dependency: Get download service instance bound to the shared gate."""
    return DownloadService(
        cache_repo,
        github_repo,
        state.download_gate,
        speed_limit=state.settings.download_speed_limit,
    )


@get(["/", "/health"], tags=["health"])
async def health_check() -> HealthResponse:
    """Service health and version."""
    return HealthResponse(status="ok", service=SERVICE_NAME, version=VERSION)


def not_found_handler(request: Request, exc: NotFoundException) -> Response:
    """Handle 404 errors with guidance on the available endpoints."""
    base = f"{request.url.scheme}://{request.url.netloc}"
    return Response(
        content={
            "status_code": exc.status_code,
            "detail": exc.detail,
            "message": "Endpoint not found. Use /repos/{owner}/{repo} or /download?url=...",
            "example": f"{base}/repos/octocat/Hello-World/releases/latest",
            "documentation": f"{base}/docs",
        },
        status_code=exc.status_code,
    )


def service_error_handler(request: Request, exc: ServiceError) -> Response:
    """Render service errors as ``{"error": ...}`` with their status code."""
    if exc.status_code >= 500:
        logger.error("Request to %s failed: %s", request.url.path, exc)
    return Response(content={"error": str(exc)}, status_code=exc.status_code)


def create_app(
    settings: Optional[Settings] = None,
    github_repo: Optional[GitHubRepository] = None,
) -> Litestar:
    """Create and configure Litestar application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: Litestar):
        """Build the shared cache, download gate and GitHub client."""
        cache_repo = TieredCacheRepository.from_settings(settings)
        await cache_repo.connect()

        app.state.settings = settings
        app.state.cache_repo = cache_repo
        app.state.github_repo = github_repo or GitHubRepository(settings)
        app.state.download_gate = DownloadGate(settings.max_concurrent_downloads)
        app.state.request_window = RequestWindow(
            settings.max_downloads_per_window, settings.rate_limit_window_secs
        )
        logger.info(
            "Ready: cache %s, blob dir %s, %d concurrent downloads",
            "enabled" if cache_repo.enabled else "disabled",
            cache_repo.blob_dir,
            settings.max_concurrent_downloads,
        )

        try:
            yield
        finally:
            await app.state.cache_repo.disconnect()
            await app.state.github_repo.close()

    return Litestar(
        debug=settings.dev,
        route_handlers=[health_check, RepoController, DownloadController],
        dependencies={
            "cache_repo": Provide(get_cache_repository),
            "github_repo": Provide(get_github_repository),
            "request_window": Provide(get_request_window),
            "release_service": Provide(get_release_service),
            "download_service": Provide(get_download_service),
        },
        exception_handlers={
            NotFoundException: not_found_handler,
            ServiceError: service_error_handler,
        },
        cors_config=CORSConfig(
            allow_origins=settings.cors_origins or ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
            max_age=3600,
        ),
        logging_config=LoggingConfig(
            root={"level": settings.log_level.upper(), "handlers": ["queue_listener"]},
            log_exceptions="always",
        ),
        openapi_config=OpenAPIConfig(
            title="gh-info - GitHub release info",
            version=VERSION,
            path="/docs",
        ),
        lifespan=[lifespan],
    )


app = create_app()


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "ghinfo.main:app",
        reload=settings.dev,
        host=settings.server_host,
        port=settings.server_port,
        workers=settings.workers,
        log_level=settings.log_level.lower(),
    )
