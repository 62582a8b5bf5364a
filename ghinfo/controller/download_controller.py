import logging

from litestar import Controller, Request, get
from litestar.background_tasks import BackgroundTask
from litestar.response import Stream

from ghinfo.service.download_service import DownloadService
from ghinfo.service.rate_limit import RequestWindow

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """Peer address, falling back to proxy headers."""
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or "unknown"


class DownloadController(Controller):
    """Controller for release asset downloads."""

    path = "/download"
    tags = ["download"]

    @get("/")
    async def download_attachment(
        self,
        request: Request,
        url: str,
        download_service: DownloadService,
        request_window: RequestWindow,
    ) -> Stream:
        """
        Download a release asset, serving it from the cache when possible.

        Args:
            url: Asset URL, usually a release attachment's download link

        Returns:
            The asset body streamed with its original filename
        """
        ip = client_ip(request)
        logger.info("Download requested: %s (IP: %s)", url, ip)
        request_window.check(ip)

        download = await download_service.open(url)
        filename = download.filename.replace('"', "")
        return Stream(
            content=download.body,
            media_type=download.content_type,
            headers={
                "Content-Disposition": f'attachment; filename="{filename}"',
                "X-Cache-Status": download.cache_status,
            },
            # Runs after the response even if the body was never iterated.
            background=BackgroundTask(download.aclose),
        )
