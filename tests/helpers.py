"""Shared test doubles."""

from typing import Callable

import httpx

from ghinfo.config.settings import Settings

API_URL = "https://api.github.test"


class FakeClock:
    """Settable replacement for ``unix_now``."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def make_settings(tmp_dir, **overrides) -> Settings:
    """Settings pointing every cache path into ``tmp_dir``, ignoring the environment."""
    values = {
        "cache_file": f"{tmp_dir}/cache.json",
        "download_speed_limit": 0,
        "github_api_url": API_URL,
        "github_token": None,
        "file_cache_dir": None,
        "cache_enabled": True,
        "cache_ttl_seconds": 3600,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def chunks(*parts: bytes):
    for part in parts:
        yield part


async def drain(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


class RecordingHandler:
    """
    ``httpx.MockTransport`` handler replaying canned responses by URL.

    Each route is a factory so every request gets a fresh response.
    """

    def __init__(self, routes: dict[str, Callable[[], httpx.Response]]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        factory = self.routes.get(str(request.url))
        if factory is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return factory()

    def count(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)


REPO_PAYLOAD = {
    "id": 1296269,
    "name": "Hello-World",
    "full_name": "octocat/Hello-World",
    "html_url": "https://github.com/octocat/Hello-World",
    "description": "My first repository on GitHub!",
    "stargazers_count": 80,
    "forks_count": 9,
    "updated_at": "2011-01-26T19:14:43Z",
}

RELEASE_PAYLOAD = {
    "tag_name": "v1.0.0",
    "name": "v1.0.0",
    "body": "Description of the release",
    "published_at": "2013-02-27T19:35:32Z",
    "assets": [
        {
            "name": "example.zip",
            "browser_download_url": "https://github.com/octocat/Hello-World/releases/download/v1.0.0/example.zip",
            "size": 1024,
        }
    ],
}
