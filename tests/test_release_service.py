import tempfile
import unittest

import httpx
from helpers import API_URL, RELEASE_PAYLOAD, REPO_PAYLOAD, RecordingHandler, make_settings

from ghinfo.repository.cache_repository import TieredCacheRepository
from ghinfo.repository.github_repository import GitHubRepository
from ghinfo.service.errors import BadRequestError, NotFoundError, UpstreamError
from ghinfo.service.release_service import ReleaseService, parse_repo

REPO_URL = f"{API_URL}/repos/octocat/Hello-World"


class TestParseRepo(unittest.TestCase):
    def test_valid(self):
        self.assertEqual(parse_repo("octocat/Hello-World"), ("octocat", "Hello-World"))

    def test_invalid(self):
        for value in ("octocat", "a/b/c", "/repo", "owner/", ""):
            with self.subTest(value=value):
                self.assertIsNone(parse_repo(value))


class TestReleaseService(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.settings = make_settings(self.tmp.name)
        self.handler = RecordingHandler(
            {
                REPO_URL: lambda: httpx.Response(200, json=REPO_PAYLOAD),
                f"{REPO_URL}/releases": lambda: httpx.Response(200, json=[RELEASE_PAYLOAD]),
                f"{REPO_URL}/releases/latest": lambda: httpx.Response(200, json=RELEASE_PAYLOAD),
                f"{API_URL}/repos/broken/repo": lambda: httpx.Response(500),
            }
        )
        self.github_repo = GitHubRepository(
            self.settings, transport=httpx.MockTransport(self.handler)
        )
        self.cache_repo = TieredCacheRepository.from_settings(self.settings)
        self.service = ReleaseService(self.cache_repo, self.github_repo)

    async def asyncTearDown(self):
        await self.github_repo.close()

    def tearDown(self):
        self.tmp.cleanup()

    async def test_repo_info_is_fetched_once(self):
        """The second call is answered from the cache."""
        first = await self.service.get_repo_info("octocat", "Hello-World")
        second = await self.service.get_repo_info("octocat", "Hello-World")

        self.assertEqual(first, second)
        self.assertEqual(first.repo, "octocat/Hello-World")
        self.assertEqual(first.stargazers_count, 80)
        self.assertEqual(self.handler.count(REPO_URL), 1)

    async def test_releases_map_assets_to_attachments(self):
        releases = await self.service.get_releases("octocat", "Hello-World")
        self.assertEqual(len(releases), 1)
        self.assertEqual(releases[0].changelog, "Description of the release")
        self.assertEqual(
            releases[0].attachments,
            [("example.zip", RELEASE_PAYLOAD["assets"][0]["browser_download_url"])],
        )

    async def test_latest_release(self):
        latest = await self.service.get_latest_release("octocat", "Hello-World")
        self.assertEqual(latest.latest_version, "v1.0.0")
        self.assertEqual(latest.repo, "octocat/Hello-World")
        await self.service.get_latest_release("octocat", "Hello-World")
        self.assertEqual(self.handler.count(f"{REPO_URL}/releases/latest"), 1)

    async def test_not_found_is_not_cached(self):
        with self.assertRaises(NotFoundError):
            await self.service.get_repo_info("octocat", "missing")
        with self.assertRaises(NotFoundError):
            await self.service.get_repo_info("octocat", "missing")
        self.assertEqual(self.handler.count(f"{API_URL}/repos/octocat/missing"), 2)

    async def test_upstream_failure(self):
        with self.assertRaises(UpstreamError):
            await self.service.get_repo_info("broken", "repo")

    async def test_disabled_cache_always_fetches(self):
        service = ReleaseService(
            TieredCacheRepository(enabled=False, cache_file=self.settings.cache_file),
            self.github_repo,
        )
        await service.get_repo_info("octocat", "Hello-World")
        await service.get_repo_info("octocat", "Hello-World")
        self.assertEqual(self.handler.count(REPO_URL), 2)

    async def test_batch_keeps_request_order(self):
        results = await self.service.batch(
            ["octocat/Hello-World", "not-a-repo", "octocat/missing"], []
        )

        self.assertEqual(
            [r.repo for r in results],
            ["octocat/Hello-World", "not-a-repo", "octocat/missing"],
        )
        ok, invalid, missing = results
        self.assertTrue(ok.success)
        self.assertIsNone(ok.error)
        self.assertEqual(ok.latest_release.latest_version, "v1.0.0")
        self.assertFalse(invalid.success)
        self.assertIn("owner/repo", invalid.error)
        self.assertFalse(missing.success)
        self.assertEqual(
            missing.error,
            "failed to fetch repository info; failed to fetch releases; "
            "failed to fetch latest release",
        )

    async def test_batch_only_requested_fields(self):
        (result,) = await self.service.batch(["octocat/Hello-World"], ["repo_info"])
        self.assertTrue(result.success)
        self.assertIsNotNone(result.repo_info)
        self.assertIsNone(result.releases)
        self.assertIsNone(result.latest_release)
        self.assertEqual(self.handler.count(f"{REPO_URL}/releases"), 0)

    async def test_batch_requires_repos(self):
        with self.assertRaises(BadRequestError):
            await self.service.batch([], [])


if __name__ == "__main__":
    unittest.main()
