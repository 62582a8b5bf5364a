import tempfile
import unittest
from unittest.mock import MagicMock

import httpx
from helpers import API_URL, RELEASE_PAYLOAD, REPO_PAYLOAD, RecordingHandler, make_settings
from litestar.testing import TestClient

from ghinfo.controller.download_controller import client_ip
from ghinfo.main import create_app
from ghinfo.repository.github_repository import GitHubRepository

REPO_URL = f"{API_URL}/repos/octocat/Hello-World"
ASSET_URL = RELEASE_PAYLOAD["assets"][0]["browser_download_url"]


class TestApp(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.settings = make_settings(self.tmp.name, max_downloads_per_window=3)
        self.handler = RecordingHandler(
            {
                REPO_URL: lambda: httpx.Response(200, json=REPO_PAYLOAD),
                f"{REPO_URL}/releases": lambda: httpx.Response(200, json=[RELEASE_PAYLOAD]),
                f"{REPO_URL}/releases/latest": lambda: httpx.Response(200, json=RELEASE_PAYLOAD),
                ASSET_URL: lambda: httpx.Response(
                    200, content=b"zip-bytes", headers={"Content-Type": "application/zip"}
                ),
            }
        )
        github_repo = GitHubRepository(
            self.settings, transport=httpx.MockTransport(self.handler)
        )
        self.app = create_app(self.settings, github_repo=github_repo)

    def tearDown(self):
        self.tmp.cleanup()

    def test_health(self):
        with TestClient(self.app) as client:
            for path in ("/", "/health"):
                response = client.get(path)
                self.assertEqual(response.status_code, 200)
                self.assertEqual(response.json()["status"], "ok")

    def test_repo_info(self):
        with TestClient(self.app) as client:
            response = client.get("/repos/octocat/Hello-World")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["repo"], "octocat/Hello-World")
        self.assertEqual(body["full_name"], "octocat/Hello-World")

    def test_latest_release_attachments(self):
        with TestClient(self.app) as client:
            response = client.get("/repos/octocat/Hello-World/releases/latest")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["attachments"], [["example.zip", ASSET_URL]]
        )

    def test_unknown_repo_is_404_error(self):
        with TestClient(self.app) as client:
            response = client.get("/repos/octocat/missing/releases")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Data not found"})

    def test_unknown_route_has_guidance(self):
        with TestClient(self.app) as client:
            response = client.get("/nope/nope/nope/nope/nope")
        self.assertEqual(response.status_code, 404)
        self.assertIn("documentation", response.json())

    def test_batch_map(self):
        with TestClient(self.app) as client:
            response = client.post(
                "/repos/batch/map",
                json={"repos": ["octocat/Hello-World", "bad"], "fields": ["releases"]},
            )
        self.assertEqual(response.status_code, 200)
        results = response.json()["results_map"]
        self.assertTrue(results["octocat/Hello-World"]["success"])
        self.assertFalse(results["bad"]["success"])

    def test_batch_empty_is_400(self):
        with TestClient(self.app) as client:
            response = client.post("/repos/batch", json={"repos": []})
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())

    def test_download_miss_then_hit(self):
        with TestClient(self.app) as client:
            first = client.get("/download", params={"url": ASSET_URL})
            second = client.get("/download", params={"url": ASSET_URL})
            self.assertEqual(self.app.state.download_gate.in_flight, 0)

        for response in (first, second):
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.content, b"zip-bytes")
            self.assertEqual(
                response.headers["content-disposition"],
                'attachment; filename="example.zip"',
            )
            self.assertTrue(response.headers["content-type"].startswith("application/zip"))
        self.assertEqual(first.headers["x-cache-status"], "MISS")
        self.assertEqual(second.headers["x-cache-status"], "HIT")
        self.assertEqual(self.handler.count(ASSET_URL), 1)

    def test_download_origin_failure(self):
        with TestClient(self.app) as client:
            response = client.get(
                "/download", params={"url": "https://github.com/o/r/missing.zip"}
            )
        self.assertEqual(response.status_code, 502)
        self.assertIn("error", response.json())

    def test_download_rate_limited(self):
        with TestClient(self.app) as client:
            statuses = [
                client.get("/download", params={"url": ASSET_URL}).status_code
                for _ in range(4)
            ]
        self.assertEqual(statuses, [200, 200, 200, 429])

    def test_snapshot_written_on_shutdown(self):
        with TestClient(self.app) as client:
            client.get("/repos/octocat/Hello-World")
        with open(self.settings.cache_file, encoding="utf-8") as fh:
            self.assertIn("repo_info:octocat:Hello-World", fh.read())


class TestClientIp(unittest.TestCase):
    def _request(self, client=None, headers=None):
        request = MagicMock()
        request.client = client
        request.headers = headers or {}
        return request

    def test_peer_address_wins(self):
        peer = MagicMock(host="10.0.0.1")
        request = self._request(peer, {"x-forwarded-for": "1.1.1.1"})
        self.assertEqual(client_ip(request), "10.0.0.1")

    def test_forwarded_headers(self):
        request = self._request(headers={"x-forwarded-for": "1.1.1.1, 2.2.2.2"})
        self.assertEqual(client_ip(request), "1.1.1.1")
        request = self._request(headers={"x-real-ip": "3.3.3.3"})
        self.assertEqual(client_ip(request), "3.3.3.3")
        self.assertEqual(client_ip(self._request()), "unknown")


if __name__ == "__main__":
    unittest.main()
