"""Shared fixtures: settings for both dialects and an intercepting HTTP transport."""

import json
import subprocess

import httpx
import pytest

from bitbucket_mcp_server.config import CLOUD_API_URL, Settings
from bitbucket_mcp_server.services.bitbucket_client import BitbucketClient

SERVER_API_URL = "https://bitbucket.example.com/rest/api/1.0"


class RequestRecorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._responses: dict[tuple[str, str], list] = {}

    def add(self, method: str, path: str, **response):
        """Queue a response for METHOD path. Queued responses are replayed in order; the last one repeats."""
        self._responses.setdefault((method, path), []).append(response)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self._responses.get((request.method, request.url.path))
        if not queued:
            return httpx.Response(200, json={})
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        if "exception" in response:
            raise response["exception"](f"simulated failure for {request.url}", request=request)
        return httpx.Response(**response)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def body(self, index: int = -1):
        return json.loads(self.requests[index].content)


@pytest.fixture
def recorder():
    return RequestRecorder()


@pytest.fixture
def cloud_settings(tmp_path):
    return Settings(
        base_url=CLOUD_API_URL,
        user_email="user@example.com",
        api_token="apitoken",
        working_dir=tmp_path,
    )


@pytest.fixture
def server_settings(tmp_path):
    return Settings(
        base_url=SERVER_API_URL,
        user_email="user@example.com",
        api_token="apitoken",
        working_dir=tmp_path,
    )


@pytest.fixture
def make_client(recorder):
    def factory(settings: Settings) -> BitbucketClient:
        return BitbucketClient(settings, transport=httpx.MockTransport(recorder))
    return factory


@pytest.fixture
def cloud_client(make_client, cloud_settings):
    return make_client(cloud_settings)


@pytest.fixture
def server_client(make_client, server_settings):
    return make_client(server_settings)


@pytest.fixture
def temp_git_repo(tmp_path):
    """Create a temporary git repository for testing."""
    subprocess.run(["git", "init"], cwd=tmp_path, check=True, capture_output=True)
    subprocess.run(
        ["git", "config", "user.email", "test@test.com"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Test User"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    (tmp_path / "README.md").write_text("# Test")
    subprocess.run(["git", "add", "."], cwd=tmp_path, check=True, capture_output=True)
    subprocess.run(
        ["git", "commit", "-m", "Initial commit"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "branch", "-M", "main"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    return tmp_path
