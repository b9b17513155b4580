"""Shared fixtures: settings, a recording sleep and a scripted mock upstream."""
import json
import random
from typing import Callable, List, Optional

import httpx
import pytest

from github_mcp.config import Settings
from github_mcp.github.client import GitHubClient

API_URL = "https://api.github.test"


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers every delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class MockUpstream:
    """Serves queued responses in order and records each request."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._responses: List[Callable[[httpx.Request], httpx.Response]] = []

    def queue(self, status: int = 200, json_body=None, text: Optional[str] = None,
              content: Optional[bytes] = None, headers: Optional[dict] = None) -> "MockUpstream":
        def respond(request: httpx.Request) -> httpx.Response:
            if json_body is not None:
                return httpx.Response(status, json=json_body, headers=headers)
            if text is not None:
                return httpx.Response(status, text=text, headers=headers)
            return httpx.Response(status, content=content or b"", headers=headers)
        self._responses.append(respond)
        return self

    def queue_callable(self, handler: Callable[[httpx.Request], httpx.Response]) -> "MockUpstream":
        self._responses.append(handler)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self._responses.pop(0)(request)

    def request_json(self, index: int = -1):
        return json.loads(self.requests[index].content)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        token="test-token-123",
        api_url=API_URL,
        graphql_url=f"{API_URL}/graphql",
    )


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def upstream() -> MockUpstream:
    return MockUpstream()


@pytest.fixture
def http_client(upstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))


@pytest.fixture
def client(settings, http_client, sleeper) -> GitHubClient:
    return GitHubClient(settings, http_client=http_client, sleep=sleeper, rng=random.Random(7))
