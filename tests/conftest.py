"""Shared fixtures for canvas-core tests."""

import json
from typing import Callable, List

import httpx
import pytest

from canvas_core.core.config import ClientConfig
from canvas_core.core.http_client import CanvasClient
from canvas_core.core.retry import RetryPolicy

BASE_URL = "https://canvas.example.com"
PROBE_PATH = "/api/v1/accounts"


def json_response(payload, status_code: int = 200, headers=None) -> httpx.Response:
    """Build a JSON response for a mock transport handler."""
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json", **(headers or {})},
    )


class RecordingHandler:
    """Mock transport handler that records non-probe requests."""

    def __init__(self, route: Callable[[httpx.Request], httpx.Response], version: str = "2024.1.5"):
        self.route = route
        self.version = version
        self.requests: List[httpx.Request] = []
        self.probes = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == PROBE_PATH and "Authorization" not in request.headers:
            self.probes += 1
            meta = json.dumps({"version": self.version})
            return httpx.Response(200, content=b"[]", headers={"X-Canvas-Meta": meta})
        self.requests.append(request)
        return self.route(request)


@pytest.fixture
def make_client():
    """Factory building an opened client around a mock transport."""

    async def factory(handler: RecordingHandler, **overrides) -> CanvasClient:
        options = {
            "base_url": BASE_URL,
            "token": "test-token",
            "requests_per_sec": 1000.0,
            "transport": httpx.MockTransport(handler),
        }
        options.update(overrides)
        retry_policy = options.pop(
            "retry_policy", RetryPolicy(max_retries=3, initial_backoff=0.0, max_backoff=0.0)
        )
        output = options.pop("output", print)
        client = CanvasClient(ClientConfig(**options), retry_policy=retry_policy, output=output)
        await client.open()
        return client

    return factory
