"""Shared test fixtures for pytest.

ENVIRONMENT is pinned to ``test`` before any application module is imported
so settings load from defaults and no ``.env`` file is required.

The text-generation provider is faked at the HTTP layer with
``httpx.MockTransport``: tests register one handler per provider path and
the real ``OpenAIClient`` talks to it.
"""

import json
import os
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Generator
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient


os.environ["ENVIRONMENT"] = "test"

from core.config import Settings, get_settings
from main import app
from services.openai_client import OpenAIClient, get_openai_client


ProviderHandler = Callable[[httpx.Request], httpx.Response]


def sse_body(*payloads: Any, done: bool = True) -> bytes:
    """Encode provider frames as an event stream, optionally ending in [DONE]."""
    blocks = [
        f"data: {p if isinstance(p, str) else json.dumps(p)}\n\n" for p in payloads
    ]
    if done:
        blocks.append("data: [DONE]\n\n")
    return "".join(blocks).encode("utf-8")


def chat_delta(content: str) -> dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"content": content}}]}


def responses_delta(delta: str) -> dict[str, Any]:
    return {"type": "response.output_text.delta", "delta": delta}


def responses_completed(output_text: str) -> dict[str, Any]:
    return {"type": "response.completed", "response": {"output_text": output_text}}


async def chunked(data: bytes, size: int) -> AsyncIterator[bytes]:
    for i in range(0, len(data), size):
        yield data[i : i + size]


def parse_sse(raw: str) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    for line in raw.split("\n"):
        if line.startswith("data: "):
            try:
                events.append(json.loads(line[6:]))
            except json.JSONDecodeError:
                continue
    return events


class FakeProvider:
    """Routes provider requests by path and records what was sent."""

    def __init__(self) -> None:
        self.handlers: dict[str, ProviderHandler] = {}
        self.requests: list[httpx.Request] = []

    def on(self, path: str, handler: ProviderHandler) -> None:
        self.handlers[path] = handler

    def respond(self, path: str, response: httpx.Response) -> None:
        self.handlers[path] = lambda _request: response

    def bodies(self, path: str) -> list[dict[str, Any]]:
        return [
            json.loads(r.content) for r in self.requests if r.url.path.endswith(path)
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for path, handler in self.handlers.items():
            if request.url.path.endswith(path):
                return handler(request)
        return httpx.Response(404, json={"error": "no handler"})


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def openai_client(provider: FakeProvider, test_settings: Settings) -> OpenAIClient:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(provider),
        base_url="https://provider.test/v1",
    )
    return OpenAIClient(test_settings, http_client=http_client)


@pytest.fixture
def override_dependencies(
    openai_client: OpenAIClient, test_settings: Settings
) -> Generator[None, None, None]:
    original = dict(app.dependency_overrides)
    app.dependency_overrides[get_openai_client] = lambda: openai_client
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield
    app.dependency_overrides = original


@pytest_asyncio.fixture
async def async_client(
    override_dependencies: None,
) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
def client(override_dependencies: None) -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client
