"""Tests for the provider HTTP client against a mocked transport."""

from __future__ import annotations

import httpx
import pytest

from conftest import FakeProvider, chat_delta, sse_body
from core.config import Settings
from core.exceptions import UpstreamError
from services.openai_client import OpenAIClient


def _client(handler, settings: Settings) -> OpenAIClient:
    return OpenAIClient(
        settings,
        http_client=httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="https://provider.test/v1"
        ),
    )


class TestStreamingRequests:
    def test_responses_body_carries_schema(self, openai_client: OpenAIClient) -> None:
        upstream = openai_client.responses_stream(
            "instr", "texto", max_output_tokens=800, schema={"type": "object"}, schema_name="s"
        )

        assert upstream.body["stream"] is True
        assert upstream.body["input"] == "texto"
        assert upstream.body["max_output_tokens"] == 800
        assert upstream.body["text"]["format"] == {
            "type": "json_schema",
            "name": "s",
            "strict": True,
            "schema": {"type": "object"},
        }

    def test_chat_body(self, openai_client: OpenAIClient, test_settings: Settings) -> None:
        messages = [{"role": "user", "content": "hola"}]
        upstream = openai_client.chat_stream(messages, temperature=0.6)

        assert upstream.body == {
            "model": test_settings.CHAT_MODEL,
            "temperature": 0.6,
            "stream": True,
            "messages": messages,
        }

    @pytest.mark.asyncio
    async def test_open_yields_raw_bytes(
        self, provider: FakeProvider, openai_client: OpenAIClient
    ) -> None:
        body = sse_body(chat_delta("Hola"))
        provider.respond("/chat/completions", httpx.Response(200, content=body))

        upstream = openai_client.chat_stream([], temperature=0)
        async with upstream.open() as chunks:
            received = b"".join([chunk async for chunk in chunks])

        assert received == body

    @pytest.mark.asyncio
    async def test_open_raises_with_provider_status(
        self, provider: FakeProvider, openai_client: OpenAIClient
    ) -> None:
        provider.respond("/chat/completions", httpx.Response(429, json={"error": "slow"}))

        with pytest.raises(UpstreamError) as excinfo:
            async with openai_client.chat_stream([], temperature=0).open():
                pass

        assert excinfo.value.status_code == 429
        assert excinfo.value.message == "OpenAI error 429"

    @pytest.mark.asyncio
    async def test_transport_error_has_no_status(self, test_settings: Settings) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(refuse, test_settings)

        with pytest.raises(UpstreamError) as excinfo:
            async with client.chat_stream([], temperature=0).open():
                pass

        assert excinfo.value.status_code is None


class TestNonStreamingRequests:
    @pytest.mark.asyncio
    async def test_chat_complete_returns_content(
        self, provider: FakeProvider, openai_client: OpenAIClient
    ) -> None:
        provider.respond(
            "/chat/completions",
            httpx.Response(200, json={"choices": [{"message": {"content": "hola"}}]}),
        )

        assert await openai_client.chat_complete([], temperature=0.2) == "hola"
        assert "stream" not in provider.bodies("/chat/completions")[0]

    @pytest.mark.asyncio
    async def test_chat_complete_without_choices(
        self, provider: FakeProvider, openai_client: OpenAIClient
    ) -> None:
        provider.respond("/chat/completions", httpx.Response(200, json={"choices": []}))

        with pytest.raises(UpstreamError):
            await openai_client.chat_complete([], temperature=0.2)

    @pytest.mark.asyncio
    async def test_chat_complete_http_error(
        self, provider: FakeProvider, openai_client: OpenAIClient
    ) -> None:
        provider.respond("/chat/completions", httpx.Response(401, json={}))

        with pytest.raises(UpstreamError) as excinfo:
            await openai_client.chat_complete([], temperature=0.2)

        assert excinfo.value.status_code == 401

    @pytest.mark.asyncio
    async def test_embed_orders_by_index(
        self, provider: FakeProvider, openai_client: OpenAIClient
    ) -> None:
        provider.respond(
            "/embeddings",
            httpx.Response(
                200,
                json={
                    "data": [
                        {"index": 1, "embedding": [0.0, 1.0]},
                        {"index": 0, "embedding": [1.0, 0.0]},
                    ]
                },
            ),
        )

        assert await openai_client.embed(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]

    @pytest.mark.asyncio
    async def test_embed_malformed_payload(
        self, provider: FakeProvider, openai_client: OpenAIClient
    ) -> None:
        provider.respond("/embeddings", httpx.Response(200, json={"nope": True}))

        with pytest.raises(UpstreamError):
            await openai_client.embed(["a"])


def test_bearer_header_is_set_from_settings() -> None:
    settings = Settings(_env_file=None, OPENAI_API_KEY="sk-test")  # type: ignore[call-arg]
    client = _client(lambda request: httpx.Response(200), settings)

    assert client._client.headers["Authorization"] == "Bearer sk-test"
