"""API tests for the streamed writing endpoints (SSE)."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi import status
from fastapi.routing import APIRoute
from httpx import AsyncClient

from conftest import (
    FakeProvider,
    chat_delta,
    chunked,
    parse_sse,
    responses_completed,
    responses_delta,
    sse_body,
)
from core.config import Settings
from main import app
from services.prompts import EMPTY_RESULT_MESSAGE, STATUS_ANALYZING


CORRECTION_OUTPUT = json.dumps(
    {
        "errors": [
            {"errorText": "el", "suggestion": "Él", "type": "spelling"},
            {"errorText": "como", "suggestion": "cómo", "type": "spelling"},
        ]
    }
)


def _types(events: list[dict]) -> list[str]:
    return [event["type"] for event in events]


def _assert_single_terminal(events: list[dict]) -> None:
    terminals = [e for e in events if e["type"] in {"result", "error", "done"}]
    assert len(terminals) == 1
    assert events[-1] is terminals[0]
    assert events[0]["type"] == "status"


class TestCorrect:
    @pytest.mark.asyncio
    async def test_streams_progress_then_result(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        half = len(CORRECTION_OUTPUT) // 2
        body = sse_body(
            {"type": "response.created", "response": {}},
            responses_delta(CORRECTION_OUTPUT[:half]),
            responses_delta(CORRECTION_OUTPUT[half:]),
        )
        provider.respond(
            "/responses", httpx.Response(200, content=chunked(body, 5))
        )

        resp = await async_client.post(
            "/api/v1/correct", json={"text": "  el dijo como estas  "}
        )

        assert resp.status_code == status.HTTP_200_OK
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache"
        events = parse_sse(resp.text)
        _assert_single_terminal(events)
        assert _types(events) == ["status", "progress", "progress", "result"]
        assert events[0]["message"] == STATUS_ANALYZING
        errors = events[-1]["errors"]
        assert [(e["errorText"], e["start"], e["end"]) for e in errors] == [
            ("el", 0, 2),
            ("como", 8, 12),
        ]
        assert errors[0]["allSuggestions"] == ["Él"]
        # Offsets refer to the stripped text that was sent upstream
        assert provider.bodies("/responses")[0]["input"] == "el dijo como estas"

    @pytest.mark.asyncio
    async def test_completed_snapshot_overrides_deltas(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        body = sse_body(
            responses_delta('{"errors": [{"errorText": "dij'),
            responses_completed(CORRECTION_OUTPUT),
        )
        provider.respond("/responses", httpx.Response(200, content=body))

        resp = await async_client.post(
            "/api/v1/correct", json={"text": "el dijo como estas"}
        )

        events = parse_sse(resp.text)
        assert len(events[-1]["errors"]) == 2

    @pytest.mark.asyncio
    async def test_blank_text_returns_empty_errors(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        for payload in ({"text": "   "}, {}, {"text": None}):
            resp = await async_client.post("/api/v1/correct", json=payload)
            assert resp.status_code == status.HTTP_200_OK
            assert resp.json() == {"errors": []}
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_oversized_text_is_rejected(
        self,
        async_client: AsyncClient,
        provider: FakeProvider,
        test_settings: Settings,
    ) -> None:
        text = "a" * (test_settings.MAX_CORRECTION_CHARS + 1)

        resp = await async_client.post("/api/v1/correct", json={"text": text})

        assert resp.status_code == 413
        assert resp.json() == {"errors": []}
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_upstream_failure_streams_error(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        provider.respond("/responses", httpx.Response(503, json={"error": "busy"}))

        resp = await async_client.post("/api/v1/correct", json={"text": "hola"})

        assert resp.status_code == status.HTTP_200_OK
        events = parse_sse(resp.text)
        _assert_single_terminal(events)
        assert events[-1] == {"type": "error", "message": "OpenAI error 503", "status": 503}

    @pytest.mark.asyncio
    async def test_unparsable_output_streams_error(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        body = sse_body(responses_delta("lo siento, no puedo"))
        provider.respond("/responses", httpx.Response(200, content=body))

        resp = await async_client.post("/api/v1/correct", json={"text": "hola"})

        events = parse_sse(resp.text)
        assert events[-1] == {"type": "error", "message": EMPTY_RESULT_MESSAGE}

    @pytest.mark.asyncio
    async def test_empty_output_streams_error(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        provider.respond("/responses", httpx.Response(200, content=sse_body()))

        resp = await async_client.post("/api/v1/correct", json={"text": "hola"})

        events = parse_sse(resp.text)
        assert _types(events) == ["status", "error"]


class TestTranslate:
    @pytest.mark.asyncio
    async def test_streams_translation(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        body = sse_body(chat_delta("Hello"), chat_delta(", world "))
        provider.respond(
            "/chat/completions", httpx.Response(200, content=chunked(body, 7))
        )

        resp = await async_client.post(
            "/api/v1/translate", json={"text": "Hola, mundo", "target": "xx"}
        )

        events = parse_sse(resp.text)
        _assert_single_terminal(events)
        assert events[-1] == {"type": "result", "text": "Hello, world"}
        sent = provider.bodies("/chat/completions")[0]
        assert sent["stream"] is True
        assert "Translate to: English" in sent["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_target_language_is_used(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        provider.respond(
            "/chat/completions",
            httpx.Response(200, content=sse_body(chat_delta("Bonjour"))),
        )

        await async_client.post("/api/v1/translate", json={"text": "Hola", "target": "fr"})

        sent = provider.bodies("/chat/completions")[0]
        assert "Translate to: French" in sent["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_blank_and_oversized(
        self,
        async_client: AsyncClient,
        provider: FakeProvider,
        test_settings: Settings,
    ) -> None:
        blank = await async_client.post("/api/v1/translate", json={"text": " "})
        assert blank.json() == {"translation": ""}

        big = "a" * (test_settings.MAX_TRANSLATION_CHARS + 1)
        too_large = await async_client.post("/api/v1/translate", json={"text": big})
        assert too_large.status_code == 413
        assert too_large.json() == {"translation": ""}
        assert provider.requests == []


class TestParaphrase:
    @pytest.mark.asyncio
    async def test_streams_paraphrase_with_fidelity(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        provider.respond(
            "/chat/completions",
            httpx.Response(200, content=sse_body(chat_delta("Texto "), chat_delta("nuevo"))),
        )
        provider.respond(
            "/embeddings",
            httpx.Response(
                200,
                json={
                    "data": [
                        {"index": 0, "embedding": [1.0, 0.0]},
                        {"index": 1, "embedding": [0.6, 0.8]},
                    ]
                },
            ),
        )

        resp = await async_client.post(
            "/api/v1/paraphrase",
            json={"text": "Texto viejo", "mode": "Fluency", "tone": "Casual"},
        )

        events = parse_sse(resp.text)
        _assert_single_terminal(events)
        assert events[-1] == {
            "type": "result",
            "text": "Texto nuevo",
            "fidelityScore": 60,
            "fidelityStatus": "lowConfidence",
        }
        system = provider.bodies("/chat/completions")[0]["messages"][0]["content"]
        assert "fluidez" in system
        assert "casual" in system

    @pytest.mark.asyncio
    async def test_embedding_failure_still_returns_text(
        self, async_client: AsyncClient, provider: FakeProvider
    ) -> None:
        provider.respond(
            "/chat/completions",
            httpx.Response(200, content=sse_body(chat_delta("Otro texto"))),
        )
        provider.respond("/embeddings", httpx.Response(500))

        resp = await async_client.post("/api/v1/paraphrase", json={"text": "Un texto"})

        events = parse_sse(resp.text)
        assert events[-1] == {"type": "result", "text": "Otro texto"}

    @pytest.mark.asyncio
    async def test_blank_text_is_bad_request(self, async_client: AsyncClient) -> None:
        resp = await async_client.post("/api/v1/paraphrase", json={"text": ""})

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert resp.json() == {"error": "Texto vacío"}

    @pytest.mark.asyncio
    async def test_oversized_text_uses_error_envelope(
        self, async_client: AsyncClient, test_settings: Settings
    ) -> None:
        big = "a" * (test_settings.MAX_CORRECTION_CHARS + 1)

        resp = await async_client.post("/api/v1/paraphrase", json={"text": big})

        assert resp.status_code == 413
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["type"] == "input_too_large"
        assert body["error"]["correlation_id"]


@pytest.mark.asyncio
async def test_correlation_id_is_echoed_on_streams(
    async_client: AsyncClient, provider: FakeProvider
) -> None:
    provider.respond(
        "/chat/completions", httpx.Response(200, content=sse_body(chat_delta("Hi")))
    )

    resp = await async_client.post(
        "/api/v1/translate",
        json={"text": "Hola"},
        headers={"X-Correlation-ID": "corr-123"},
    )

    assert resp.headers["X-Correlation-ID"] == "corr-123"


@pytest.mark.parametrize("path", ["/api/v1/correct", "/api/v1/translate", "/api/v1/paraphrase"])
def test_streaming_routes_register_without_response_model(path: str) -> None:
    routes = {route.path: route for route in app.routes if isinstance(route, APIRoute)}

    assert routes[path].response_model is None
    assert path in app.openapi()["paths"]
