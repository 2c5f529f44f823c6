"""HTTP client for the OpenAI-compatible text-generation provider."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Request

from core.config import Settings, get_settings
from core.exceptions import UpstreamError


logger = logging.getLogger(__name__)


class HttpUpstream:
    """A streaming POST to the provider, opened lazily by a relay session."""

    def __init__(self, client: httpx.AsyncClient, path: str, body: dict[str, Any]) -> None:
        self._client = client
        self._path = path
        self._body = body

    @property
    def body(self) -> dict[str, Any]:
        return self._body

    @asynccontextmanager
    async def open(self) -> AsyncIterator[AsyncIterator[bytes]]:
        try:
            async with self._client.stream("POST", self._path, json=self._body) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise UpstreamError(
                        f"OpenAI error {response.status_code}",
                        status_code=response.status_code,
                    )
                yield response.aiter_bytes()
        except httpx.HTTPError as exc:
            logger.warning(
                "Provider stream failed: %s - %s", type(exc).__name__, str(exc)
            )
            raise UpstreamError("OpenAI no disponible") from exc


class OpenAIClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the endpoints we call."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = http_client or httpx.AsyncClient(
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        )
        if settings.OPENAI_API_KEY:
            self._client.headers["Authorization"] = f"Bearer {settings.OPENAI_API_KEY}"

    async def aclose(self) -> None:
        await self._client.aclose()

    def responses_stream(
        self,
        instructions: str,
        text: str,
        *,
        max_output_tokens: int,
        schema: dict[str, Any] | None = None,
        schema_name: str = "structured_output",
    ) -> HttpUpstream:
        body: dict[str, Any] = {
            "model": self._settings.CORRECTION_MODEL,
            "temperature": 0,
            "max_output_tokens": max_output_tokens,
            "stream": True,
            "instructions": instructions,
            "input": text,
        }
        if schema is not None:
            body["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": schema_name,
                    "strict": True,
                    "schema": schema,
                }
            }
        return HttpUpstream(self._client, "/responses", body)

    def chat_stream(
        self, messages: list[dict[str, str]], *, temperature: float
    ) -> HttpUpstream:
        body = {
            "model": self._settings.CHAT_MODEL,
            "temperature": temperature,
            "stream": True,
            "messages": messages,
        }
        return HttpUpstream(self._client, "/chat/completions", body)

    async def chat_complete(
        self, messages: list[dict[str, str]], *, temperature: float
    ) -> str:
        """Non-streaming chat completion; returns the first choice's content."""
        try:
            response = await self._client.post(
                "/chat/completions",
                json={
                    "model": self._settings.CHAT_MODEL,
                    "temperature": temperature,
                    "messages": messages,
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"OpenAI error {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError("OpenAI no disponible") from exc

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("Respuesta de OpenAI sin contenido") from exc
        return content if isinstance(content, str) else ""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` in order with the configured embedding model."""
        try:
            response = await self._client.post(
                "/embeddings",
                json={"model": self._settings.EMBEDDING_MODEL, "input": texts},
            )
            response.raise_for_status()
            payload = response.json()
            items = sorted(payload["data"], key=lambda item: item.get("index", 0))
            return [list(item["embedding"]) for item in items]
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"OpenAI error {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            raise UpstreamError("Embeddings no disponibles") from exc


def get_openai_client(request: Request) -> OpenAIClient:
    """Return the application-wide provider client, creating it on first use.

    Relays keep reading the upstream after the endpoint returns, so the
    client is app-scoped and closed by the application lifespan.
    """
    client = getattr(request.app.state, "openai_client", None)
    if client is None:
        client = OpenAIClient(get_settings())
        request.app.state.openai_client = client
    return client
