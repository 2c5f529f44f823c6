"""Streamed writing-assistant endpoints: correction, translation, paraphrase.

Each endpoint validates its input synchronously, then hands one upstream
stream to a ``RelaySession`` and returns its SSE output. Every stream
starts with a ``status`` event and ends with exactly one ``result``,
``error`` or ``done`` event.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, StreamingResponse

from core.config import Settings, get_settings
from core.error_handler import StructuredLogger
from core.exceptions import InputTooLargeError
from schemas.corrections import CorrectionRequest, ParaphraseRequest, TranslationRequest
from services.correction import build_correction_upstream, correction_finalizer
from services.openai_client import OpenAIClient, get_openai_client
from services.prompts import (
    CORRECTION_INSTRUCTIONS,
    CORRECTION_SCHEMA,
    CUSTOM_MODE,
    CUSTOM_MODE_FALLBACK,
    DEFAULT_TRANSLATION_TARGET,
    PARAPHRASE_MODES,
    PARAPHRASE_SYSTEM,
    PARAPHRASE_TONES,
    STATUS_ANALYZING,
    STATUS_PARAPHRASING,
    STATUS_TRANSLATING,
    TRANSLATION_SYSTEM,
    TRANSLATION_TARGETS,
)
from services.rewriting import (
    build_paraphrase_system_prompt,
    build_paraphrase_upstream,
    build_translation_upstream,
    paraphrase_finalizer,
    resolve_translation_target,
    text_finalizer,
)
from services.streaming.profiles import CHAT_COMPLETIONS_PROFILE, RESPONSES_PROFILE
from services.streaming.relay import EventWriter, RelaySession, relay_to_sse


logger = StructuredLogger(__name__)

router = APIRouter(tags=["writing"])

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
EMPTY_TEXT_MESSAGE = "Texto vacío"
PAYLOAD_TOO_LARGE = 413


def _sse_response(
    session_factory: Callable[[EventWriter], RelaySession],
) -> StreamingResponse:
    return StreamingResponse(
        relay_to_sse(session_factory),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post(
    "/correct",
    response_class=StreamingResponse,
    response_model=None,
    summary="Stream spelling, punctuation and grammar corrections",
)
async def correct_text(
    payload: CorrectionRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    client: Annotated[OpenAIClient, Depends(get_openai_client)],
) -> StreamingResponse | JSONResponse:
    """Stream a correction pass over ``text``.

    Blank input short-circuits to ``{"errors": []}``; input over the
    configured limit is rejected with 413 and the same empty body.
    """
    source_text = (payload.text or "").strip()
    if not source_text:
        return JSONResponse({"errors": []})
    if len(source_text) > settings.MAX_CORRECTION_CHARS:
        logger.warning(
            "Correction input rejected",
            input_chars=len(source_text),
            limit=settings.MAX_CORRECTION_CHARS,
        )
        return JSONResponse({"errors": []}, status_code=PAYLOAD_TOO_LARGE)

    logger.info("Correction requested", input_chars=len(source_text))
    upstream = build_correction_upstream(
        client,
        source_text,
        instructions=CORRECTION_INSTRUCTIONS,
        schema=CORRECTION_SCHEMA,
        max_annotations=settings.MAX_ANNOTATIONS,
        max_output_tokens=settings.CORRECTION_MAX_OUTPUT_TOKENS,
    )
    finalizer = correction_finalizer(source_text, settings.MAX_ANNOTATIONS)

    return _sse_response(
        lambda writer: RelaySession(
            source=upstream,
            writer=writer,
            profile=RESPONSES_PROFILE,
            finalizer=finalizer,
            status_message=STATUS_ANALYZING,
            progress_message=STATUS_ANALYZING,
            name="correct",
        )
    )


@router.post(
    "/translate",
    response_class=StreamingResponse,
    response_model=None,
    summary="Stream a translation of Spanish text",
)
async def translate_text(
    payload: TranslationRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    client: Annotated[OpenAIClient, Depends(get_openai_client)],
) -> StreamingResponse | JSONResponse:
    source_text = (payload.text or "").strip()
    if not source_text:
        return JSONResponse({"translation": ""})
    if len(source_text) > settings.MAX_TRANSLATION_CHARS:
        logger.warning(
            "Translation input rejected",
            input_chars=len(source_text),
            limit=settings.MAX_TRANSLATION_CHARS,
        )
        return JSONResponse({"translation": ""}, status_code=PAYLOAD_TOO_LARGE)

    target = resolve_translation_target(
        payload.target, TRANSLATION_TARGETS, DEFAULT_TRANSLATION_TARGET
    )
    logger.info("Translation requested", input_chars=len(source_text), target=target)
    upstream = build_translation_upstream(
        client,
        source_text,
        system_prompt=TRANSLATION_SYSTEM,
        target_name=TRANSLATION_TARGETS[target],
    )

    return _sse_response(
        lambda writer: RelaySession(
            source=upstream,
            writer=writer,
            profile=CHAT_COMPLETIONS_PROFILE,
            finalizer=text_finalizer(),
            status_message=STATUS_TRANSLATING,
            progress_message=STATUS_TRANSLATING,
            name="translate",
        )
    )


@router.post(
    "/paraphrase",
    response_class=StreamingResponse,
    response_model=None,
    summary="Stream a paraphrase with a semantic fidelity score",
)
async def paraphrase_text(
    payload: ParaphraseRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    client: Annotated[OpenAIClient, Depends(get_openai_client)],
) -> StreamingResponse | JSONResponse:
    """Stream a paraphrase of ``text`` in the requested mode and tone.

    The terminal ``result`` carries ``fidelityScore`` and ``fidelityStatus``
    when the embedding comparison succeeds.
    """
    source_text = payload.text.strip()
    if not source_text:
        return JSONResponse(
            {"error": EMPTY_TEXT_MESSAGE}, status_code=status.HTTP_400_BAD_REQUEST
        )
    if len(source_text) > settings.MAX_CORRECTION_CHARS:
        raise InputTooLargeError(len(source_text), settings.MAX_CORRECTION_CHARS)

    system_prompt = build_paraphrase_system_prompt(
        PARAPHRASE_SYSTEM,
        modes=PARAPHRASE_MODES,
        tones=PARAPHRASE_TONES,
        mode=payload.mode,
        tone=payload.tone,
        custom_mode=CUSTOM_MODE,
        custom_instruction=payload.custom_instruction,
        custom_fallback=CUSTOM_MODE_FALLBACK,
    )
    logger.info(
        "Paraphrase requested",
        input_chars=len(source_text),
        mode=payload.mode,
        tone=payload.tone,
    )
    upstream = build_paraphrase_upstream(client, source_text, system_prompt=system_prompt)
    finalizer = paraphrase_finalizer(client, source_text, settings.MIN_FIDELITY)

    return _sse_response(
        lambda writer: RelaySession(
            source=upstream,
            writer=writer,
            profile=CHAT_COMPLETIONS_PROFILE,
            finalizer=finalizer,
            status_message=STATUS_PARAPHRASING,
            progress_message=STATUS_PARAPHRASING,
            name="paraphrase",
        )
    )
